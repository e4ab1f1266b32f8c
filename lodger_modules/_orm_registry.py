"""
Module ORM Registry (``lodger_modules._orm_registry``).

Ensures every module-level ORM model is imported so ``Base.metadata``
contains its table before ``create_tables()`` runs.  Scripts and
``tests/conftest.py`` go through this one function.
"""


def import_all_orm_models() -> None:
    """Import every ``lodger_modules.*.orm`` module to register ORM models."""
    import lodger_modules.tenancy.orm  # noqa: F401
