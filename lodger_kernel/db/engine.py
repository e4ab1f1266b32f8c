"""
Engine, session factory and transaction scopes for the lodger engine.

Kernel layer.  ``create_tables`` is the only place that reaches up into
``lodger_modules``, and only to register the ORM models.

In-memory SQLite URLs share one connection (``StaticPool``) so every
session in a test sees the same database.  Server databases run at READ
COMMITTED; operations that mutate a tenancy lock its row explicitly.
"""

import atexit
from contextlib import contextmanager
from typing import Any, Generator, Iterable

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import QueuePool, StaticPool

from lodger_kernel.exceptions import ConcurrencyConflictError
from lodger_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "Engine not initialized. Call init_engine_from_url() first."


def _engine_options(database_url: str, pool_size: int, max_overflow: int) -> dict[str, Any]:
    if database_url.startswith("sqlite"):
        # an in-memory database lives only as long as its one connection
        if database_url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in database_url:
            return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
        return {"connect_args": {"check_same_thread": False}}
    return {
        "poolclass": QueuePool,
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": True,
        "pool_recycle": 1800,
        "isolation_level": "READ COMMITTED",
    }


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 5,
) -> Engine:
    """
    Create the process-wide engine and session factory.

    Calling it again replaces both; call ``reset_engine()`` first to
    release pooled connections.
    """
    global _engine, _SessionFactory

    _engine = create_engine(
        database_url, echo=echo, **_engine_options(database_url, pool_size, max_overflow)
    )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info("engine_initialized", extra={"dialect": _engine.dialect.name, "echo": echo})
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    if _SessionFactory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _SessionFactory


def get_session() -> Session:
    """A new session from the factory. Raises RuntimeError before init."""
    return get_session_factory()()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Own a fresh session for one block: commit on exit, roll back and
    re-raise on error, close either way.
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create every table registered by the module ORM registry."""
    from lodger_kernel.db.base import Base
    from lodger_modules._orm_registry import import_all_orm_models

    import_all_orm_models()
    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"table_count": len(Base.metadata.tables)})


def drop_tables() -> None:
    """Drop every table (tests)."""
    from lodger_kernel.db.base import Base

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


atexit.register(reset_engine)


@contextmanager
def unit_of_work(
    session: Session,
    entity_type: str,
    entity_id: Any,
    conflict_markers: Iterable[str] = (),
) -> Generator[Session, None, None]:
    """
    Commit-or-rollback scope over a caller-owned session.

    Every mutation made inside the block is committed together or not at
    all.  Optimistic-lock failures (StaleDataError) and IntegrityErrors whose
    message names one of ``conflict_markers`` are raised as
    ConcurrencyConflictError after rollback; any other error is re-raised
    unchanged.
    """
    markers = tuple(conflict_markers)
    try:
        yield session
        session.commit()
    except StaleDataError as exc:
        session.rollback()
        logger.warning(
            "concurrency_conflict",
            extra={"entity_type": entity_type, "entity_id": str(entity_id), "cause": "stale_data"},
        )
        raise ConcurrencyConflictError(entity_type, entity_id) from exc
    except IntegrityError as exc:
        session.rollback()
        detail = str(exc.orig)
        if any(marker in detail for marker in markers):
            logger.warning(
                "concurrency_conflict",
                extra={"entity_type": entity_type, "entity_id": str(entity_id), "cause": "duplicate_key"},
            )
            raise ConcurrencyConflictError(entity_type, entity_id) from exc
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    except Exception:
        session.rollback()
        logger.warning(
            "transaction_rolled_back",
            extra={"entity_type": entity_type, "entity_id": str(entity_id)},
        )
        raise
