"""Database layer: declarative base, engine/session management, money helpers."""

from lodger_kernel.db.base import Base, TrackedBase, UUIDString
from lodger_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
    unit_of_work,
)
from lodger_kernel.db.types import round_money, to_decimal

__all__ = [
    "Base",
    "TrackedBase",
    "UUIDString",
    "to_decimal",
    "round_money",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_url",
    "reset_engine",
    "session_scope",
    "unit_of_work",
]
