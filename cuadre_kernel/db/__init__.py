"""Database layer - engine, base classes and column types."""

from cuadre_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from cuadre_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from cuadre_kernel.db.types import AMOUNT, PERCENT, RATE

__all__ = [
    "AMOUNT",
    "Base",
    "PERCENT",
    "RATE",
    "TrackedBase",
    "UUID",
    "UUIDString",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session",
    "init_engine_from_url",
    "reset_engine",
    "session_scope",
]
