"""Database layer - engine, base classes, types, and immutability listeners."""

from ledger_kernel.db.base import UUID, Base, SoftDeleteMixin, TrackedBase, UUIDString, live
from ledger_kernel.db.engine import (
    build_engine,
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)
from ledger_kernel.db.types import PercentageNumeric, enum_column, round_money

__all__ = [
    "build_engine",
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "SoftDeleteMixin",
    "UUIDString",
    "UUID",
    "live",
    "PercentageNumeric",
    "enum_column",
    "round_money",
]
