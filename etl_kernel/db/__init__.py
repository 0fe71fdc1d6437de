"""Database layer - base classes, engine and transaction scope."""

from etl_kernel.db.base import Base, TrackedBase, IdentityKey
from etl_kernel.db.engine import (
    TransactionManager,
    build_engine,
    create_tables,
    drop_tables,
)

__all__ = [
    "Base",
    "TrackedBase",
    "IdentityKey",
    "TransactionManager",
    "build_engine",
    "create_tables",
    "drop_tables",
]
