"""
Module: etl_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the type annotation map for consistent column types, the integer identity
    key type, and the TrackedBase mixin for audit timestamps.
Architecture position: Kernel > DB.  This is the lowest-level import target
    within the kernel.  ALL model files import from here.  This module MUST NOT
    import from models, services or outer layers.

Invariants enforced:
    - Integer identities: run and step identifiers are monotonic integers
      (BIGINT on PostgreSQL, INTEGER on SQLite so ROWID autoincrement works).
    - Timestamps are always timezone-aware.
    - Audit timestamps: TrackedBase provides created_at and updated_at.
"""

from datetime import datetime
from typing import ClassVar

from sqlalchemy import BigInteger, DateTime, Integer, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# BIGINT everywhere except SQLite, which only autoincrements INTEGER PRIMARY KEY
IdentityKey = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - datetime maps to DateTime(timezone=True) -- always timezone-aware.
        - int maps to BigInteger (Integer on SQLite).

    Non-goals:
        - Does NOT impose a primary key.  Customer rows are keyed by the
          business identifier from the input file; journal rows use
          autoincrement identities.
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        int: IdentityKey,
    }


class TrackedBase(Base):
    """
    Abstract base with audit timestamps.

    Guarantees:
        - created_at is set to server NOW() on INSERT and never changes.
        - updated_at is set on INSERT and auto-updates on every UPDATE.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
