"""
ORM model for persisted customers.

Contract:
    One row per customer identifier.  ``version`` is SQLAlchemy's
    ``version_id_col``: every UPDATE is guarded by ``WHERE version = :old``
    and a row changed by another transaction since it was loaded raises
    ``StaleDataError`` on flush.

Architecture: etl_ingestion/models. Imports from etl_kernel.db.base only.
"""

from __future__ import annotations

from sqlalchemy import Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from etl_kernel.db.base import TrackedBase
from etl_ingestion.domain.types import Customer


class CustomerModel(TrackedBase):
    """Persistent customer row keyed by the file's ``id`` field."""

    __tablename__ = "customer"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    gender: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    contact_no: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    country: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    dob: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    balance: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def to_dto(self) -> Customer:
        return Customer(
            customer_id=self.id,
            first_name=self.first_name,
            last_name=self.last_name,
            email=self.email,
            gender=self.gender,
            contact_no=self.contact_no,
            country=self.country,
            dob=self.dob,
            balance=self.balance,
        )
