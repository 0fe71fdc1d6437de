"""
CustomerWriter -- upsert accepted customers inside the chunk transaction.

Contract:
    ``write(session, customers)`` inserts absent identifiers and updates
    present ones, then flushes.  Commit and rollback belong to the caller
    (the chunk engine), so the chunk's rows become visible atomically with
    the run journal's counters.

Invariants enforced:
    - Duplicate identifiers within one call: the last record wins.
    - Existing rows are loaded with one IN query per call.
    - A row changed by another transaction since it was loaded surfaces
      as OptimisticLockError (retryable), never as a silent overwrite.

Failure modes:
    - OptimisticLockError: ``StaleDataError`` from the versioned UPDATE.
    - Any other SQLAlchemyError propagates unchanged (not retryable).
"""

from __future__ import annotations

from typing import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from etl_kernel.exceptions import OptimisticLockError
from etl_kernel.logging_config import get_logger

from etl_ingestion.domain.types import Customer
from etl_ingestion.mapping.customer import customer_to_row
from etl_ingestion.models.customer import CustomerModel

logger = get_logger("ingestion.writer")


class CustomerWriter:
    """Write-only access to the customer table."""

    def write(self, session: Session, customers: Sequence[Customer]) -> int:
        """Upsert ``customers``; returns the number of distinct rows touched."""
        if not customers:
            return 0

        latest: dict[int, Customer] = {}
        for customer in customers:
            latest[customer.customer_id] = customer

        existing = {
            model.id: model
            for model in session.execute(
                select(CustomerModel).where(CustomerModel.id.in_(latest.keys()))
            ).scalars()
        }

        inserted = 0
        for customer_id, customer in latest.items():
            row = customer_to_row(customer)
            model = existing.get(customer_id)
            if model is None:
                session.add(CustomerModel(**row))
                inserted += 1
            else:
                for column, value in row.items():
                    if column != "id":
                        setattr(model, column, value)

        try:
            session.flush()
        except StaleDataError as exc:
            raise OptimisticLockError("customer", _stale_ids(latest)) from exc

        logger.debug(
            "customers_written",
            extra={
                "received": len(customers),
                "inserted": inserted,
                "updated": len(latest) - inserted,
            },
        )
        return len(latest)


def _stale_ids(latest: dict[int, Customer]) -> str:
    ids = sorted(latest)
    if len(ids) == 1:
        return str(ids[0])
    return f"{ids[0]}..{ids[-1]}"
