"""TransactionManager: commit on success, rollback on exception."""

import pytest
from sqlalchemy import func, select

from etl_ingestion.models.customer import CustomerModel


def _count(transactions) -> int:
    with transactions.transaction() as session:
        return session.scalar(select(func.count()).select_from(CustomerModel))


def test_commit_on_normal_exit(transactions):
    with transactions.transaction() as session:
        session.add(CustomerModel(id=1, first_name="Ana"))
    assert _count(transactions) == 1


def test_rollback_on_exception(transactions):
    with pytest.raises(RuntimeError):
        with transactions.transaction() as session:
            session.add(CustomerModel(id=1, first_name="Ana"))
            session.flush()
            raise RuntimeError("boom")
    assert _count(transactions) == 0


def test_version_starts_at_one(transactions):
    with transactions.transaction() as session:
        session.add(CustomerModel(id=7))
    with transactions.transaction() as session:
        assert session.get(CustomerModel, 7).version == 1
