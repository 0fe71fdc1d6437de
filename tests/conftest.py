"""
Pytest fixtures for the customer ETL test suite.

Provides:
- A file-backed SQLite database per test (shared by worker and poller threads)
- TransactionManager, RunJournal and a DeterministicClock pinned to 2025-01-01
- CSV fixtures and a reader/processor/writer factory for the chunk engine
- Structured log capture

Environment Variables:
- DATABASE_URL: optional SQLAlchemy URL (e.g. a PostgreSQL test database).
  If not set, each test gets its own SQLite file under tmp_path.
"""

import json
import logging
import os
from datetime import datetime, timezone
from io import StringIO
from pathlib import Path
from typing import Callable, Iterable

import pytest

from etl_kernel.db.engine import (
    TransactionManager,
    build_engine,
    create_tables,
    drop_tables,
)
from etl_kernel.domain.clock import DeterministicClock
from etl_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

from etl_batch.domain.types import ChunkPolicy, RetryPolicy
from etl_batch.services.chunk_engine import ChunkEngine
from etl_batch.services.journal import RunJournal
from etl_ingestion.adapters.flat_file import DelimitedLineTokenizer, FlatFileItemReader
from etl_ingestion.mapping.customer import CustomerFieldSetMapper
from etl_ingestion.processors.customer import CustomerProcessor
from etl_ingestion.writers.customer import CustomerWriter

TEST_NOW = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

ADULT_LINE = "1,Ana,Ruiz,a@x,F,555,ES,15-6-1990,100.0"
MINOR_LINE = "2,Leo,Kim,l@x,M,555,KR,15-6-2015,100.0"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture etl_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ...):
            ...
            logs = captured_logs()
            assert any(r["message"] == "chunk_committed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("etl_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


def get_database_url(tmp_path: Path) -> str:
    """DATABASE_URL from the environment, or a fresh SQLite file."""
    return os.environ.get("DATABASE_URL") or f"sqlite:///{tmp_path / 'etl.db'}"


@pytest.fixture
def engine(tmp_path):
    db_engine = build_engine(get_database_url(tmp_path))
    drop_tables(db_engine)
    create_tables(db_engine)
    yield db_engine
    drop_tables(db_engine)
    db_engine.dispose()


@pytest.fixture
def transactions(engine) -> TransactionManager:
    return TransactionManager.from_engine(engine)


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(TEST_NOW)


@pytest.fixture
def journal(transactions, clock) -> RunJournal:
    return RunJournal(transactions, clock=clock)


# =============================================================================
# Input fixtures
# =============================================================================


def customer_line(customer_id: int, dob: str = "15-6-1990", balance: str = "100.0") -> str:
    return (
        f"{customer_id},First{customer_id},Last{customer_id},"
        f"c{customer_id}@x,F,555,ES,{dob},{balance}"
    )


@pytest.fixture
def write_csv(tmp_path) -> Callable[[Iterable[str]], Path]:
    """Write lines to a CSV file under tmp_path and return its path."""
    counter = {"n": 0}

    def _write(lines: Iterable[str], name: str | None = None) -> Path:
        counter["n"] += 1
        path = tmp_path / (name or f"customers-{counter['n']}.csv")
        path.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
        return path

    return _write


def make_reader(path: Path, **kwargs) -> FlatFileItemReader:
    tokenizer = DelimitedLineTokenizer(
        names=(
            "id", "firstName", "lastName", "email", "gender",
            "contactNo", "country", "dob", "balance",
        ),
        strict=kwargs.pop("strict", False),
        optional_fields=("balance",),
    )
    return FlatFileItemReader(tokenizer, CustomerFieldSetMapper(), resource=path, **kwargs)


@pytest.fixture
def make_engine(transactions, journal, clock):
    """Build a ChunkEngine over ``path`` with optional writer/processor overrides."""

    def _make(
        path: Path,
        chunk_size: int = 100,
        retry_limit: int = 3,
        backoff_seconds: float = 0.0,
        writer=None,
        processor=None,
        sleep=None,
    ) -> ChunkEngine:
        return ChunkEngine(
            reader=make_reader(path),
            processor=processor or CustomerProcessor(clock=clock),
            writer=writer or CustomerWriter(),
            transactions=transactions,
            journal=journal,
            policy=ChunkPolicy(
                chunk_size=chunk_size,
                retry=RetryPolicy(
                    retry_limit=retry_limit, backoff_seconds=backoff_seconds,
                ),
            ),
            sleep=sleep,
        )

    return _make
