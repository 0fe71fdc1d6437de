"""Tests for the structured logging system (etl_kernel/logging_config.py)."""

import json
import logging
from datetime import date, datetime, timezone
from io import StringIO

import pytest

from etl_kernel.exceptions import MalformedRecordError
from etl_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)
from etl_batch.domain.types import RunStatus


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "etl_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("chunk_committed", extra={"read": 100, "written": 97})

        record = _parse_log(stream)
        assert record["read"] == 100
        assert record["written"] == 97

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(run_id="7", step_id="9")
        get_logger("test").info("step_started")

        record = _parse_log(stream)
        assert record["run_id"] == "7"
        assert record["step_id"] == "9"

    def test_etl_exception_code_and_fields_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise MalformedRecordError(4, "bad,line", "id 'bad' is not an integer")
        except MalformedRecordError:
            get_logger("test").error("chunk_read_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "malformed-record"
        assert record["exc_type"] == "MalformedRecordError"
        assert record["exc_line_number"] == 4
        assert record["exc_line"] == "bad,line"
        assert "traceback" in record

    def test_dates_and_enums_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info(
            "snapshot",
            extra={
                "status": RunStatus.RUNNING,
                "at": datetime(2025, 1, 1, tzinfo=timezone.utc),
                "dob": date(1990, 6, 15),
            },
        )

        record = _parse_log(stream)
        assert record["status"] == "RUNNING"
        assert record["at"] == "2025-01-01T00:00:00+00:00"
        assert record["dob"] == "1990-06-15"

    def test_default_level_hides_debug(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        assert [r["message"] for r in logs] == ["first", "second"]


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_set_and_get(self):
        LogContext.set(job_name="importCustomers", run_id=4, step_id=None)
        assert LogContext.get_all() == {"job_name": "importCustomers", "run_id": "4"}

    def test_set_ignores_unknown_fields(self):
        LogContext.set(correlation_id="x")
        assert LogContext.get_all() == {}

    def test_clear(self):
        LogContext.set(run_id="1")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_restores_previous_value(self):
        LogContext.set(chunk_index="0")
        with LogContext.bind(chunk_index=1):
            assert LogContext.get_all()["chunk_index"] == "1"
        assert LogContext.get_all()["chunk_index"] == "0"

    def test_bind_restores_none(self):
        with LogContext.bind(run_id=3):
            assert LogContext.get_all()["run_id"] == "3"
        assert "run_id" not in LogContext.get_all()

    def test_bind_ignores_unknown_fields(self):
        with LogContext.bind(unknown="x", run_id=1):
            assert LogContext.get_all() == {"run_id": "1"}


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)
        assert len(logging.getLogger("etl_kernel").handlers) == 1

    def test_level_by_name(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level="DEBUG")
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["logger"] == "etl_kernel.deep.nested.module"
