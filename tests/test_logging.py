"""Tests for the structured logging system (tenancy_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from tenancy_kernel.exceptions import DepositNotHeldError
from tenancy_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite configuration."""
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
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "tenancy_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("accrual_created", extra={"entry_count": 2, "prorated": True})

        record = _parse_log(stream)
        assert record["entry_count"] == 2
        assert record["prorated"] is True

    def test_decimal_and_uuid_serialized_as_strings(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        entry_id = uuid4()
        get_logger("test").info("posted", extra={"amount": Decimal("180.00"), "ledger_entry": entry_id})

        record = _parse_log(stream)
        assert record["amount"] == "180.00"
        assert record["ledger_entry"] == str(entry_id)

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        try:
            raise DepositNotHeldError("stu-1", "50.00", "0.00")
        except DepositNotHeldError:
            logger.warning("forfeiture_rejected", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "DepositNotHeldError"
        assert record["exc_code"] == "DEPOSIT_NOT_HELD"
        assert record["exc_student_id"] == "stu-1"
        assert "Traceback" in record["traceback"]

    def test_debug_filtered_at_info(self):
        handler, stream = _make_handler()
        configure_logging(level=logging.INFO, handler=handler)
        logger = get_logger("test")
        logger.debug("hidden")
        logger.info("shown")

        records = _parse_all_logs(stream)
        assert [r["message"] for r in records] == ["shown"]


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(batch_id="batch-1", student_id="stu-1")
        get_logger("test").info("accrual_created")

        record = _parse_log(stream)
        assert record["batch_id"] == "batch-1"
        assert record["student_id"] == "stu-1"

    def test_unknown_field_rejected(self):
        with pytest.raises(KeyError):
            LogContext.set(tenant="x")

    def test_none_does_not_overwrite(self):
        LogContext.set(student_id="stu-1")
        LogContext.set(student_id=None)

        assert LogContext.get_all() == {"student_id": "stu-1"}

    def test_bind_restores_previous_values(self):
        LogContext.set(batch_id="outer")

        with LogContext.bind(batch_id="inner", payment_id="pay-1"):
            assert LogContext.get_all() == {"batch_id": "inner", "payment_id": "pay-1"}

        assert LogContext.get_all() == {"batch_id": "outer"}

    def test_bind_restores_on_exception(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(month_key="2025-06"):
                raise RuntimeError("boom")

        assert LogContext.get_all() == {}

    def test_clear(self):
        LogContext.set(correlation_id="c-1", entry_id="e-1")
        LogContext.clear()

        assert LogContext.get_all() == {}


# ---------------------------------------------------------------------------
# Configuration tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    def test_idempotent(self):
        handler, _ = _make_handler()
        configure_logging(handler=handler)
        configure_logging(handler=logging.StreamHandler(StringIO()))

        root = logging.getLogger("tenancy_kernel")
        assert root.handlers == [handler]
        assert root.propagate is False

    def test_reset_allows_reconfiguration(self):
        first, _ = _make_handler()
        configure_logging(handler=first)
        reset_logging()
        second, stream = _make_handler()
        configure_logging(handler=second)

        get_logger("test").info("again")

        assert logging.getLogger("tenancy_kernel").handlers == [second]
        assert _parse_log(stream)["message"] == "again"
