"""Tests for the structured logging system (advtax_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from advtax_engines.liability import LiabilityCalculator, TaxRegimeRates
from advtax_kernel.exceptions import AssessmentFinalizedError
from advtax_kernel.logging_config import (
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
    configure_logging(level=logging.DEBUG, stream=StringIO())


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_all_logs(stream)[0]
        assert record["message"] == "hello"
        assert record["level"] == "INFO"
        assert record["logger"] == "advtax.test"
        assert "ts" in record

    def test_extra_fields_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        assessment_id = uuid4()
        get_logger("test").info("event", extra={
            "assessment_id_field": assessment_id,
            "amount": Decimal("156000.00"),
            "due_date": date(2024, 6, 15),
        })

        record = _parse_all_logs(stream)[0]
        assert record["assessment_id_field"] == str(assessment_id)
        assert record["amount"] == "156000.00"
        assert record["due_date"] == "2024-06-15"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise AssessmentFinalizedError("a-1", "record_payment")
        except AssessmentFinalizedError:
            get_logger("test").exception("failed")

        record = _parse_all_logs(stream)[0]
        assert record["exc_type"] == "AssessmentFinalizedError"
        assert record["exc_code"] == "ASSESSMENT_FINALIZED"
        assert "traceback" in record


# ---------------------------------------------------------------------------
# LogContext
# ---------------------------------------------------------------------------


class TestLogContext:
    def test_bound_fields_appear_in_records(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        assessment_id = uuid4()
        with LogContext.bind(assessment_id=assessment_id, operation="record_payment"):
            get_logger("test").info("inside")
        get_logger("test").info("outside")

        inside, outside = _parse_all_logs(stream)
        assert inside["assessment_id"] == str(assessment_id)
        assert inside["operation"] == "record_payment"
        assert "assessment_id" not in outside

    def test_nested_bind_restores_outer(self):
        with LogContext.bind(operation="outer"):
            with LogContext.bind(operation="inner"):
                assert LogContext.get_all()["operation"] == "inner"
            assert LogContext.get_all()["operation"] == "outer"
        assert LogContext.get_all() == {}

    def test_bind_ignores_unknown_and_none_fields(self):
        company_id = uuid4()
        with LogContext.bind(company_id=company_id, operation=None, request_path="/x"):
            assert LogContext.get_all() == {"company_id": str(company_id)}

    def test_set_and_clear(self):
        LogContext.set(correlation_id="req-1", company_id="c-1")
        assert LogContext.get_all() == {"correlation_id": "req-1", "company_id": "c-1"}
        LogContext.clear()
        assert LogContext.get_all() == {}


# ---------------------------------------------------------------------------
# configure_logging
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    def test_idempotent(self):
        handler, _ = _make_handler()
        configure_logging(handler=handler)
        configure_logging(handler=handler)
        assert len(logging.getLogger("advtax").handlers) == 1

    def test_does_not_propagate(self):
        configure_logging(stream=StringIO())
        assert logging.getLogger("advtax").propagate is False

    def test_level_filters(self):
        handler, stream = _make_handler()
        configure_logging(level=logging.WARNING, handler=handler)
        get_logger("test").info("dropped")
        get_logger("test").warning("kept")
        assert [r["message"] for r in _parse_all_logs(stream)] == ["kept"]


# ---------------------------------------------------------------------------
# Engine trace
# ---------------------------------------------------------------------------


class TestEngineTrace:
    def test_engine_call_emits_trace(self):
        handler, stream = _make_handler()
        configure_logging(level=logging.DEBUG, handler=handler)
        regime = TaxRegimeRates(
            code="normal",
            description="Normal provisions",
            base_rate=Decimal("0.25"),
            cess_rate=Decimal("0.04"),
        )
        LiabilityCalculator().calculate(taxable_income=Decimal("4000000"), regime=regime)

        traces = [r for r in _parse_all_logs(stream) if r["message"] == "ADVTAX_ENGINE_TRACE"]
        assert traces
        assert traces[0]["engine_name"] == "liability"
        assert len(traces[0]["input_fingerprint"]) > 0
