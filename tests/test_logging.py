"""Tests for the structured logging system (cuadre_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from cuadre_kernel.domain.review import ReviewStatus
from cuadre_kernel.logging_config import (
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
        assert record["logger"] == "cuadre.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("saved", extra={"version": 3, "review_status": "pendiente"})

        record = _parse_log(stream)
        assert record["version"] == 3
        assert record["review_status"] == "pendiente"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        agency_id = uuid4()
        LogContext.set(agency_id=agency_id, session_date=date(2024, 1, 3))
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["agency_id"] == str(agency_id)
        assert record["session_date"] == "2024-01-03"

    def test_amounts_enums_and_uuids_serialized(self):
        """Decimals stay exact strings; enums log their value."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info(
            "values",
            extra={
                "summary_id": uid,
                "final_difference_bs": Decimal("-49.995"),
                "status": ReviewStatus.RECHAZADO,
            },
        )

        record = _parse_log(stream)
        assert record["summary_id"] == str(uid)
        assert record["final_difference_bs"] == "-49.995"
        assert record["status"] == "rechazado"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_cuadre_exception_code_extracted(self):
        """Cuadre exceptions carry a .code attribute and structured fields."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        from cuadre_kernel.exceptions import CuadreLockedError

        try:
            raise CuadreLockedError("agency-1", "2024-01-03")
        except CuadreLockedError:
            get_logger("test").error("locked", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "CUADRE_LOCKED"
        assert record["exc_type"] == "CuadreLockedError"
        assert record["exc_agency_id"] == "agency-1"
        assert record["exc_session_date"] == "2024-01-03"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "agency_id" not in record

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # default level is INFO
        assert len(logs) == 2
        for record in logs:
            assert {"ts", "level", "logger", "message"} <= set(record)


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", actor_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "actor_id": "y"}

    def test_unknown_field_rejected(self):
        with pytest.raises(KeyError):
            LogContext.set(entry_id="n")

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(agency_id="outer")
        with LogContext.bind(agency_id="inner"):
            assert LogContext.get_all()["agency_id"] == "inner"
        assert LogContext.get_all()["agency_id"] == "outer"

    def test_bind_restores_none(self):
        """bind() restores to None if there was no previous value."""
        assert "client_id" not in LogContext.get_all()
        with LogContext.bind(client_id="temp"):
            assert LogContext.get_all()["client_id"] == "temp"
        assert "client_id" not in LogContext.get_all()

    def test_bind_skips_none(self):
        with LogContext.bind(actor_id=None, week_start=date(2024, 1, 1)):
            assert LogContext.get_all() == {"week_start": "2024-01-01"}

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            actor_id="a",
            agency_id="g",
            session_date="d",
            client_id="k",
            week_start="w",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 6
        assert ctx["week_start"] == "w"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for initialization."""

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)  # second call is no-op
        assert len(logging.getLogger("cuadre").handlers) == 1

    def test_get_logger_returns_child(self):
        assert get_logger("services.cuadre").name == "cuadre.services.cuadre"

    def test_logger_hierarchy(self):
        """Child loggers inherit the cuadre root config."""
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("engines.reconciler").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "cuadre.engines.reconciler"
