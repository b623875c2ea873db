"""Tests for the structured logging system (hsse_kernel/logging_config.py)."""

import json
import logging
from io import StringIO
from uuid import uuid4

import pytest

from hsse_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


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
    """JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "hsse_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("transition_applied", extra={"from_state": "submitted", "seq": 3})

        record = _parse_log(stream)
        assert record["from_state"] == "submitted"
        assert record["seq"] == 3

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", tenant_id="tenant-acme", operation="self_close")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["tenant_id"] == "tenant-acme"
        assert record["operation"] == "self_close"

    def test_kernel_exception_fields_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        from hsse_kernel.exceptions import InvalidTransitionError

        try:
            raise InvalidTransitionError("safety_event", "closed", "self_close")
        except InvalidTransitionError:
            get_logger("test").error("transition_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "InvalidTransitionError"
        assert record["exc_code"] == InvalidTransitionError.code
        assert record["exc_current_status"] == "closed"
        assert record["exc_command"] == "self_close"
        assert "traceback" in record

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "event_id" not in record

    def test_uuid_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info("with_uuid", extra={"entity_id": uid})

        assert _parse_log(stream)["entity_id"] == str(uid)

    def test_level_filters_debug(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["first", "second"]


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", event_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "event_id": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_restores_previous(self):
        LogContext.set(actor_id="outer")
        with LogContext.bind(actor_id="inner"):
            assert LogContext.get_all()["actor_id"] == "inner"
        assert LogContext.get_all()["actor_id"] == "outer"

    def test_bind_restores_none(self):
        with LogContext.bind(correlation_id="temp", operation="request_closure"):
            assert LogContext.get_all()["operation"] == "request_closure"
        assert LogContext.get_all() == {}

    def test_bind_skips_none_and_unknown(self):
        with LogContext.bind(event_id=None, producer="ignored", tenant_id="t"):
            assert LogContext.get_all() == {"tenant_id": "t"}

    def test_bind_stringifies_values(self):
        uid = uuid4()
        with LogContext.bind(event_id=uid):
            assert LogContext.get_all()["event_id"] == str(uid)


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)
        installed = [
            h for h in logging.getLogger("hsse_kernel").handlers
            if getattr(h, "_hsse_structured", False)
        ]
        assert installed == [h1]

    def test_get_logger_returns_child(self):
        assert get_logger("services.lifecycle").name == "hsse_kernel.services.lifecycle"

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["logger"] == "hsse_kernel.deep.nested.module"

    def test_orchestrator_operation_is_logged_with_context(
        self, orchestrator, ctx, captured_logs,
    ):
        from tests.actors import REPORTER

        caller = ctx(REPORTER)
        orchestrator.submit_event(caller, "incident", 2, "Spill")

        committed = [r for r in captured_logs() if r["message"] == "operation_committed"]
        assert len(committed) == 1
        assert committed[0]["operation"] == "submit_event"
        assert committed[0]["correlation_id"] == caller.correlation_id
        assert committed[0]["audit_entries"] == 1
