"""Tests for logging infrastructure."""

import json
import logging
from io import StringIO
from uuid import uuid4

import pytest

from openai_orch.errors import CapabilityFailure
from openai_orch.observability import (
    set_request_id,
    get_request_id,
    set_attempt,
    get_attempt,
    configure_logging,
    get_logger,
    LogContext,
)
from openai_orch.orchestrator import RequestId
from openai_orch.requests import MockRequest
from openai_orch.vocabulary import RequestStatus


@pytest.fixture(autouse=True)
def restore_package_logger():
    """Undo configure_logging() so other tests see default logging."""
    root = logging.getLogger("openai_orch")
    handlers, level, propagate = list(root.handlers), root.level, root.propagate
    set_request_id(None)
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    root.propagate = propagate
    set_request_id(None)


def json_lines(stream: StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line]


class TestRequestContext:
    """Tests for request id and attempt management."""

    def test_set_and_get(self):
        """Can set and get the request id."""
        rid = str(uuid4())
        set_request_id(rid)
        assert get_request_id() == rid

    def test_none_when_not_set(self):
        """Returns None when not set."""
        assert get_request_id() is None
        assert get_attempt() is None

    def test_request_id_converted_to_string(self):
        """RequestId objects are stored as their string form."""
        rid = RequestId()
        set_request_id(rid)
        assert get_request_id() == str(rid)

    def test_attempt_needs_a_request(self):
        """Attempts only stick while a request is bound."""
        set_attempt(3)
        assert get_attempt() is None

        set_request_id("req-1")
        set_attempt(3)
        assert get_attempt() == 3

    def test_new_request_resets_attempt(self):
        """Binding another request forgets the previous attempt."""
        set_request_id("req-1")
        set_attempt(2)
        set_request_id("req-2")
        assert get_attempt() is None


class TestLogContext:
    """Tests for log context manager."""

    def test_context_sets_request_id(self):
        """Context manager sets the request id."""
        rid = str(uuid4())
        with LogContext(rid):
            assert get_request_id() == rid

    def test_context_restores_previous(self):
        """Context manager restores the previous id and attempt."""
        set_request_id("old")
        set_attempt(1)

        with LogContext("new") as ctx:
            ctx.set_attempt(4)
            assert (get_request_id(), get_attempt()) == ("new", 4)

        assert (get_request_id(), get_attempt()) == ("old", 1)


class TestFormatters:
    """Tests for the JSON and readable formats."""

    def test_json_format(self):
        """JSON lines carry the bound request and attempt."""
        stream = StringIO()
        configure_logging(json_format=True, stream=stream)

        with LogContext("test-123") as ctx:
            ctx.set_attempt(2)
            get_logger("json_test").info("Test message")

        entry = json_lines(stream)[0]
        assert entry["message"] == "Test message"
        assert entry["request_id"] == "test-123"
        assert entry["attempt"] == 2
        assert entry["level"] == "INFO"
        assert "status" not in entry

    def test_json_omits_request_fields_when_unbound(self):
        """Records outside a request have no request fields."""
        stream = StringIO()
        configure_logging(json_format=True, stream=stream)

        get_logger("json_test").info("idle")

        entry = json_lines(stream)[0]
        assert "request_id" not in entry
        assert "attempt" not in entry

    def test_status_rendered_by_value(self):
        """A RequestStatus passed via extra is written as its name."""
        stream = StringIO()
        configure_logging(json_format=True, stream=stream)

        get_logger("json_test").warning("retry", extra={"status": RequestStatus.RETRYING})

        assert json_lines(stream)[0]["status"] == "RETRYING"

    def test_explicit_request_id_wins(self):
        """A request_id passed via extra overrides the bound one."""
        stream = StringIO()
        configure_logging(json_format=True, stream=stream)

        set_request_id("bound")
        get_logger("json_test").info("settled", extra={"request_id": "explicit"})

        assert json_lines(stream)[0]["request_id"] == "explicit"

    def test_readable_format(self):
        """Readable lines show the short id, attempt and status."""
        stream = StringIO()
        configure_logging(json_format=False, stream=stream)

        with LogContext("abcd1234-5678") as ctx:
            ctx.set_attempt(1)
            get_logger("readable_test").warning(
                "Test message", extra={"status": RequestStatus.RETRYING}
            )

        output = stream.getvalue()
        assert "[abcd1234#1 RETRYING]" in output
        assert "Test message" in output

    def test_readable_format_unbound(self):
        """Readable lines outside a request use a placeholder."""
        stream = StringIO()
        configure_logging(stream=stream)

        get_logger("readable_test").info("idle")

        assert "[-]" in stream.getvalue()


class TestConfigureLogging:
    """Tests for logging configuration."""

    def test_logger_namespace(self):
        """Component loggers live under openai_orch."""
        configure_logging(level=logging.DEBUG)
        assert get_logger("test").name == "openai_orch.test"

    def test_level_from_env(self, monkeypatch):
        """OPENAI_ORCH_LOG_LEVEL sets the level when none is passed."""
        monkeypatch.setenv("OPENAI_ORCH_LOG_LEVEL", "warning")
        assert configure_logging().level == logging.WARNING

    def test_level_by_name(self):
        """Level names are accepted."""
        assert configure_logging(level="debug").level == logging.DEBUG

    def test_unknown_level(self):
        """Unknown level names are rejected."""
        with pytest.raises(ValueError):
            configure_logging(level="chatty")


class TestDispatcherRecords:
    """Records emitted by the dispatcher while it works on a request."""

    def test_success_record(self):
        """The success record carries the id, attempt and status."""
        from openai_orch.orchestrator import create_mock_orchestrator

        stream = StringIO()
        configure_logging(level=logging.DEBUG, json_format=True, stream=stream)

        with create_mock_orchestrator() as orch:
            rid = orch.submit(MockRequest(payload="ok"))
            orch.get_response(rid, timeout=5)

        succeeded = [e for e in json_lines(stream) if "succeeded" in e["message"]]
        assert succeeded
        assert succeeded[0]["request_id"] == str(rid)
        assert succeeded[0]["attempt"] == 0
        assert succeeded[0]["status"] == "SUCCEEDED"

    def test_retry_records_follow_attempts(self):
        """Each retry is logged under the attempt that failed."""
        from openai_orch.orchestrator import create_mock_orchestrator

        stream = StringIO()
        configure_logging(level=logging.INFO, json_format=True, stream=stream)

        with create_mock_orchestrator(max_retries=2) as orch:
            rid = orch.submit(MockRequest(outcomes=[CapabilityFailure, CapabilityFailure]))
            orch.get_response(rid, timeout=5)

        records = [e for e in json_lines(stream) if e.get("request_id") == str(rid)]
        assert [(e["attempt"], e["status"]) for e in records] == [
            (0, "RETRYING"),
            (1, "RETRYING"),
            (2, "SUCCEEDED"),
        ]
