"""Tests for structured JSON event logger."""

import io
import json
from unittest import mock

import pytest

from cli.structured_log import StructuredEventLogger
from execution.notifications import Notification, Severity


@pytest.fixture
def buf() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def logger(buf: io.StringIO) -> StructuredEventLogger:
    return StructuredEventLogger("alice", enabled=True, stream=buf)


class TestEmit:
    """Basic event emission and format."""

    def test_session_start_json(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.session_start(tick_seconds=3.0, always_open=True, instruments=10)
        record = json.loads(buf.getvalue().strip())
        assert record["event"] == "session_start"
        assert record["user"] == "alice"
        assert record["tick_seconds"] == 3.0
        assert record["instruments"] == 10
        assert "ts" in record

    def test_notification_kind_becomes_event(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        note = Notification("Order Executed", "BUY 10 REL at ₹100.00", Severity.SUCCESS, "order_executed")
        logger.notification(note)
        record = json.loads(buf.getvalue().strip())
        assert record["event"] == "order_executed"
        assert record["title"] == "Order Executed"
        assert record["severity"] == "success"

    def test_notification_without_kind(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.notification(Notification("Hello", "world"))
        assert json.loads(buf.getvalue().strip())["event"] == "notification"

    def test_tick(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.tick(ticks=5, executions=2)
        record = json.loads(buf.getvalue().strip())
        assert (record["event"], record["ticks"], record["executions"]) == ("tick", 5, 2)

    def test_market_closed(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.market_closed(next_open="2024-01-08T09:15:00+05:30", wait_hours=65.04)
        record = json.loads(buf.getvalue().strip())
        assert record["event"] == "market_closed"
        assert record["wait_hours"] == 65.0

    def test_error_event(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.error(message="DB locked", detail="OperationalError")
        record = json.loads(buf.getvalue().strip())
        assert record["event"] == "error"
        assert record["message"] == "DB locked"
        assert record["detail"] == "OperationalError"

    def test_shutdown(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        record = logger.shutdown(ticks=42)
        assert isinstance(record, dict)
        assert json.loads(buf.getvalue().strip())["ticks"] == 42


class TestDisabled:
    """When structured_logs=False, nothing is written to stream."""

    def test_no_output_when_disabled(self, buf: io.StringIO) -> None:
        logger = StructuredEventLogger("alice", enabled=False, stream=buf)
        logger.session_start(3.0, True, 10)
        logger.tick(1, 0)
        logger.shutdown(1)
        assert buf.getvalue() == ""


class TestWebhook:
    """Only trade-level events are POSTed; failures are logged, not raised."""

    def test_posts_alert_events_only(self, buf: io.StringIO) -> None:
        logger = StructuredEventLogger("alice", webhook_url="http://hooks.local/x", stream=buf)
        with mock.patch("cli.structured_log.urllib.request.urlopen") as urlopen:
            logger.tick(1, 0)
            logger.notification(Notification("Order Failed", "Insufficient funds", Severity.ERROR, "order_rejected"))
        assert urlopen.call_count == 1
        request = urlopen.call_args[0][0]
        assert request.full_url == "http://hooks.local/x"
        assert json.loads(request.data)["event"] == "order_rejected"

    def test_webhook_failure_is_swallowed(self, buf: io.StringIO) -> None:
        logger = StructuredEventLogger("alice", webhook_url="http://hooks.local/x", stream=buf)
        with mock.patch("cli.structured_log.urllib.request.urlopen", side_effect=OSError("down")):
            record = logger.error("boom")
        assert record["event"] == "error"
