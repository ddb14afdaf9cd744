"""
Machine-readable event stream for a trading session.

One JSON object per line (stderr by default) so a log shipper can pick the
session up without parsing human output. Engine notifications are
forwarded with their ``kind`` as the event name.

When a webhook URL is configured, fills, rejections, triggered price
alerts and errors are also POSTed there as JSON.
"""

from __future__ import annotations

import json
import logging
import sys
import urllib.request
from datetime import datetime, timezone
from typing import Any, TextIO

from execution.notifications import Notification

logger = logging.getLogger("papertrade.events")

WEBHOOK_EVENTS = frozenset({"order_executed", "order_rejected", "alert_triggered", "error"})
WEBHOOK_TIMEOUT_SECONDS = 5


class StructuredEventLogger:
    """JSON-lines session events for one user, plus an optional webhook."""

    def __init__(
        self,
        user: str,
        *,
        enabled: bool = True,
        webhook_url: str = "",
        stream: TextIO | None = None,
    ) -> None:
        self._user = user
        self._enabled = enabled
        self._webhook_url = webhook_url.strip()
        self._stream = stream if stream is not None else sys.stderr

    def _emit(self, event: str, **fields: Any) -> dict:
        record = {"ts": datetime.now(timezone.utc).isoformat(), "event": event, "user": self._user}
        record.update(fields)
        if self._enabled:
            print(json.dumps(record, ensure_ascii=False), file=self._stream, flush=True)
        if self._webhook_url and event in WEBHOOK_EVENTS:
            self._post(record)
        return record

    def _post(self, record: dict) -> None:
        body = json.dumps(record).encode("utf-8")
        req = urllib.request.Request(
            self._webhook_url,
            data=body,
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            urllib.request.urlopen(req, timeout=WEBHOOK_TIMEOUT_SECONDS)
        except Exception as exc:
            logger.warning("Webhook POST to %s failed: %s", self._webhook_url, exc)

    def session_start(self, tick_seconds: float, always_open: bool, instruments: int) -> dict:
        return self._emit("session_start", tick_seconds=tick_seconds, always_open=always_open, instruments=instruments)

    def notification(self, note: Notification) -> dict:
        """Engine subscriber: the notification's kind becomes the event name."""
        return self._emit(
            note.kind or "notification",
            title=note.title,
            description=note.description,
            severity=note.severity.value,
        )

    def tick(self, ticks: int, executions: int) -> dict:
        return self._emit("tick", ticks=ticks, executions=executions)

    def market_closed(self, next_open: str, wait_hours: float) -> dict:
        return self._emit("market_closed", next_open=next_open, wait_hours=round(wait_hours, 1))

    def error(self, message: str, detail: str = "") -> dict:
        return self._emit("error", message=message, detail=detail)

    def shutdown(self, ticks: int) -> dict:
        return self._emit("shutdown", ticks=ticks)
