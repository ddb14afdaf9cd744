"""
Market session: open/closed signal for the simulated exchange.

Default hours follow NSE regular trading: 09:15 – 15:30 Asia/Kolkata,
Monday to Friday, close minute inclusive. Demo mode (``always_open``) makes
the signal a constant True.
"""

from __future__ import annotations

from datetime import datetime, time, timedelta
from typing import Callable
from zoneinfo import ZoneInfo

IST = ZoneInfo("Asia/Kolkata")

DEFAULT_OPEN = time(9, 15)
DEFAULT_CLOSE = time(15, 30)


def parse_hhmm(value: str) -> time:
    """Convert '09:15' to a ``time``."""
    try:
        hh, mm = value.strip().split(":")
        return time(int(hh), int(mm))
    except ValueError as exc:
        raise ValueError(f"Invalid session time {value!r} (use HH:MM)") from exc


def _at(day: datetime, t: time) -> datetime:
    return day.replace(hour=t.hour, minute=t.minute, second=0, microsecond=0)


def is_market_open(
    now: datetime,
    *,
    open_at: time = DEFAULT_OPEN,
    close_at: time = DEFAULT_CLOSE,
) -> bool:
    """True if *now* (exchange-tz aware) is inside a weekday session."""
    if now.weekday() >= 5:
        return False
    close_end = _at(now, close_at) + timedelta(minutes=1)
    return _at(now, open_at) <= now < close_end


def next_market_open(
    now: datetime,
    *,
    open_at: time = DEFAULT_OPEN,
) -> datetime:
    """Return the next session-open datetime, skipping weekends."""
    today_open = _at(now, open_at)
    if now < today_open and now.weekday() < 5:
        return today_open

    candidate = _at(now + timedelta(days=1), open_at)
    while candidate.weekday() >= 5:
        candidate += timedelta(days=1)
    return candidate


class MarketSession:
    """Derived open/closed signal bound to a clock and exchange timezone."""

    def __init__(
        self,
        *,
        always_open: bool = True,
        tz: ZoneInfo = IST,
        open_at: time = DEFAULT_OPEN,
        close_at: time = DEFAULT_CLOSE,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._always_open = always_open
        self._tz = tz
        self._open_at = open_at
        self._close_at = close_at
        self._clock = clock or (lambda: datetime.now(self._tz))

    @property
    def always_open(self) -> bool:
        return self._always_open

    def now(self) -> datetime:
        return self._clock().astimezone(self._tz)

    def is_open(self, now: datetime | None = None) -> bool:
        if self._always_open:
            return True
        local = (now or self.now()).astimezone(self._tz)
        return is_market_open(local, open_at=self._open_at, close_at=self._close_at)

    def next_open(self, now: datetime | None = None) -> datetime:
        local = (now or self.now()).astimezone(self._tz)
        return next_market_open(local, open_at=self._open_at)
