"""Tests for market-hours helpers and the MarketSession signal (no sleep)."""

from datetime import datetime, time, timezone

import pytest

from market.session import IST, MarketSession, is_market_open, next_market_open, parse_hhmm


def _ist(y: int, m: int, d: int, h: int, mi: int) -> datetime:
    return datetime(y, m, d, h, mi, tzinfo=IST)


# ---------------------------------------------------------------------------
# is_market_open
# ---------------------------------------------------------------------------


def test_open_during_session() -> None:
    assert is_market_open(_ist(2024, 1, 3, 11, 0))


def test_open_at_exact_open() -> None:
    assert is_market_open(_ist(2024, 1, 3, 9, 15))


def test_closed_before_open() -> None:
    assert not is_market_open(_ist(2024, 1, 3, 9, 14))


def test_close_minute_inclusive() -> None:
    assert is_market_open(_ist(2024, 1, 3, 15, 30))
    assert not is_market_open(_ist(2024, 1, 3, 15, 31))


def test_closed_on_weekend() -> None:
    assert not is_market_open(_ist(2024, 1, 6, 11, 0))  # Saturday
    assert not is_market_open(_ist(2024, 1, 7, 11, 0))  # Sunday


# ---------------------------------------------------------------------------
# next_market_open
# ---------------------------------------------------------------------------


def test_next_open_same_day_before_open() -> None:
    assert next_market_open(_ist(2024, 1, 3, 8, 0)) == _ist(2024, 1, 3, 9, 15)


def test_next_open_after_close_is_tomorrow() -> None:
    assert next_market_open(_ist(2024, 1, 3, 16, 0)) == _ist(2024, 1, 4, 9, 15)


def test_next_open_friday_evening_skips_weekend() -> None:
    assert next_market_open(_ist(2024, 1, 5, 16, 0)) == _ist(2024, 1, 8, 9, 15)


# ---------------------------------------------------------------------------
# parse_hhmm / MarketSession
# ---------------------------------------------------------------------------


def test_parse_hhmm() -> None:
    assert parse_hhmm("09:15") == time(9, 15)


@pytest.mark.parametrize("bad", ["9", "25:00", "ab:cd"])
def test_parse_hhmm_rejects_garbage(bad: str) -> None:
    with pytest.raises(ValueError, match="Invalid session time"):
        parse_hhmm(bad)


def test_always_open_ignores_clock() -> None:
    session = MarketSession(always_open=True, clock=lambda: _ist(2024, 1, 6, 3, 0))
    assert session.is_open()


def test_session_converts_utc_clock_to_exchange_time() -> None:
    # 04:30 UTC == 10:00 IST on a Wednesday
    session = MarketSession(always_open=False, clock=lambda: datetime(2024, 1, 3, 4, 30, tzinfo=timezone.utc))
    assert session.is_open()
    assert session.now().tzinfo == IST


def test_session_custom_hours() -> None:
    session = MarketSession(always_open=False, open_at=time(10, 0), close_at=time(11, 0))
    assert not session.is_open(_ist(2024, 1, 3, 9, 30))
    assert session.is_open(_ist(2024, 1, 3, 10, 30))
    assert session.next_open(_ist(2024, 1, 3, 9, 30)) == _ist(2024, 1, 3, 10, 0)
