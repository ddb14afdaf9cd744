"""Pytest fixtures: a small instrument table, a fixed clock, deterministic engines."""

import random
from datetime import datetime, timedelta, timezone

import pytest

from execution.engine import TradingEngine
from market.contracts import Instrument
from market.session import MarketSession


def make_instrument(
    inst_id: str,
    symbol: str,
    price: float,
    *,
    previous_close: float | None = None,
    name: str | None = None,
) -> Instrument:
    prev = price if previous_close is None else previous_close
    return Instrument(
        id=inst_id,
        symbol=symbol,
        name=name or f"{symbol.title()} Ltd",
        exchange="NSE",
        current_price=price,
        previous_close=prev,
        open=prev,
        day_high=max(price, prev),
        day_low=min(price, prev),
        volume=1_000_000,
        sector="Test",
    )


class FakeClock:
    """Callable clock that moves forward only when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def instruments() -> list[Instrument]:
    """Three NSE stocks; REL at 100.00 keeps the arithmetic readable."""
    return [
        make_instrument("1", "REL", 100.0),
        make_instrument("2", "TCS", 3945.6),
        make_instrument("3", "ITC", 438.55),
    ]


@pytest.fixture
def clock() -> FakeClock:
    # Wednesday 2024-01-03 10:00 IST
    return FakeClock(datetime(2024, 1, 3, 4, 30, tzinfo=timezone.utc))


@pytest.fixture
def engine(instruments: list[Instrument], clock: FakeClock) -> TradingEngine:
    """Always-open engine with 10,000 cash and no store."""
    return TradingEngine(
        instruments,
        initial_cash=10_000.0,
        clock=clock,
        rng=random.Random(7),
    )


@pytest.fixture
def closed_session(clock: FakeClock) -> MarketSession:
    """Real NSE hours; the fixed clock is moved to Saturday so it is closed."""
    clock.now = datetime(2024, 1, 6, 4, 30, tzinfo=timezone.utc)
    return MarketSession(always_open=False, clock=clock)
