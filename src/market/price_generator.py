"""
Price generator: one simulated tick per instrument.

Each tick draws a uniform percentage move from a symmetric range, rounds the
new price to paise/cents, floors it at a minimal positive price and widens
the day's high/low to include it. Change figures are always relative to the
previous close, not the previous tick.
"""

from __future__ import annotations

import math
import random
from types import MappingProxyType
from typing import Iterable, Mapping

from market.contracts import Instrument

DEFAULT_MAX_MOVE_PCT = 1.5
DEFAULT_MIN_PRICE = 0.01


def next_price(current: float, delta_pct: float, *, min_price: float = DEFAULT_MIN_PRICE) -> float:
    """Apply *delta_pct* (e.g. -0.8 for -0.8%) to *current*, floored at *min_price*."""
    moved = round(current * (1 + delta_pct / 100), 2)
    return max(moved, min_price)


def apply_tick(instrument: Instrument, new_price: float) -> Instrument:
    """Return a copy of *instrument* updated to *new_price* with derived fields."""
    updated = instrument.copy()
    updated.current_price = new_price
    change = new_price - instrument.previous_close
    updated.change = round(change, 2)
    if instrument.previous_close > 0:
        updated.change_percent = round(change / instrument.previous_close * 100, 2)
    else:
        updated.change_percent = 0.0
    updated.day_high = max(instrument.day_high, new_price)
    updated.day_low = min(instrument.day_low, new_price)
    return updated


class PriceGenerator:
    """Owns the instrument table. Only ``tick`` rewrites market fields."""

    def __init__(
        self,
        instruments: Iterable[Instrument],
        *,
        max_move_pct: float = DEFAULT_MAX_MOVE_PCT,
        min_price: float = DEFAULT_MIN_PRICE,
        rng: random.Random | None = None,
    ) -> None:
        self._instruments: dict[str, Instrument] = {i.id: i.copy() for i in instruments}
        self._max_move_pct = max_move_pct
        self._min_price = min_price
        self._rng = rng or random.Random()
        self._ticks = 0

    @property
    def ticks(self) -> int:
        return self._ticks

    def get(self, instrument_id: str) -> Instrument | None:
        return self._instruments.get(instrument_id)

    def __contains__(self, instrument_id: object) -> bool:
        return instrument_id in self._instruments

    def table(self) -> Mapping[str, Instrument]:
        """Read-only live view keyed by instrument id."""
        return MappingProxyType(self._instruments)

    def instruments(self) -> list[Instrument]:
        """Snapshot copies in catalog order."""
        return [i.copy() for i in self._instruments.values()]

    def by_symbol(self, symbol: str) -> Instrument | None:
        wanted = symbol.strip().upper()
        for inst in self._instruments.values():
            if inst.symbol.upper() == wanted:
                return inst
        return None

    def tick(self) -> list[Instrument]:
        """Move every instrument once. Returns the new snapshots."""
        for inst_id, inst in list(self._instruments.items()):
            delta = self._rng.uniform(-self._max_move_pct, self._max_move_pct)
            price = next_price(inst.current_price, delta, min_price=self._min_price)
            self._instruments[inst_id] = apply_tick(inst, price)
        self._ticks += 1
        return self.instruments()

    def set_price(self, instrument_id: str, price: float) -> Instrument:
        """Force a tick for one instrument to an exact price (replay and tests)."""
        if not math.isfinite(price):
            raise ValueError(f"Price for {instrument_id} must be a finite number, got {price!r}")
        inst = self._instruments[instrument_id]
        updated = apply_tick(inst, max(round(price, 2), self._min_price))
        self._instruments[instrument_id] = updated
        return updated.copy()

    def replace_all(self, instruments: Iterable[Instrument]) -> None:
        """Rehydrate from a persisted snapshot."""
        self._instruments = {i.id: i.copy() for i in instruments}
