"""Instrument: identity plus the simulated market fields a tick rewrites."""

from dataclasses import dataclass, field, replace


@dataclass
class Instrument:
    id: str
    symbol: str
    name: str
    exchange: str
    current_price: float
    previous_close: float
    open: float
    day_high: float
    day_low: float
    volume: int
    sector: str = ""
    change: float = field(default=0.0)
    change_percent: float = field(default=0.0)

    def copy(self) -> "Instrument":
        return replace(self)
