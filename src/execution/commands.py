"""
Commands accepted by the trading engine.

A closed set: the engine keeps one handler per class and refuses anything
else with TypeError.
"""

from dataclasses import dataclass

from execution.models import AlertCondition, OrderKind, Side


@dataclass(frozen=True)
class PlaceOrder:
    side: Side
    kind: OrderKind
    instrument_id: str
    quantity: int
    limit_price: float | None = None


@dataclass(frozen=True)
class CancelOrder:
    order_id: str


@dataclass(frozen=True)
class AddToWatchlist:
    instrument_id: str


@dataclass(frozen=True)
class RemoveFromWatchlist:
    instrument_id: str


@dataclass(frozen=True)
class ResetPortfolio:
    pass


@dataclass(frozen=True)
class Tick:
    """Advance the market one step.

    With no *prices* every instrument takes a random move; otherwise only the
    listed (instrument_id, price) pairs move, to exactly those prices.
    """

    prices: tuple[tuple[str, float], ...] = ()


@dataclass(frozen=True)
class AddPriceAlert:
    instrument_id: str
    price: float
    condition: AlertCondition


@dataclass(frozen=True)
class RemovePriceAlert:
    alert_id: str


Command = (
    PlaceOrder
    | CancelOrder
    | AddToWatchlist
    | RemoveFromWatchlist
    | ResetPortfolio
    | Tick
    | AddPriceAlert
    | RemovePriceAlert
)
