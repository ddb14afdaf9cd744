"""Order, Transaction, Holding, PriceAlert for the paper trading engine."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from market.contracts import Instrument


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class OrderKind(str, Enum):
    MARKET = "MARKET"
    LIMIT = "LIMIT"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    EXECUTED = "EXECUTED"
    CANCELED = "CANCELED"

    @property
    def is_terminal(self) -> bool:
        return self is not OrderStatus.PENDING


class AlertCondition(str, Enum):
    ABOVE = "ABOVE"
    BELOW = "BELOW"


@dataclass
class Order:
    id: str
    side: Side
    kind: OrderKind
    instrument_id: str
    symbol: str
    quantity: int
    created_at: datetime
    status: OrderStatus = OrderStatus.PENDING
    limit_price: float | None = None
    executed_at: datetime | None = None
    executed_price: float | None = None

    def copy(self) -> "Order":
        return replace(self)


@dataclass(frozen=True)
class Transaction:
    id: str
    order_id: str
    side: Side
    instrument_id: str
    symbol: str
    quantity: int
    price: float
    total: float
    timestamp: datetime


@dataclass
class Holding:
    instrument_id: str
    symbol: str
    quantity: int
    average_buy_price: float
    invested_amount: float

    def copy(self) -> "Holding":
        return replace(self)


@dataclass
class PriceAlert:
    id: str
    instrument_id: str
    symbol: str
    price: float
    condition: AlertCondition
    created_at: datetime
    active: bool = True
    triggered_at: datetime | None = None

    def copy(self) -> "PriceAlert":
        return replace(self)

    def is_triggered_by(self, current_price: float) -> bool:
        if self.condition is AlertCondition.ABOVE:
            return current_price >= self.price
        return current_price <= self.price


@dataclass
class TradingState:
    """Full state bundle: what gets committed after every mutation."""

    cash: float
    initial_cash: float
    holdings: list[Holding] = field(default_factory=list)
    orders: list[Order] = field(default_factory=list)
    transactions: list[Transaction] = field(default_factory=list)
    watchlist: list[str] = field(default_factory=list)
    instruments: list[Instrument] = field(default_factory=list)
    alerts: list[PriceAlert] = field(default_factory=list)
