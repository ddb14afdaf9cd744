"""
Paper trading engine: order lifecycle, portfolio ledger, transaction log,
watchlist and price alerts behind one single-writer command processor.
Restart-safe (SQLite). No live capital.
"""

from execution.commands import (
    AddPriceAlert,
    AddToWatchlist,
    CancelOrder,
    Command,
    PlaceOrder,
    RemoveFromWatchlist,
    RemovePriceAlert,
    ResetPortfolio,
    Tick,
)
from execution.engine import CommandResult, TradingEngine
from execution.errors import (
    AlertRejected,
    CancelReason,
    InternalConsistencyViolation,
    OrderNotCancelable,
    OrderRejected,
    RejectReason,
    StaleStateError,
    StateStoreError,
)
from execution.models import (
    AlertCondition,
    Holding,
    Order,
    OrderKind,
    OrderStatus,
    PriceAlert,
    Side,
    TradingState,
    Transaction,
)
from execution.notifications import Notification, Severity
from execution.state_store import StateStore, user_state_path

__all__ = [
    "AddPriceAlert",
    "AddToWatchlist",
    "AlertCondition",
    "AlertRejected",
    "CancelOrder",
    "CancelReason",
    "Command",
    "CommandResult",
    "Holding",
    "InternalConsistencyViolation",
    "Notification",
    "Order",
    "OrderKind",
    "OrderNotCancelable",
    "OrderRejected",
    "OrderStatus",
    "PlaceOrder",
    "PriceAlert",
    "RejectReason",
    "RemoveFromWatchlist",
    "RemovePriceAlert",
    "ResetPortfolio",
    "Severity",
    "Side",
    "StaleStateError",
    "StateStore",
    "StateStoreError",
    "Tick",
    "TradingEngine",
    "TradingState",
    "Transaction",
    "user_state_path",
]
