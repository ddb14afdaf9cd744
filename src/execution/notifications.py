"""
User-facing notifications emitted on every state transition.

Every rejection reason maps to its own text; a user never sees a generic
"order failed" without the reason.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from execution.errors import (
    AlertRejected,
    AlertRejectReason,
    CancelReason,
    OrderNotCancelable,
    OrderRejected,
    RejectReason,
)
from execution.models import Order, OrderKind, PriceAlert
from market.contracts import Instrument

CURRENCY_SYMBOL = "₹"


class Severity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    title: str
    description: str
    severity: Severity = Severity.INFO
    kind: str = ""


REJECT_TEXT: dict[RejectReason, str] = {
    RejectReason.UNKNOWN_INSTRUMENT: "Stock not found",
    RejectReason.INVALID_QUANTITY: "Quantity must be a positive whole number of shares",
    RejectReason.INVALID_LIMIT_PRICE: "Limit price must be a positive number",
    RejectReason.INSUFFICIENT_SHARES: "Not enough shares to sell",
    RejectReason.INSUFFICIENT_FUNDS: "Insufficient funds",
    RejectReason.MARKET_CLOSED: "Market is closed, orders are not being accepted",
}

CANCEL_TEXT: dict[CancelReason, str] = {
    CancelReason.ALREADY_TERMINAL: "Order is already {status} and can no longer be canceled",
    CancelReason.UNKNOWN_ORDER: "No such order",
}

ALERT_TEXT: dict[AlertRejectReason, str] = {
    AlertRejectReason.UNKNOWN_INSTRUMENT: "Stock not found",
    AlertRejectReason.INVALID_PRICE: "Please enter a valid alert price",
    AlertRejectReason.UNKNOWN_ALERT: "No such alert",
}


def money(value: float) -> str:
    return f"{CURRENCY_SYMBOL}{value:,.2f}"


def order_placed(order: Order) -> Notification:
    at = money(order.limit_price) if order.kind is OrderKind.LIMIT and order.limit_price is not None else "market price"
    return Notification(
        "Order Placed",
        f"{order.side.value} {order.quantity} {order.symbol} at {at}",
        Severity.INFO,
        "order_placed",
    )


def order_executed(order: Order) -> Notification:
    title = "Limit Order Executed" if order.kind is OrderKind.LIMIT else "Order Executed"
    price = order.executed_price if order.executed_price is not None else 0.0
    return Notification(
        title,
        f"{order.side.value} {order.quantity} {order.symbol} at {money(price)}",
        Severity.SUCCESS,
        "order_executed",
    )


def order_canceled(order: Order) -> Notification:
    return Notification(
        "Order Canceled",
        f"{order.side.value} order for {order.quantity} {order.symbol} has been canceled",
        Severity.INFO,
        "order_canceled",
    )


def order_rejected(exc: OrderRejected) -> Notification:
    return Notification("Order Failed", REJECT_TEXT[exc.reason], Severity.ERROR, "order_rejected")


def cancel_rejected(exc: OrderNotCancelable) -> Notification:
    text = CANCEL_TEXT[exc.reason].format(status=(exc.status or "").lower())
    return Notification("Cancel Failed", text, Severity.WARNING, "cancel_rejected")


def watchlist_added(instrument: Instrument) -> Notification:
    return Notification(
        "Added to Watchlist",
        f"{instrument.name} ({instrument.symbol}) added to your watchlist",
        Severity.INFO,
        "watchlist_added",
    )


def watchlist_removed(instrument: Instrument) -> Notification:
    return Notification(
        "Removed from Watchlist",
        f"{instrument.name} ({instrument.symbol}) removed from your watchlist",
        Severity.INFO,
        "watchlist_removed",
    )


def alert_set(alert: PriceAlert) -> Notification:
    return Notification(
        "Alert Set",
        f"You'll be notified when {alert.symbol} goes {alert.condition.value.lower()} {money(alert.price)}",
        Severity.INFO,
        "alert_set",
    )


def alert_removed(alert: PriceAlert) -> Notification:
    return Notification("Alert Removed", f"Price alert for {alert.symbol} removed", Severity.INFO, "alert_removed")


def alert_triggered(alert: PriceAlert) -> Notification:
    return Notification(
        f"Price Alert: {alert.symbol}",
        f"{alert.symbol} is now {alert.condition.value.lower()} {money(alert.price)}",
        Severity.WARNING,
        "alert_triggered",
    )


def alert_rejected(exc: AlertRejected) -> Notification:
    return Notification("Alert Failed", ALERT_TEXT[exc.reason], Severity.ERROR, "alert_rejected")


def portfolio_reset(cash: float, canceled: int) -> Notification:
    suffix = f"; {canceled} pending order(s) canceled" if canceled else ""
    return Notification(
        "Portfolio Reset",
        f"Cash restored to {money(cash)}{suffix}",
        Severity.INFO,
        "portfolio_reset",
    )
