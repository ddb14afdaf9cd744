"""
Order book: admission checks, cancellation, and the matching pass.

PENDING -> EXECUTED | CANCELED, terminal states absorbing. Placement never
executes synchronously; every fill goes through ``match`` so MARKET and
LIMIT orders share one execution path. LIMIT prices are trigger thresholds:
the fill is always at the live tick price.
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Mapping

from execution.errors import (
    CancelReason,
    InternalConsistencyViolation,
    OrderNotCancelable,
    OrderRejected,
    RejectReason,
)
from execution.ledger import PortfolioLedger, to_money
from execution.models import Order, OrderKind, OrderStatus, Side, Transaction
from execution.transaction_log import TransactionLog
from market.contracts import Instrument

logger = logging.getLogger("papertrade.orders")


@dataclass(frozen=True)
class Execution:
    order: Order
    transaction: Transaction


@dataclass
class MatchResult:
    executions: list[Execution] = field(default_factory=list)
    violations: list[InternalConsistencyViolation] = field(default_factory=list)


def _is_positive_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _is_positive_number(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0


def limit_triggered(order: Order, price: float) -> bool:
    """MARKET always; LIMIT BUY at or below the limit, LIMIT SELL at or above."""
    if order.kind is OrderKind.MARKET:
        return True
    if order.limit_price is None:
        return False
    if order.side is Side.BUY:
        return price <= order.limit_price
    return price >= order.limit_price


class OrderBook:
    """Holds every order ever admitted, in insertion order."""

    def __init__(self, orders: Iterable[Order] = ()) -> None:
        self._orders: list[Order] = [o.copy() for o in orders]

    def __len__(self) -> int:
        return len(self._orders)

    def get(self, order_id: str) -> Order | None:
        for o in self._orders:
            if o.id == order_id:
                return o.copy()
        return None

    def orders(self, status: OrderStatus | None = None) -> list[Order]:
        return [o.copy() for o in self._orders if status is None or o.status is status]

    def pending(self) -> list[Order]:
        """PENDING orders oldest first; ties keep insertion order."""
        live = [o for o in self._orders if o.status is OrderStatus.PENDING]
        return sorted(live, key=lambda o: o.created_at)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def place(
        self,
        side: Side,
        kind: OrderKind,
        instrument_id: str,
        quantity: int,
        limit_price: float | None = None,
        *,
        instruments: Mapping[str, Instrument],
        ledger: PortfolioLedger,
        now: datetime,
        market_open: bool = True,
        reject_when_closed: bool = False,
    ) -> Order:
        """Validate and admit a new PENDING order. Raises OrderRejected."""
        side = Side(side)
        kind = OrderKind(kind)

        instrument = instruments.get(instrument_id)
        if instrument is None:
            raise OrderRejected(RejectReason.UNKNOWN_INSTRUMENT, str(instrument_id))
        if not _is_positive_int(quantity):
            raise OrderRejected(RejectReason.INVALID_QUANTITY, repr(quantity))
        if kind is OrderKind.LIMIT and not _is_positive_number(limit_price):
            raise OrderRejected(RejectReason.INVALID_LIMIT_PRICE, repr(limit_price))
        if side is Side.SELL:
            held = ledger.held_quantity(instrument_id)
            if held < quantity:
                raise OrderRejected(RejectReason.INSUFFICIENT_SHARES, f"hold {held}, requested {quantity}")
        else:
            estimate = quantity * instrument.current_price
            if estimate > ledger.cash:
                raise OrderRejected(
                    RejectReason.INSUFFICIENT_FUNDS,
                    f"need {estimate:.2f}, have {ledger.cash:.2f}",
                )
        if reject_when_closed and not market_open:
            raise OrderRejected(RejectReason.MARKET_CLOSED)

        order = Order(
            id=str(uuid.uuid4()),
            side=side,
            kind=kind,
            instrument_id=instrument.id,
            symbol=instrument.symbol,
            quantity=quantity,
            created_at=now,
            limit_price=float(limit_price) if kind is OrderKind.LIMIT else None,
        )
        self._orders.append(order)
        logger.info("Order admitted %s %s %d %s (%s)", order.side.value, order.kind.value, quantity, order.symbol, order.id)
        return order.copy()

    def cancel(self, order_id: str) -> Order:
        """PENDING -> CANCELED. Raises OrderNotCancelable otherwise."""
        for order in self._orders:
            if order.id != order_id:
                continue
            if order.status.is_terminal:
                raise OrderNotCancelable(order_id, CancelReason.ALREADY_TERMINAL, order.status.value)
            order.status = OrderStatus.CANCELED
            logger.info("Order canceled %s", order_id)
            return order.copy()
        raise OrderNotCancelable(order_id, CancelReason.UNKNOWN_ORDER)

    def cancel_all_pending(self) -> list[Order]:
        canceled = []
        for order in self._orders:
            if order.status is OrderStatus.PENDING:
                order.status = OrderStatus.CANCELED
                canceled.append(order.copy())
        return canceled

    def drop_executed(self) -> int:
        """Remove EXECUTED orders (portfolio reset clears their transactions)."""
        before = len(self._orders)
        self._orders = [o for o in self._orders if o.status is not OrderStatus.EXECUTED]
        return before - len(self._orders)

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def match(
        self,
        instruments: Mapping[str, Instrument],
        ledger: PortfolioLedger,
        log: TransactionLog,
        *,
        market_open: bool,
        now: datetime,
    ) -> MatchResult:
        """Execute every PENDING order whose trigger holds at the live price.

        Nothing executes while the session is closed. A consistency violation
        skips that order only; it stays PENDING and the pass continues.
        """
        result = MatchResult()
        if not market_open:
            return result

        for order in self.pending():
            instrument = instruments.get(order.instrument_id)
            if instrument is None:
                self._flag(result, InternalConsistencyViolation(order.id, f"instrument {order.instrument_id} missing at execution"))
                continue

            price = instrument.current_price
            if not limit_triggered(order, price):
                continue

            try:
                if order.side is Side.BUY:
                    total = ledger.apply_buy(order.instrument_id, order.symbol, order.quantity, price)
                else:
                    total = ledger.apply_sell(order.instrument_id, order.quantity, price, order_id=order.id)
            except InternalConsistencyViolation as exc:
                self._flag(result, exc)
                continue

            order.status = OrderStatus.EXECUTED
            order.executed_at = now
            order.executed_price = price
            txn = Transaction(
                id=str(uuid.uuid4()),
                order_id=order.id,
                side=order.side,
                instrument_id=order.instrument_id,
                symbol=order.symbol,
                quantity=order.quantity,
                price=price,
                total=to_money(total),
                timestamp=now,
            )
            log.record(txn)
            result.executions.append(Execution(order=order.copy(), transaction=txn))
            logger.info("Order executed %s %d %s @ %.2f (%s)", order.side.value, order.quantity, order.symbol, price, order.id)
        return result

    @staticmethod
    def _flag(result: MatchResult, violation: InternalConsistencyViolation) -> None:
        logger.error("Internal consistency violation, execution skipped: %s", violation)
        result.violations.append(violation)
