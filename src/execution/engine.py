"""
Trading engine: the single writer for one user's state bundle.

Every command goes through ``dispatch``, which holds one lock around the
whole bundle (ledger, order book, transaction log, watchlist, alerts,
instrument table), runs the handler for the command's type, runs the
matching pass where the command calls for it, commits the bundle to the
state store, and finally publishes notifications to subscribers outside
the lock.
"""

from __future__ import annotations

import logging
import math
import random
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, Mapping

from execution import notifications as note
from execution.alerts import PriceAlertBook
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
from execution.errors import (
    AlertRejected,
    InternalConsistencyViolation,
    OrderNotCancelable,
    OrderRejected,
    StaleStateError,
)
from execution.ledger import PortfolioLedger, PortfolioValuation
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
from execution.notifications import Notification
from execution.order_book import Execution, OrderBook
from execution.state_store import StateStore
from execution.transaction_log import TransactionLog
from execution.watchlist import Watchlist
from market.contracts import Instrument
from market.price_generator import DEFAULT_MAX_MOVE_PCT, DEFAULT_MIN_PRICE, PriceGenerator
from market.session import MarketSession

logger = logging.getLogger("papertrade.engine")

DEFAULT_INITIAL_CASH = 1_000_000.0
COMMIT_ATTEMPTS = 3


@dataclass
class CommandResult:
    """Synchronous outcome of one dispatched command."""

    ok: bool
    changed: bool = False
    order: Order | None = None
    alert: PriceAlert | None = None
    error: Exception | None = None
    notifications: list[Notification] = field(default_factory=list)
    executions: list[Execution] = field(default_factory=list)
    violations: list[InternalConsistencyViolation] = field(default_factory=list)
    triggered_alerts: list[PriceAlert] = field(default_factory=list)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _merge_instruments(catalog: Iterable[Instrument], saved: Iterable[Instrument]) -> list[Instrument]:
    """Saved snapshots win; catalog entries not yet saved are appended."""
    merged = {i.id: i for i in saved}
    for inst in catalog:
        merged.setdefault(inst.id, inst)
    return list(merged.values())


class TradingEngine:
    """Serialized command processor over one user's trading state."""

    def __init__(
        self,
        instruments: Iterable[Instrument],
        *,
        initial_cash: float = DEFAULT_INITIAL_CASH,
        state: TradingState | None = None,
        store: StateStore | None = None,
        session: MarketSession | None = None,
        clock: Callable[[], datetime] | None = None,
        rng: random.Random | None = None,
        max_move_pct: float = DEFAULT_MAX_MOVE_PCT,
        min_price: float = DEFAULT_MIN_PRICE,
        reject_when_closed: bool = False,
    ) -> None:
        catalog = list(instruments)
        self._catalog = catalog
        self._store = store
        self._session = session or MarketSession(always_open=True)
        self._clock = clock or _utc_now
        self._reject_when_closed = reject_when_closed
        self._lock = threading.Lock()
        self._subscribers: list[Callable[[Notification], None]] = []
        self._generation = 0

        self._market = PriceGenerator(catalog, max_move_pct=max_move_pct, min_price=min_price, rng=rng)
        if state is not None:
            self._install(state)
        else:
            self._initial_cash = initial_cash
            self._ledger = PortfolioLedger(initial_cash)
            self._book = OrderBook()
            self._log = TransactionLog()
            self._watchlist = Watchlist()
            self._alerts = PriceAlertBook()

        self._handlers: dict[type, Callable[[object], CommandResult]] = {
            PlaceOrder: self._on_place_order,
            CancelOrder: self._on_cancel_order,
            AddToWatchlist: self._on_add_to_watchlist,
            RemoveFromWatchlist: self._on_remove_from_watchlist,
            ResetPortfolio: self._on_reset_portfolio,
            Tick: self._on_tick,
            AddPriceAlert: self._on_add_price_alert,
            RemovePriceAlert: self._on_remove_price_alert,
        }

    @classmethod
    def open(cls, store: StateStore, instruments: Iterable[Instrument], **kwargs) -> "TradingEngine":
        """Rehydrate from *store* if it holds a snapshot, else start fresh and commit."""
        state, generation = store.load_versioned()
        engine = cls(instruments, state=state, store=store, **kwargs)
        engine._generation = generation
        if state is None:
            try:
                engine.commit()
            except StaleStateError:
                # another process created the portfolio first
                engine.refresh()
            logger.info("Started new portfolio in %s", store.path)
        else:
            logger.info("Loaded portfolio from %s (%d orders)", store.path, len(state.orders))
        return engine

    def _install(self, state: TradingState) -> None:
        self._initial_cash = state.initial_cash
        self._ledger = PortfolioLedger(state.cash, state.holdings)
        self._book = OrderBook(state.orders)
        self._log = TransactionLog(state.transactions)
        self._watchlist = Watchlist(state.watchlist)
        self._alerts = PriceAlertBook(state.alerts)
        self._market.replace_all(_merge_instruments(self._catalog, state.instruments))

    def refresh(self) -> None:
        """Pick up anything another process committed to the store."""
        with self._lock:
            self._refresh_locked()

    def _refresh_locked(self) -> None:
        if self._store is None or self._store.generation() == self._generation:
            return
        state, generation = self._store.load_versioned()
        if state is not None:
            self._install(state)
        self._generation = generation
        logger.info("Reloaded state from %s at generation %d", self._store.path, generation)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def subscribe(self, callback: Callable[[Notification], None]) -> None:
        self._subscribers.append(callback)

    def dispatch(self, command: Command) -> CommandResult:
        handler = self._handlers.get(type(command))
        if handler is None:
            raise TypeError(f"Unsupported command: {type(command).__name__}")
        with self._lock:
            result = self._apply_locked(handler, command)
        for n in result.notifications:
            self._publish(n)
        return result

    def _apply_locked(self, handler: Callable[[object], CommandResult], command: Command) -> CommandResult:
        """
        Run *handler* against the latest committed state and commit the result.

        If another process commits between the reload and our save, the save is
        refused; the in-memory changes are thrown away by the next reload and
        the command is applied again on top of the newer state.
        """
        for attempt in range(1, COMMIT_ATTEMPTS + 1):
            self._refresh_locked()
            result = handler(command)
            if not result.changed:
                return result
            try:
                self._commit_locked()
            except StaleStateError as exc:
                logger.warning(
                    "%s (attempt %d/%d); reapplying %s", exc, attempt, COMMIT_ATTEMPTS, type(command).__name__
                )
                continue
            return result
        raise StaleStateError(self._store.path, self._generation, self._store.generation())

    def _publish(self, notification: Notification) -> None:
        for callback in self._subscribers:
            try:
                callback(notification)
            except Exception:
                logger.exception("Notification subscriber failed for %r", notification.title)

    def commit(self) -> None:
        with self._lock:
            self._commit_locked()

    def _commit_locked(self) -> None:
        if self._store is None:
            return
        try:
            self._generation = self._store.save(
                self._snapshot_locked(),
                saved_at=self._clock(),
                expected_generation=self._generation,
            )
        except StaleStateError:
            raise
        except Exception:
            logger.exception("State commit failed")
            raise

    # ------------------------------------------------------------------
    # Handlers (called with the lock held)
    # ------------------------------------------------------------------

    def _on_place_order(self, cmd: PlaceOrder) -> CommandResult:
        now = self._clock()
        market_open = self._session.is_open(now)
        try:
            order = self._book.place(
                cmd.side,
                cmd.kind,
                cmd.instrument_id,
                cmd.quantity,
                cmd.limit_price,
                instruments=self._market.table(),
                ledger=self._ledger,
                now=now,
                market_open=market_open,
                reject_when_closed=self._reject_when_closed,
            )
        except OrderRejected as exc:
            logger.info("Order rejected: %s", exc)
            return CommandResult(ok=False, error=exc, notifications=[note.order_rejected(exc)])

        result = CommandResult(ok=True, changed=True, order=order, notifications=[note.order_placed(order)])
        self._match_into(result, now, market_open)
        result.order = self._book.get(order.id)
        return result

    def _on_cancel_order(self, cmd: CancelOrder) -> CommandResult:
        try:
            order = self._book.cancel(cmd.order_id)
        except OrderNotCancelable as exc:
            logger.info("Cancel refused: %s", exc)
            return CommandResult(ok=False, error=exc, notifications=[note.cancel_rejected(exc)])
        return CommandResult(ok=True, changed=True, order=order, notifications=[note.order_canceled(order)])

    def _on_add_to_watchlist(self, cmd: AddToWatchlist) -> CommandResult:
        inst = self._market.get(cmd.instrument_id)
        if inst is None or not self._watchlist.add(cmd.instrument_id):
            return CommandResult(ok=True)
        return CommandResult(ok=True, changed=True, notifications=[note.watchlist_added(inst)])

    def _on_remove_from_watchlist(self, cmd: RemoveFromWatchlist) -> CommandResult:
        inst = self._market.get(cmd.instrument_id)
        if inst is None or not self._watchlist.remove(cmd.instrument_id):
            return CommandResult(ok=True)
        return CommandResult(ok=True, changed=True, notifications=[note.watchlist_removed(inst)])

    def _on_reset_portfolio(self, cmd: ResetPortfolio) -> CommandResult:
        self._ledger.reset(self._initial_cash)
        self._log.clear()
        canceled = self._book.cancel_all_pending()
        dropped = self._book.drop_executed()
        logger.info("Portfolio reset: %d pending canceled, %d executed dropped", len(canceled), dropped)
        return CommandResult(
            ok=True,
            changed=True,
            notifications=[note.portfolio_reset(self._initial_cash, len(canceled))],
        )

    def _on_tick(self, cmd: Tick) -> CommandResult:
        now = self._clock()
        if not self._session.is_open(now):
            return CommandResult(ok=True)
        if cmd.prices:
            for instrument_id, price in cmd.prices:
                if instrument_id not in self._market:
                    logger.warning("Tick for unknown instrument %s ignored", instrument_id)
                    continue
                if not math.isfinite(price):
                    logger.warning("Non-finite price %r for %s ignored", price, instrument_id)
                    continue
                self._market.set_price(instrument_id, price)
        else:
            self._market.tick()
        result = CommandResult(ok=True, changed=True)
        self._match_into(result, now, True)
        fired = self._alerts.evaluate(self._market.table(), now)
        result.triggered_alerts.extend(fired)
        result.notifications.extend(note.alert_triggered(a) for a in fired)
        return result

    def _on_add_price_alert(self, cmd: AddPriceAlert) -> CommandResult:
        try:
            alert = self._alerts.add(
                self._market.get(cmd.instrument_id),
                cmd.price,
                AlertCondition(cmd.condition),
                now=self._clock(),
                instrument_id=cmd.instrument_id,
            )
        except AlertRejected as exc:
            return CommandResult(ok=False, error=exc, notifications=[note.alert_rejected(exc)])
        return CommandResult(ok=True, changed=True, alert=alert, notifications=[note.alert_set(alert)])

    def _on_remove_price_alert(self, cmd: RemovePriceAlert) -> CommandResult:
        try:
            alert = self._alerts.remove(cmd.alert_id)
        except AlertRejected as exc:
            return CommandResult(ok=False, error=exc, notifications=[note.alert_rejected(exc)])
        return CommandResult(ok=True, changed=True, alert=alert, notifications=[note.alert_removed(alert)])

    def _match_into(self, result: CommandResult, now: datetime, market_open: bool) -> None:
        matched = self._book.match(
            self._market.table(),
            self._ledger,
            self._log,
            market_open=market_open,
            now=now,
        )
        result.executions.extend(matched.executions)
        result.violations.extend(matched.violations)
        result.notifications.extend(note.order_executed(e.order) for e in matched.executions)

    # ------------------------------------------------------------------
    # Command shortcuts
    # ------------------------------------------------------------------

    def place_order(
        self,
        side: Side | str,
        kind: OrderKind | str,
        instrument_id: str,
        quantity: int,
        limit_price: float | None = None,
    ) -> CommandResult:
        return self.dispatch(PlaceOrder(Side(side), OrderKind(kind), instrument_id, quantity, limit_price))

    def cancel_order(self, order_id: str) -> CommandResult:
        return self.dispatch(CancelOrder(order_id))

    def add_to_watchlist(self, instrument_id: str) -> CommandResult:
        return self.dispatch(AddToWatchlist(instrument_id))

    def remove_from_watchlist(self, instrument_id: str) -> CommandResult:
        return self.dispatch(RemoveFromWatchlist(instrument_id))

    def reset_portfolio(self) -> CommandResult:
        return self.dispatch(ResetPortfolio())

    def tick(self, prices: Mapping[str, float] | None = None) -> CommandResult:
        return self.dispatch(Tick(tuple((prices or {}).items())))

    def add_price_alert(self, instrument_id: str, price: float, condition: AlertCondition | str) -> CommandResult:
        return self.dispatch(AddPriceAlert(instrument_id, price, AlertCondition(condition)))

    def remove_price_alert(self, alert_id: str) -> CommandResult:
        return self.dispatch(RemovePriceAlert(alert_id))

    # ------------------------------------------------------------------
    # Queries (snapshots)
    # ------------------------------------------------------------------

    @property
    def cash(self) -> float:
        with self._lock:
            return self._ledger.cash

    @property
    def initial_cash(self) -> float:
        return self._initial_cash

    @property
    def session(self) -> MarketSession:
        return self._session

    def market_open(self) -> bool:
        return self._session.is_open(self._clock())

    def holdings(self) -> list[Holding]:
        with self._lock:
            return self._ledger.holdings()

    def holding(self, instrument_id: str) -> Holding | None:
        with self._lock:
            return self._ledger.holding(instrument_id)

    def orders(self, status: OrderStatus | None = None) -> list[Order]:
        with self._lock:
            return self._book.orders(status)

    def order(self, order_id: str) -> Order | None:
        with self._lock:
            return self._book.get(order_id)

    def transactions(self, limit: int | None = None, instrument_id: str | None = None) -> list[Transaction]:
        with self._lock:
            return self._log.recent(limit, instrument_id)

    def watchlist(self) -> list[str]:
        with self._lock:
            return self._watchlist.items()

    def instruments(self) -> list[Instrument]:
        with self._lock:
            return self._market.instruments()

    def instrument(self, instrument_id: str) -> Instrument | None:
        with self._lock:
            inst = self._market.get(instrument_id)
            return inst.copy() if inst else None

    def find_instrument(self, key: str) -> Instrument | None:
        """Look up by id, falling back to symbol (case-insensitive)."""
        with self._lock:
            inst = self._market.get(key) or self._market.by_symbol(key)
            return inst.copy() if inst else None

    def alerts(self, instrument_id: str | None = None) -> list[PriceAlert]:
        with self._lock:
            return self._alerts.alerts(instrument_id)

    def valuation(self) -> PortfolioValuation:
        with self._lock:
            return self._ledger.valuation(self._market.table())

    def snapshot(self) -> TradingState:
        with self._lock:
            return self._snapshot_locked()

    def _snapshot_locked(self) -> TradingState:
        return TradingState(
            cash=self._ledger.cash,
            initial_cash=self._initial_cash,
            holdings=self._ledger.holdings(),
            orders=self._book.orders(),
            transactions=self._log.all(),
            watchlist=self._watchlist.items(),
            instruments=self._market.instruments(),
            alerts=self._alerts.alerts(),
        )

