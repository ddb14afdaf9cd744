"""
Wiring shared by CLI commands and the live loop: config -> engine, and
engine results -> journal.
"""

from __future__ import annotations

import random
from datetime import datetime
from typing import Callable
from zoneinfo import ZoneInfo

from config.loader import AppConfig
from config.market_config import load_instruments
from execution.engine import CommandResult, TradingEngine
from execution.models import OrderStatus
from execution.state_store import StateStore, user_state_path
from journal import JournalWriter
from market.session import MarketSession, parse_hhmm


def build_session(cfg: AppConfig, clock: Callable[[], datetime] | None = None) -> MarketSession:
    return MarketSession(
        always_open=cfg.market.always_open,
        tz=ZoneInfo(cfg.market.timezone),
        open_at=parse_hhmm(cfg.market.open),
        close_at=parse_hhmm(cfg.market.close),
        clock=clock,
    )


def build_engine(cfg: AppConfig, *, clock: Callable[[], datetime] | None = None) -> TradingEngine:
    """Open the user's state store and rehydrate (or start) their engine."""
    instruments = load_instruments(cfg.market.catalog_path or None)
    store = StateStore(user_state_path(cfg.execution.state_dir, cfg.user))
    rng = random.Random(cfg.market.seed) if cfg.market.seed is not None else None
    kwargs = {"clock": clock} if clock is not None else {}
    return TradingEngine.open(
        store,
        instruments,
        initial_cash=cfg.execution.initial_cash,
        session=build_session(cfg, clock),
        rng=rng,
        max_move_pct=cfg.market.max_move_pct,
        min_price=cfg.market.min_price,
        reject_when_closed=cfg.execution.reject_when_closed,
        **kwargs,
    )


def build_journal(cfg: AppConfig) -> JournalWriter:
    return JournalWriter(cfg.journal.path, user=cfg.user, echo_stdout=cfg.journal.echo_stdout)


def journal_result(journal: JournalWriter, result: CommandResult, *, reset_cash: float | None = None) -> None:
    """Record everything a dispatched command did."""
    if result.error is not None:
        reason = getattr(result.error, "reason", None)
        journal.rejection(reason.value if reason is not None else type(result.error).__name__, str(result.error))
    elif result.order is not None:
        if result.order.status is OrderStatus.CANCELED:
            journal.order_canceled(result.order.id, result.order.symbol)
        else:
            journal.order_placed(result.order)
    if result.alert is not None and result.error is None:
        a = result.alert
        removed = any(n.kind == "alert_removed" for n in result.notifications)
        journal.alert(a.id, a.symbol, a.condition.value, a.price, "removed" if removed else "set")
    for e in result.executions:
        t = e.transaction
        journal.fill(t.order_id, t.symbol, t.side.value, t.quantity, t.price, t.total, kind=e.order.kind.value)
    for a in result.triggered_alerts:
        journal.alert(a.id, a.symbol, a.condition.value, a.price, "triggered")
    for v in result.violations:
        journal.violation(v.order_id, v.detail)
    if reset_cash is not None:
        journal.reset(reset_cash)
