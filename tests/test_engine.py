"""Tests for the trading engine: dispatch, notifications, reset, persistence."""

from dataclasses import dataclass

import pytest

from execution import (
    AddToWatchlist,
    CancelOrder,
    PlaceOrder,
    StaleStateError,
    StateStore,
    TradingEngine,
)
from execution.errors import CancelReason, RejectReason
from execution.models import OrderKind, OrderStatus, Side


def test_market_buy_executes_in_same_dispatch(engine: TradingEngine) -> None:
    result = engine.place_order("BUY", "MARKET", "1", 10)
    assert result.ok and result.changed
    assert result.order.status is OrderStatus.EXECUTED
    assert engine.cash == 9000.0
    assert [n.kind for n in result.notifications] == ["order_placed", "order_executed"]
    assert result.notifications[1].title == "Order Executed"
    (txn,) = engine.transactions()
    assert txn.total == 1000.0


def test_rejection_notification_carries_reason_text(engine: TradingEngine) -> None:
    result = engine.place_order("BUY", "MARKET", "2", 100)
    assert not result.ok
    assert result.error.reason is RejectReason.INSUFFICIENT_FUNDS
    (n,) = result.notifications
    assert n.title == "Order Failed"
    assert n.description == "Insufficient funds"
    assert engine.orders() == []


def test_distinct_text_per_rejection(engine: TradingEngine) -> None:
    texts = {
        engine.place_order("SELL", "MARKET", "1", 1).notifications[0].description,
        engine.place_order("BUY", "MARKET", "99", 1).notifications[0].description,
        engine.place_order("BUY", "MARKET", "1", 0).notifications[0].description,
        engine.place_order("BUY", "LIMIT", "1", 1, -5.0).notifications[0].description,
        engine.place_order("BUY", "MARKET", "2", 100).notifications[0].description,
    }
    assert len(texts) == 5


def test_limit_order_executes_on_tick(engine: TradingEngine) -> None:
    placed = engine.place_order(Side.BUY, OrderKind.LIMIT, "1", 5, 95.0)
    assert placed.order.status is OrderStatus.PENDING
    assert [n.kind for n in placed.notifications] == ["order_placed"]

    assert engine.tick({"1": 96.0}).executions == []
    result = engine.tick({"1": 94.2})
    (execution,) = result.executions
    assert execution.transaction.price == 94.2
    assert result.notifications[0].title == "Limit Order Executed"
    assert engine.holding("1").quantity == 5


def test_cancel_then_tick_leaves_order_canceled(engine: TradingEngine) -> None:
    order = engine.place_order("BUY", "LIMIT", "1", 5, 50.0).order
    result = engine.cancel_order(order.id)
    assert result.ok
    assert result.notifications[0].kind == "order_canceled"
    engine.tick({"1": 40.0})
    assert engine.order(order.id).status is OrderStatus.CANCELED
    assert engine.cash == 10_000.0


def test_cancel_executed_order_fails_without_mutation(engine: TradingEngine) -> None:
    order = engine.place_order("BUY", "MARKET", "1", 1).order
    result = engine.dispatch(CancelOrder(order.id))
    assert not result.ok and not result.changed
    assert result.error.reason is CancelReason.ALREADY_TERMINAL
    assert result.notifications[0].title == "Cancel Failed"
    assert engine.order(order.id).status is OrderStatus.EXECUTED


def test_watchlist_add_remove_idempotent(engine: TradingEngine) -> None:
    first = engine.add_to_watchlist("1")
    assert first.changed and first.notifications[0].kind == "watchlist_added"
    again = engine.dispatch(AddToWatchlist("1"))
    assert not again.changed and again.notifications == []
    assert engine.watchlist() == ["1"]
    assert engine.remove_from_watchlist("1").changed
    assert not engine.remove_from_watchlist("1").changed
    assert engine.watchlist() == []


def test_watchlist_ignores_unknown_instrument(engine: TradingEngine) -> None:
    result = engine.add_to_watchlist("99")
    assert result.ok and not result.changed
    assert engine.watchlist() == []


def test_reset_restores_cash_and_keeps_watchlist(engine: TradingEngine) -> None:
    engine.add_to_watchlist("3")
    engine.place_order("BUY", "MARKET", "1", 10)
    pending = engine.place_order("BUY", "LIMIT", "1", 1, 10.0).order
    result = engine.reset_portfolio()
    assert result.notifications[0].kind == "portfolio_reset"
    assert "1 pending order(s) canceled" in result.notifications[0].description
    assert engine.cash == 10_000.0
    assert engine.holdings() == []
    assert engine.transactions() == []
    assert [o.id for o in engine.orders()] == [pending.id]
    assert engine.order(pending.id).status is OrderStatus.CANCELED
    assert engine.watchlist() == ["3"]


def test_random_tick_moves_prices_and_keeps_holdings(engine: TradingEngine) -> None:
    before = {i.id: i.current_price for i in engine.instruments()}
    result = engine.tick()
    assert result.changed
    after = {i.id: i.current_price for i in engine.instruments()}
    assert before.keys() == after.keys()
    for inst_id, price in after.items():
        assert abs(price - before[inst_id]) <= before[inst_id] * 0.015 + 0.01


def test_tick_while_closed_is_noop(instruments, clock, closed_session) -> None:
    engine = TradingEngine(instruments, initial_cash=10_000.0, clock=clock, session=closed_session)
    placed = engine.place_order("BUY", "MARKET", "1", 1)
    assert placed.order.status is OrderStatus.PENDING
    result = engine.tick({"1": 1.0})
    assert not result.changed
    assert engine.instrument("1").current_price == 100.0
    assert engine.order(placed.order.id).status is OrderStatus.PENDING


def test_reject_when_closed(instruments, clock, closed_session) -> None:
    engine = TradingEngine(
        instruments, initial_cash=10_000.0, clock=clock, session=closed_session, reject_when_closed=True
    )
    result = engine.place_order("BUY", "MARKET", "1", 1)
    assert result.error.reason is RejectReason.MARKET_CLOSED


def test_tick_ignores_unknown_ids(engine: TradingEngine) -> None:
    engine.tick({"nope": 5.0, "1": 101.0})
    assert engine.instrument("1").current_price == 101.0


def test_tick_ignores_non_finite_prices(engine: TradingEngine) -> None:
    engine.tick({"1": float("nan"), "2": float("inf"), "3": 440.0})
    assert engine.instrument("1").current_price == 100.0
    assert engine.instrument("2").current_price == 3945.6
    assert engine.instrument("3").current_price == 440.0

    result = engine.place_order("BUY", "MARKET", "1", 10**9)
    assert not result.ok
    assert result.error.reason is RejectReason.INSUFFICIENT_FUNDS
    assert engine.cash == 10_000.0


def test_price_alert_triggers_once(engine: TradingEngine) -> None:
    alert = engine.add_price_alert("1", 105.0, "ABOVE").alert
    result = engine.tick({"1": 106.0})
    assert [a.id for a in result.triggered_alerts] == [alert.id]
    assert result.notifications[-1].title == "Price Alert: REL"
    assert engine.tick({"1": 107.0}).triggered_alerts == []


def test_alert_rejections(engine: TradingEngine) -> None:
    assert engine.add_price_alert("99", 1.0, "BELOW").notifications[0].description == "Stock not found"
    assert not engine.remove_price_alert("missing").ok


def test_unknown_command_type_raises(engine: TradingEngine) -> None:
    @dataclass(frozen=True)
    class Bogus:
        pass

    with pytest.raises(TypeError, match="Unsupported command"):
        engine.dispatch(Bogus())  # type: ignore[arg-type]


def test_subscribers_receive_notifications_and_failures_are_contained(engine: TradingEngine) -> None:
    seen = []

    def broken(_n) -> None:
        raise RuntimeError("boom")

    engine.subscribe(broken)
    engine.subscribe(seen.append)
    engine.dispatch(PlaceOrder(Side.BUY, OrderKind.MARKET, "1", 1))
    assert [n.kind for n in seen] == ["order_placed", "order_executed"]


def test_find_instrument_by_symbol_or_id(engine: TradingEngine) -> None:
    assert engine.find_instrument("tcs").id == "2"
    assert engine.find_instrument("3").symbol == "ITC"
    assert engine.find_instrument("XYZ") is None


def test_queries_return_copies(engine: TradingEngine) -> None:
    engine.place_order("BUY", "MARKET", "1", 1)
    engine.instruments()[0].current_price = 0.5
    engine.holdings()[0].quantity = 999
    assert engine.instrument("1").current_price == 100.0
    assert engine.holding("1").quantity == 1


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


def test_every_mutation_is_committed(tmp_path, instruments, clock) -> None:
    store = StateStore(tmp_path / "u.db")
    engine = TradingEngine.open(store, instruments, initial_cash=10_000.0, clock=clock)
    engine.place_order("BUY", "MARKET", "1", 10)
    engine.add_to_watchlist("2")
    engine.tick({"1": 110.0})

    reopened = TradingEngine.open(store, instruments, initial_cash=1.0, clock=clock)
    assert reopened.cash == 9000.0
    assert reopened.initial_cash == 10_000.0
    assert reopened.holding("1").quantity == 10
    assert reopened.watchlist() == ["2"]
    assert reopened.instrument("1").current_price == 110.0
    assert len(reopened.transactions()) == 1


def test_open_fresh_store_commits_initial_state(tmp_path, instruments, clock) -> None:
    store = StateStore(tmp_path / "fresh.db")
    assert not store.exists()
    TradingEngine.open(store, instruments, initial_cash=5000.0, clock=clock)
    assert store.exists()
    assert store.load().cash == 5000.0


def test_rejected_command_does_not_commit(tmp_path, instruments, clock) -> None:
    store = StateStore(tmp_path / "u.db")
    engine = TradingEngine.open(store, instruments, initial_cash=10_000.0, clock=clock)
    clock.advance(seconds=30)
    engine.place_order("BUY", "MARKET", "2", 100)
    assert store.load().orders == []


def test_two_processes_on_one_store_keep_each_others_fills(tmp_path, instruments, clock) -> None:
    live = TradingEngine.open(StateStore(tmp_path / "u.db"), instruments, initial_cash=10_000.0, clock=clock)
    cli_engine = TradingEngine.open(StateStore(tmp_path / "u.db"), instruments, initial_cash=10_000.0, clock=clock)

    assert cli_engine.place_order("BUY", "MARKET", "1", 10).ok
    live.tick({"2": 4000.0})

    saved = StateStore(tmp_path / "u.db").load()
    assert saved.cash == 9000.0
    assert [o.status for o in saved.orders] == [OrderStatus.EXECUTED]
    assert len(saved.transactions) == 1
    assert saved.holdings[0].quantity == 10
    assert {i.id: i.current_price for i in saved.instruments}["2"] == 4000.0
    assert live.cash == 9000.0
    assert live.holding("1").quantity == 10


def test_commit_race_reapplies_command_on_newer_state(tmp_path, instruments, clock, monkeypatch) -> None:
    store = StateStore(tmp_path / "u.db")
    live = TradingEngine.open(store, instruments, initial_cash=10_000.0, clock=clock)
    other = TradingEngine.open(StateStore(tmp_path / "u.db"), instruments, initial_cash=10_000.0, clock=clock)
    save = store.save
    raced: list[bool] = []

    def save_after_other_writer(state, **kwargs):
        if not raced:
            raced.append(True)
            other.add_to_watchlist("3")
        return save(state, **kwargs)

    monkeypatch.setattr(store, "save", save_after_other_writer)
    result = live.place_order("BUY", "MARKET", "1", 5)

    assert result.ok and result.order.status is OrderStatus.EXECUTED
    saved = store.load()
    assert saved.watchlist == ["3"]
    assert saved.cash == 9500.0
    assert [o.id for o in saved.orders] == [result.order.id]
    assert live.orders() == saved.orders


def test_commit_gives_up_when_store_keeps_moving(tmp_path, instruments, clock, monkeypatch) -> None:
    store = StateStore(tmp_path / "u.db")
    live = TradingEngine.open(store, instruments, initial_cash=10_000.0, clock=clock)
    other = TradingEngine.open(StateStore(tmp_path / "u.db"), instruments, initial_cash=10_000.0, clock=clock)
    save = store.save

    def always_beaten(state, **kwargs):
        other.tick({"3": other.instrument("3").current_price + 1})
        return save(state, **kwargs)

    monkeypatch.setattr(store, "save", always_beaten)
    with pytest.raises(StaleStateError):
        live.place_order("BUY", "MARKET", "1", 5)
    assert store.load().orders == []
