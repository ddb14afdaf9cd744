"""
Human-readable terminal output for the paper trader.

Every CLI command uses these formatters; they only read snapshots.
"""

from __future__ import annotations

from typing import Iterable

from execution.ledger import PortfolioValuation
from execution.models import Order, PriceAlert, Transaction
from execution.notifications import Notification, Severity, money
from market.contracts import Instrument

_SEVERITY_TAG = {
    Severity.INFO: "*",
    Severity.SUCCESS: "+",
    Severity.WARNING: "!",
    Severity.ERROR: "x",
}


def _fmt_volume(vol: int | float) -> str:
    if vol >= 10_000_000:
        return f"{vol / 10_000_000:.2f}Cr"
    if vol >= 100_000:
        return f"{vol / 100_000:.2f}L"
    if vol >= 1_000:
        return f"{vol / 1_000:.0f}K"
    return str(int(vol))


def format_notification(note: Notification) -> str:
    return f"  [{_SEVERITY_TAG[note.severity]}] {note.title}: {note.description}"


def format_market(instruments: Iterable[Instrument], watchlist: Iterable[str] = (), *, market_open: bool = True) -> str:
    """Instrument table with live prices; watched instruments starred."""
    watched = set(watchlist)
    lines = [
        f"=== Market ({'OPEN' if market_open else 'CLOSED'}) ===",
        f"    {'ID':>4}  {'Symbol':<12} {'Price':>11} {'Change':>9} {'%':>7} {'High':>11} {'Low':>11} {'Volume':>8}",
    ]
    for inst in instruments:
        star = "*" if inst.id in watched else " "
        lines.append(
            f"  {star} {inst.id:>4}  {inst.symbol:<12} {inst.current_price:>11,.2f} {inst.change:>+9.2f} "
            f"{inst.change_percent:>+6.2f}% {inst.day_high:>11,.2f} {inst.day_low:>11,.2f} {_fmt_volume(inst.volume):>8}"
        )
    lines.append("===")
    return "\n".join(lines)


def format_portfolio(valuation: PortfolioValuation) -> str:
    """Cash, holdings marked to market, and totals."""
    lines = [
        "=== Account Status ===",
        f"Cash         : {money(valuation.cash)}",
        f"Invested     : {money(valuation.invested)}",
        f"Current value: {money(valuation.current_value)}",
        f"P&L          : {money(valuation.pnl)} ({valuation.pnl_percent:+.2f}%)",
        f"Total value  : {money(valuation.total_value)}",
    ]
    if valuation.holdings:
        lines.append("")
        lines.append(f"  {'Symbol':<12} {'Qty':>6} {'Avg price':>11} {'LTP':>11} {'Value':>14} {'P&L':>12} {'%':>8}")
        for h in valuation.holdings:
            lines.append(
                f"  {h.symbol:<12} {h.quantity:>6} {h.average_buy_price:>11,.2f} {h.current_price:>11,.2f} "
                f"{h.current_value:>14,.2f} {h.pnl:>+12,.2f} {h.pnl_percent:>+7.2f}%"
            )
    else:
        lines.append("Holdings     : none")
    lines.append("===")
    return "\n".join(lines)


def format_orders(orders: list[Order]) -> str:
    if not orders:
        return "No orders."
    lines = [f"Orders ({len(orders)}):"]
    for o in orders:
        limit = f" @ limit {o.limit_price:,.2f}" if o.limit_price is not None else " @ market"
        fill = f" -> filled {o.executed_price:,.2f} {o.executed_at.isoformat()}" if o.executed_price is not None and o.executed_at else ""
        lines.append(
            f"  {o.id}  {o.status.value:<8} {o.side.value:<4} {o.kind.value:<6} {o.quantity} {o.symbol}{limit}"
            f"  placed {o.created_at.isoformat()}{fill}"
        )
    return "\n".join(lines)


def format_transactions(transactions: list[Transaction]) -> str:
    if not transactions:
        return "No transactions yet."
    lines = [f"Transactions ({len(transactions)}, most recent first):"]
    for t in transactions:
        lines.append(f"  {t.side.value:<4} {t.quantity} {t.symbol} @ {t.price:,.2f}  total {t.total:,.2f}  {t.timestamp.isoformat()}")
    return "\n".join(lines)


def format_watchlist(instruments: list[Instrument]) -> str:
    if not instruments:
        return "Watchlist is empty."
    lines = ["Watchlist:"]
    for inst in instruments:
        lines.append(f"  {inst.symbol:<12} {inst.name:<32} {inst.current_price:>11,.2f} {inst.change_percent:>+6.2f}%")
    return "\n".join(lines)


def format_alerts(alerts: list[PriceAlert]) -> str:
    if not alerts:
        return "No price alerts."
    lines = ["Price alerts:"]
    for a in alerts:
        state = "active" if a.active else f"triggered {a.triggered_at.isoformat()}" if a.triggered_at else "inactive"
        lines.append(f"  {a.id}  {a.symbol:<12} {a.condition.value.lower():<5} {a.price:>11,.2f}  {state}")
    return "\n".join(lines)
