"""
CLI entry point: papertrade market | place | cancel | watch | status | run | ...

Every command loads config from --config (default config.yaml), opens the
user's persisted engine, prints human-readable output, and logs to journal.
"""

import logging
import sys

import click
from dotenv import load_dotenv

from config import load_config

load_dotenv()

logger = logging.getLogger("papertrade")


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s  %(message)s",
        stream=sys.stderr,
    )


def _open(ctx: click.Context):
    """Load config and open the user's engine, journal and event logger."""
    from cli.runtime import build_engine, build_journal
    from cli.structured_log import StructuredEventLogger

    cfg = load_config(ctx.obj["config_path"])
    engine = build_engine(cfg)
    journal = build_journal(cfg)
    events = StructuredEventLogger(
        cfg.user,
        enabled=cfg.alerting.structured_logs,
        webhook_url=cfg.alerting.webhook_url,
    )
    return cfg, engine, journal, events


def _report(result, journal, *, reset_cash: float | None = None) -> None:
    from cli.output import format_notification
    from cli.runtime import journal_result

    journal_result(journal, result, reset_cash=reset_cash)
    for n in result.notifications:
        click.echo(format_notification(n))
    for v in result.violations:
        click.echo(f"  [x] Internal error: {v}", err=True)


def _resolve(engine, key: str) -> str:
    """Map a symbol or id to an instrument id; unknown keys pass through."""
    inst = engine.find_instrument(key)
    return inst.id if inst is not None else key


@click.group()
@click.option("--config", "config_path", default="config.yaml", help="Path to config file.")
@click.pass_context
def cli(ctx: click.Context, config_path: str) -> None:
    """papertrade: simulated stock trading with a persisted paper portfolio."""
    _setup_logging()
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


# ---------- papertrade market ----------


@cli.command()
@click.pass_context
def market(ctx: click.Context) -> None:
    """Show all instruments with live prices (* = on watchlist)."""
    from cli.output import format_market

    _, engine, _, _ = _open(ctx)
    click.echo(format_market(engine.instruments(), engine.watchlist(), market_open=engine.market_open()))


# ---------- papertrade place ----------


@cli.command()
@click.argument("side", type=click.Choice(["buy", "sell"], case_sensitive=False))
@click.argument("symbol")
@click.argument("quantity", type=int)
@click.option("--limit", "limit_price", default=None, type=float, help="Limit price; omit for a market order.")
@click.pass_context
def place(ctx: click.Context, side: str, symbol: str, quantity: int, limit_price: float | None) -> None:
    """Place a BUY or SELL order for QUANTITY shares of SYMBOL.

    Market orders fill on the spot while the market is open; limit orders
    wait for the price to cross the limit on a later tick.
    """
    from execution.models import OrderKind, Side

    _, engine, journal, events = _open(ctx)
    engine.subscribe(events.notification)
    kind = OrderKind.LIMIT if limit_price is not None else OrderKind.MARKET
    result = engine.place_order(Side(side.upper()), kind, _resolve(engine, symbol), quantity, limit_price)
    _report(result, journal)
    if result.order is not None:
        click.echo(f"  Order id: {result.order.id} ({result.order.status.value})")
    if not result.ok:
        raise SystemExit(1)


# ---------- papertrade cancel ----------


@cli.command()
@click.argument("order_id")
@click.pass_context
def cancel(ctx: click.Context, order_id: str) -> None:
    """Cancel a pending order."""
    _, engine, journal, events = _open(ctx)
    engine.subscribe(events.notification)
    result = engine.cancel_order(order_id)
    _report(result, journal)
    if not result.ok:
        raise SystemExit(1)


# ---------- papertrade watch / unwatch / watchlist ----------


@cli.command()
@click.argument("symbol")
@click.pass_context
def watch(ctx: click.Context, symbol: str) -> None:
    """Add SYMBOL to the watchlist."""
    _, engine, journal, events = _open(ctx)
    inst = engine.find_instrument(symbol)
    if inst is None:
        click.echo(f"Unknown instrument: {symbol}")
        raise SystemExit(1)
    engine.subscribe(events.notification)
    result = engine.add_to_watchlist(inst.id)
    if not result.changed:
        click.echo(f"{inst.symbol} is already on the watchlist.")
    _report(result, journal)


@cli.command()
@click.argument("symbol")
@click.pass_context
def unwatch(ctx: click.Context, symbol: str) -> None:
    """Remove SYMBOL from the watchlist."""
    _, engine, journal, events = _open(ctx)
    inst = engine.find_instrument(symbol)
    if inst is None:
        click.echo(f"Unknown instrument: {symbol}")
        raise SystemExit(1)
    engine.subscribe(events.notification)
    result = engine.remove_from_watchlist(inst.id)
    if not result.changed:
        click.echo(f"{inst.symbol} is not on the watchlist.")
    _report(result, journal)


@cli.command()
@click.pass_context
def watchlist(ctx: click.Context) -> None:
    """Show watched instruments with live prices."""
    from cli.output import format_watchlist

    _, engine, _, _ = _open(ctx)
    watched = [engine.instrument(i) for i in engine.watchlist()]
    click.echo(format_watchlist([i for i in watched if i is not None]))


# ---------- papertrade alert ----------


@cli.group()
def alert() -> None:
    """Manage one-shot price alerts."""


@alert.command("add")
@click.argument("symbol")
@click.argument("condition", type=click.Choice(["above", "below"], case_sensitive=False))
@click.argument("price", type=float)
@click.pass_context
def alert_add(ctx: click.Context, symbol: str, condition: str, price: float) -> None:
    """Alert once when SYMBOL trades ABOVE or BELOW PRICE."""
    _, engine, journal, events = _open(ctx)
    engine.subscribe(events.notification)
    result = engine.add_price_alert(_resolve(engine, symbol), price, condition.upper())
    _report(result, journal)
    if result.alert is not None:
        click.echo(f"  Alert id: {result.alert.id}")
    if not result.ok:
        raise SystemExit(1)


@alert.command("remove")
@click.argument("alert_id")
@click.pass_context
def alert_remove(ctx: click.Context, alert_id: str) -> None:
    """Remove an alert by id."""
    _, engine, journal, events = _open(ctx)
    engine.subscribe(events.notification)
    result = engine.remove_price_alert(alert_id)
    _report(result, journal)
    if not result.ok:
        raise SystemExit(1)


@alert.command("list")
@click.pass_context
def alert_list(ctx: click.Context) -> None:
    """Show all alerts, active and triggered."""
    from cli.output import format_alerts

    _, engine, _, _ = _open(ctx)
    click.echo(format_alerts(engine.alerts()))


# ---------- papertrade status / orders / transactions ----------


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show cash, holdings marked to market, and P&L."""
    from cli.output import format_portfolio

    cfg, engine, _, _ = _open(ctx)
    click.echo(f"User: {cfg.user}  |  Market: {'OPEN' if engine.market_open() else 'CLOSED'}")
    click.echo(format_portfolio(engine.valuation()))


@cli.command()
@click.option(
    "--status",
    "status_filter",
    default=None,
    type=click.Choice(["pending", "executed", "canceled"], case_sensitive=False),
    help="Only show orders in this state.",
)
@click.pass_context
def orders(ctx: click.Context, status_filter: str | None) -> None:
    """List orders, oldest first."""
    from cli.output import format_orders
    from execution.models import OrderStatus

    _, engine, _, _ = _open(ctx)
    wanted = OrderStatus(status_filter.upper()) if status_filter else None
    click.echo(format_orders(engine.orders(wanted)))


@cli.command()
@click.option("--symbol", default=None, help="Only show fills for this symbol.")
@click.option("--limit", default=20, help="Number of recent fills to show.")
@click.pass_context
def transactions(ctx: click.Context, symbol: str | None, limit: int) -> None:
    """Show recent fills, most recent first."""
    from cli.output import format_transactions

    _, engine, _, _ = _open(ctx)
    instrument_id = None
    if symbol:
        inst = engine.find_instrument(symbol)
        if inst is None:
            click.echo(f"Unknown instrument: {symbol}")
            raise SystemExit(1)
        instrument_id = inst.id
    click.echo(format_transactions(engine.transactions(limit, instrument_id)))


# ---------- papertrade tick / reset ----------


@cli.command()
@click.option("--count", default=1, type=click.IntRange(min=1), help="Number of price ticks to apply.")
@click.pass_context
def tick(ctx: click.Context, count: int) -> None:
    """Advance simulated prices by COUNT ticks and match pending orders."""
    _, engine, journal, events = _open(ctx)
    engine.subscribe(events.notification)
    if not engine.market_open():
        click.echo("Market closed. No ticks applied.")
        return
    fills = 0
    for _ in range(count):
        result = engine.tick()
        fills += len(result.executions)
        _report(result, journal)
    click.echo(f"Applied {count} tick(s); {fills} order(s) executed.")


@cli.command()
@click.confirmation_option(prompt="Reset the portfolio to its starting cash?")
@click.pass_context
def reset(ctx: click.Context) -> None:
    """Restore starting cash and clear holdings, fills and open orders."""
    _, engine, journal, events = _open(ctx)
    engine.subscribe(events.notification)
    result = engine.reset_portfolio()
    _report(result, journal, reset_cash=engine.initial_cash)


# ---------- papertrade run ----------


@cli.command()
@click.option("--max-ticks", default=None, type=int, help="Stop after N ticks (default: run until Ctrl+C).")
@click.pass_context
def run(ctx: click.Context, max_ticks: int | None) -> None:
    """Run the live market: tick prices on a timer and fill orders as they trigger."""
    from cli.output import format_notification
    from cli.scheduler import run_live_loop

    cfg, engine, journal, events = _open(ctx)
    engine.subscribe(events.notification)
    engine.subscribe(lambda n: click.echo(format_notification(n)))
    run_live_loop(
        engine,
        tick_seconds=cfg.market.tick_seconds,
        events=events,
        journal=journal,
        max_ticks=max_ticks,
    )


# ---------- papertrade health ----------


@cli.command()
@click.pass_context
def health(ctx: click.Context) -> None:
    """Check system health: config, instrument catalog, state store.

    Exit code 0 = healthy, 1 = unhealthy. Designed for Docker HEALTHCHECK.
    """
    checks: list[tuple[str, bool, str]] = []

    try:
        cfg = load_config(ctx.obj["config_path"])
        checks.append(("config", True, f"loaded (user={cfg.user})"))
    except Exception as e:
        checks.append(("config", False, str(e)))
        _print_health(checks)
        raise SystemExit(1)

    try:
        from config.market_config import load_instruments

        instruments = load_instruments(cfg.market.catalog_path or None)
        checks.append(("catalog", True, f"{len(instruments)} instruments validated"))
    except Exception as e:
        checks.append(("catalog", False, str(e)))

    try:
        from execution.state_store import StateStore, user_state_path

        store = StateStore(user_state_path(cfg.execution.state_dir, cfg.user))
        state = store.load()
        if state is None:
            checks.append(("state", True, f"no saved portfolio yet ({store.path})"))
        else:
            checks.append(("state", True, f"cash {state.cash:,.2f}, {len(state.orders)} orders ({store.path})"))
    except Exception as e:
        checks.append(("state", False, str(e)))

    _print_health(checks)
    healthy = all(ok for _, ok, _ in checks)
    raise SystemExit(0 if healthy else 1)


def _print_health(checks: list[tuple[str, bool, str]]) -> None:
    for name, ok, detail in checks:
        status = "OK" if ok else "FAIL"
        click.echo(f"  [{status}] {name}: {detail}")
    healthy = all(ok for _, ok, _ in checks)
    click.echo(f"\nHealth: {'HEALTHY' if healthy else 'UNHEALTHY'}")


if __name__ == "__main__":
    cli()
