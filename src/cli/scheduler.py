"""
Live paper-trading loop: a timer thread enqueues Tick commands while the
market session is open; one consumer drains the queue into the engine.

The timer never touches state. Anything else that wants to mutate the
engine while the loop runs puts its command on the same queue, so ticks
and commands are applied strictly in arrival order.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable

import click

from cli.runtime import journal_result
from cli.structured_log import StructuredEventLogger
from execution.commands import Command, Tick
from execution.engine import TradingEngine
from journal import JournalWriter

logger = logging.getLogger("papertrade.scheduler")

QUEUE_POLL_SECONDS = 0.5


class TickTimer(threading.Thread):
    """Put a Tick on *commands* every *interval* seconds while *is_open* holds."""

    def __init__(
        self,
        commands: "queue.Queue[Command]",
        interval: float,
        *,
        is_open: Callable[[], bool] = lambda: True,
    ) -> None:
        super().__init__(name="tick-timer", daemon=True)
        if interval <= 0:
            raise ValueError(f"Tick interval must be positive, got {interval}")
        self._commands = commands
        self._interval = interval
        self._is_open = is_open
        self._stopped = threading.Event()

    def run(self) -> None:
        while not self._stopped.wait(self._interval):
            if self._is_open():
                self._commands.put(Tick())

    def stop(self) -> None:
        self._stopped.set()


def run_live_loop(
    engine: TradingEngine,
    *,
    tick_seconds: float,
    commands: "queue.Queue[Command] | None" = None,
    events: StructuredEventLogger | None = None,
    journal: JournalWriter | None = None,
    max_ticks: int | None = None,
    echo: Callable[[str], None] = click.echo,
) -> int:
    """
    Main loop: consume commands until Ctrl+C (or *max_ticks* ticks).
    Returns the number of ticks applied.
    """
    commands = commands if commands is not None else queue.Queue()
    timer = TickTimer(commands, tick_seconds, is_open=engine.market_open)
    ticks = 0
    closed_reported = False

    if events:
        events.session_start(tick_seconds, engine.session.always_open, len(engine.instruments()))
    echo(f"Live paper trading started: tick every {tick_seconds:g}s  |  Ctrl+C to stop")
    timer.start()

    try:
        while max_ticks is None or ticks < max_ticks:
            try:
                command = commands.get(timeout=QUEUE_POLL_SECONDS)
            except queue.Empty:
                if not engine.market_open() and not closed_reported:
                    nxt = engine.session.next_open()
                    wait = (nxt - engine.session.now()).total_seconds()
                    echo(f"Market closed. Ticking resumes at {nxt:%Y-%m-%d %H:%M %Z} ({wait / 3600:.1f}h)")
                    if events:
                        events.market_closed(nxt.isoformat(), wait / 3600)
                    closed_reported = True
                continue

            closed_reported = False
            try:
                result = engine.dispatch(command)
            except Exception as exc:
                logger.exception("Command %s failed", type(command).__name__)
                if events:
                    events.error(f"{type(command).__name__} failed", str(exc))
                continue

            if journal:
                journal_result(journal, result)
            for v in result.violations:
                if events:
                    events.error("internal consistency violation", str(v))
            if isinstance(command, Tick):
                ticks += 1
                if events:
                    events.tick(ticks, len(result.executions))

    except KeyboardInterrupt:
        echo("")
    finally:
        timer.stop()
        timer.join(timeout=tick_seconds)
        if events:
            events.shutdown(ticks)
        echo(f"Shutting down after {ticks} tick(s).")
    return ticks
