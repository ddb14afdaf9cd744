"""
Durable per-user state store (SQLite). One file per user.

The whole state bundle is rewritten in a single transaction on every commit,
and each commit bumps a generation counter in ``meta`` so a writer holding
an outdated copy can be refused instead of overwriting newer state;
``session`` guarantees commit-or-rollback and closes the connection on every
exit path. Timestamps are stored as ISO-8601 UTC strings with microseconds,
prices as REAL, so a save/load cycle is lossless.
"""

from __future__ import annotations

import logging
import re
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from execution.errors import StaleStateError, StateStoreError
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
from market.contracts import Instrument

logger = logging.getLogger("papertrade.store")

_TABLES = ("instruments", "holdings", "orders", "transactions", "watchlist", "alerts")


def _utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _ts_out(ts: datetime | None) -> str | None:
    return _utc(ts).isoformat() if ts is not None else None


def _ts_in(raw: str | None) -> datetime | None:
    if raw is None:
        return None
    ts = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    return _utc(ts)


def _read_generation(conn: sqlite3.Connection) -> int:
    row = conn.execute("SELECT generation FROM meta WHERE id = 1").fetchone()
    return int(row[0]) if row else 0


def user_state_path(state_dir: str | Path, user: str) -> Path:
    """``<state_dir>/<user>.db`` with the user id reduced to a safe file name."""
    safe = re.sub(r"[^A-Za-z0-9_.-]", "_", user.strip()) or "default"
    return Path(state_dir) / f"{safe}.db"


class StateStore:
    """SQLite-backed snapshot of one user's TradingState."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def session(self) -> Iterator[sqlite3.Connection]:
        """Scoped connection: commit on success, rollback on error, always close."""
        try:
            conn = sqlite3.connect(str(self._path), timeout=10.0)
        except sqlite3.Error as exc:
            raise StateStoreError(f"Cannot open state store {self._path}: {exc}") from exc
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise StateStoreError(f"State store {self._path} failed: {exc}") from exc
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self.session() as c:
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS meta (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    cash REAL NOT NULL,
                    initial_cash REAL NOT NULL,
                    saved_at TEXT NOT NULL,
                    generation INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            columns = {row[1] for row in c.execute("PRAGMA table_info(meta)")}
            if "generation" not in columns:
                c.execute("ALTER TABLE meta ADD COLUMN generation INTEGER NOT NULL DEFAULT 0")
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS instruments (
                    seq INTEGER NOT NULL,
                    id TEXT PRIMARY KEY,
                    symbol TEXT NOT NULL,
                    name TEXT NOT NULL,
                    exchange TEXT NOT NULL,
                    sector TEXT NOT NULL,
                    current_price REAL NOT NULL,
                    previous_close REAL NOT NULL,
                    open_price REAL NOT NULL,
                    day_high REAL NOT NULL,
                    day_low REAL NOT NULL,
                    volume INTEGER NOT NULL,
                    change REAL NOT NULL,
                    change_percent REAL NOT NULL
                )
                """
            )
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS holdings (
                    seq INTEGER NOT NULL,
                    instrument_id TEXT PRIMARY KEY,
                    symbol TEXT NOT NULL,
                    quantity INTEGER NOT NULL,
                    average_buy_price REAL NOT NULL,
                    invested_amount REAL NOT NULL
                )
                """
            )
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS orders (
                    seq INTEGER NOT NULL,
                    id TEXT PRIMARY KEY,
                    side TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    instrument_id TEXT NOT NULL,
                    symbol TEXT NOT NULL,
                    quantity INTEGER NOT NULL,
                    limit_price REAL,
                    status TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    executed_at TEXT,
                    executed_price REAL
                )
                """
            )
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS transactions (
                    seq INTEGER NOT NULL,
                    id TEXT PRIMARY KEY,
                    order_id TEXT NOT NULL,
                    side TEXT NOT NULL,
                    instrument_id TEXT NOT NULL,
                    symbol TEXT NOT NULL,
                    quantity INTEGER NOT NULL,
                    price REAL NOT NULL,
                    total REAL NOT NULL,
                    ts_utc TEXT NOT NULL
                )
                """
            )
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS watchlist (
                    seq INTEGER NOT NULL,
                    instrument_id TEXT PRIMARY KEY
                )
                """
            )
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS alerts (
                    seq INTEGER NOT NULL,
                    id TEXT PRIMARY KEY,
                    instrument_id TEXT NOT NULL,
                    symbol TEXT NOT NULL,
                    price REAL NOT NULL,
                    alert_condition TEXT NOT NULL,
                    active INTEGER NOT NULL,
                    created_at TEXT NOT NULL,
                    triggered_at TEXT
                )
                """
            )

    def exists(self) -> bool:
        with self.session() as c:
            return c.execute("SELECT 1 FROM meta WHERE id = 1").fetchone() is not None

    def generation(self) -> int:
        """Number of snapshots committed so far; 0 for an empty store."""
        with self.session() as c:
            return _read_generation(c)

    def save(
        self,
        state: TradingState,
        *,
        saved_at: datetime | None = None,
        expected_generation: int | None = None,
    ) -> int:
        """
        Replace the stored snapshot with *state* atomically and return the new
        generation.

        With *expected_generation*, the write only goes through if nobody else
        committed since that generation was read; otherwise StaleStateError is
        raised and the stored snapshot is left untouched.
        """
        stamp = _ts_out(saved_at or datetime.now(timezone.utc))
        with self.session() as c:
            c.execute("BEGIN IMMEDIATE")
            current = _read_generation(c)
            if expected_generation is not None and current != expected_generation:
                raise StaleStateError(self._path, expected_generation, current)
            generation = current + 1
            for table in _TABLES:
                c.execute(f"DELETE FROM {table}")
            c.execute(
                """INSERT OR REPLACE INTO meta (id, cash, initial_cash, saved_at, generation)
                   VALUES (1, ?, ?, ?, ?)""",
                (state.cash, state.initial_cash, stamp, generation),
            )
            c.executemany(
                """INSERT INTO instruments (seq, id, symbol, name, exchange, sector, current_price, previous_close,
                   open_price, day_high, day_low, volume, change, change_percent)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                [
                    (
                        i, inst.id, inst.symbol, inst.name, inst.exchange, inst.sector, inst.current_price,
                        inst.previous_close, inst.open, inst.day_high, inst.day_low, inst.volume, inst.change,
                        inst.change_percent,
                    )
                    for i, inst in enumerate(state.instruments)
                ],
            )
            c.executemany(
                """INSERT INTO holdings (seq, instrument_id, symbol, quantity, average_buy_price, invested_amount)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                [
                    (i, h.instrument_id, h.symbol, h.quantity, h.average_buy_price, h.invested_amount)
                    for i, h in enumerate(state.holdings)
                ],
            )
            c.executemany(
                """INSERT INTO orders (seq, id, side, kind, instrument_id, symbol, quantity, limit_price, status,
                   created_at, executed_at, executed_price) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                [
                    (
                        i, o.id, o.side.value, o.kind.value, o.instrument_id, o.symbol, o.quantity, o.limit_price,
                        o.status.value, _ts_out(o.created_at), _ts_out(o.executed_at), o.executed_price,
                    )
                    for i, o in enumerate(state.orders)
                ],
            )
            c.executemany(
                """INSERT INTO transactions (seq, id, order_id, side, instrument_id, symbol, quantity, price, total, ts_utc)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                [
                    (
                        i, t.id, t.order_id, t.side.value, t.instrument_id, t.symbol, t.quantity, t.price, t.total,
                        _ts_out(t.timestamp),
                    )
                    for i, t in enumerate(state.transactions)
                ],
            )
            c.executemany(
                "INSERT INTO watchlist (seq, instrument_id) VALUES (?, ?)",
                list(enumerate(state.watchlist)),
            )
            c.executemany(
                """INSERT INTO alerts (seq, id, instrument_id, symbol, price, alert_condition, active, created_at, triggered_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                [
                    (
                        i, a.id, a.instrument_id, a.symbol, a.price, a.condition.value, int(a.active),
                        _ts_out(a.created_at), _ts_out(a.triggered_at),
                    )
                    for i, a in enumerate(state.alerts)
                ],
            )
        logger.debug("Committed generation %d to %s", generation, self._path)
        return generation

    def load(self) -> TradingState | None:
        """Rehydrate the stored snapshot, or None if nothing was ever saved."""
        return self.load_versioned()[0]

    def load_versioned(self) -> tuple[TradingState | None, int]:
        """The stored snapshot together with the generation it was read at."""
        with self.session() as c:
            meta = c.execute("SELECT cash, initial_cash, generation FROM meta WHERE id = 1").fetchone()
            if meta is None:
                return None, 0
            inst_rows = c.execute(
                """SELECT id, symbol, name, exchange, sector, current_price, previous_close, open_price, day_high,
                   day_low, volume, change, change_percent FROM instruments ORDER BY seq"""
            ).fetchall()
            holding_rows = c.execute(
                "SELECT instrument_id, symbol, quantity, average_buy_price, invested_amount FROM holdings ORDER BY seq"
            ).fetchall()
            order_rows = c.execute(
                """SELECT id, side, kind, instrument_id, symbol, quantity, limit_price, status, created_at,
                   executed_at, executed_price FROM orders ORDER BY seq"""
            ).fetchall()
            txn_rows = c.execute(
                """SELECT id, order_id, side, instrument_id, symbol, quantity, price, total, ts_utc
                   FROM transactions ORDER BY seq"""
            ).fetchall()
            watch_rows = c.execute("SELECT instrument_id FROM watchlist ORDER BY seq").fetchall()
            alert_rows = c.execute(
                """SELECT id, instrument_id, symbol, price, alert_condition, active, created_at, triggered_at
                   FROM alerts ORDER BY seq"""
            ).fetchall()

        state = TradingState(
            cash=float(meta[0]),
            initial_cash=float(meta[1]),
            instruments=[
                Instrument(
                    id=r[0], symbol=r[1], name=r[2], exchange=r[3], sector=r[4], current_price=r[5],
                    previous_close=r[6], open=r[7], day_high=r[8], day_low=r[9], volume=r[10], change=r[11],
                    change_percent=r[12],
                )
                for r in inst_rows
            ],
            holdings=[
                Holding(instrument_id=r[0], symbol=r[1], quantity=r[2], average_buy_price=r[3], invested_amount=r[4])
                for r in holding_rows
            ],
            orders=[
                Order(
                    id=r[0],
                    side=Side(r[1]),
                    kind=OrderKind(r[2]),
                    instrument_id=r[3],
                    symbol=r[4],
                    quantity=r[5],
                    limit_price=r[6],
                    status=OrderStatus(r[7]),
                    created_at=_ts_in(r[8]),
                    executed_at=_ts_in(r[9]),
                    executed_price=r[10],
                )
                for r in order_rows
            ],
            transactions=[
                Transaction(
                    id=r[0], order_id=r[1], side=Side(r[2]), instrument_id=r[3], symbol=r[4], quantity=r[5],
                    price=r[6], total=r[7], timestamp=_ts_in(r[8]),
                )
                for r in txn_rows
            ],
            watchlist=[r[0] for r in watch_rows],
            alerts=[
                PriceAlert(
                    id=r[0],
                    instrument_id=r[1],
                    symbol=r[2],
                    price=r[3],
                    condition=AlertCondition(r[4]),
                    active=bool(r[5]),
                    created_at=_ts_in(r[6]),
                    triggered_at=_ts_in(r[7]),
                )
                for r in alert_rows
            ],
        )
        return state, int(meta[2])
