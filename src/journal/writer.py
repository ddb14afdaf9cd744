"""
Trading journal: append-only JSON lines. One line per order lifecycle event.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any


def _serialize(obj: Any) -> Any:
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if hasattr(obj, "__dict__") and not isinstance(obj, type):
        return {k: _serialize(v) for k, v in vars(obj).items() if not k.startswith("_")}
    if isinstance(obj, dict):
        return {k: _serialize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize(x) for x in obj]
    return obj


class JournalWriter:
    """Append-only journal. Each line is a JSON object with event type and payload."""

    def __init__(self, path: str | Path, *, user: str = "", echo_stdout: bool = False) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._user = user
        self._echo = echo_stdout

    def _write(self, event_type: str, payload: dict) -> None:
        record = {"ts_utc": datetime.now(timezone.utc).isoformat(), "event": event_type, "user": self._user, **payload}
        line = json.dumps(_serialize(record)) + "\n"
        with open(self._path, "a") as f:
            f.write(line)
        if self._echo:
            print(line.rstrip())

    def order_placed(self, order: Any, **extra: Any) -> None:
        self._write("order_placed", {"order": order, **extra})

    def fill(self, order_id: str, symbol: str, side: str, qty: int, price: float, total: float, **extra: Any) -> None:
        self._write(
            "fill",
            {"order_id": order_id, "symbol": symbol, "side": side, "qty": qty, "price": price, "total": total, **extra},
        )

    def order_canceled(self, order_id: str, symbol: str, **extra: Any) -> None:
        self._write("order_canceled", {"order_id": order_id, "symbol": symbol, **extra})

    def rejection(self, reason: str, detail: str = "", **extra: Any) -> None:
        self._write("rejection", {"reason": reason, "detail": detail, **extra})

    def alert(self, alert_id: str, symbol: str, condition: str, price: float, state: str, **extra: Any) -> None:
        self._write(
            "alert",
            {"alert_id": alert_id, "symbol": symbol, "condition": condition, "price": price, "state": state, **extra},
        )

    def reset(self, cash: float, **extra: Any) -> None:
        self._write("reset", {"cash": cash, **extra})

    def violation(self, order_id: str | None, detail: str, **extra: Any) -> None:
        self._write("violation", {"order_id": order_id, "detail": detail, **extra})
