"""Transaction log: append-only record of executed fills."""

from __future__ import annotations

from typing import Iterable

from execution.models import Transaction


class TransactionLog:
    def __init__(self, transactions: Iterable[Transaction] = ()) -> None:
        self._entries: list[Transaction] = list(transactions)

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, transaction: Transaction) -> None:
        self._entries.append(transaction)

    def all(self) -> list[Transaction]:
        """Every transaction in the order it was recorded."""
        return list(self._entries)

    def recent(self, limit: int | None = None, instrument_id: str | None = None) -> list[Transaction]:
        """Most recent first, optionally filtered to one instrument."""
        out = [t for t in reversed(self._entries) if instrument_id is None or t.instrument_id == instrument_id]
        return out[:limit] if limit is not None else out

    def for_order(self, order_id: str) -> list[Transaction]:
        return [t for t in self._entries if t.order_id == order_id]

    def clear(self) -> None:
        self._entries.clear()
