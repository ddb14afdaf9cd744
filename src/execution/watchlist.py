"""Watchlist: set of instrument ids. Order irrelevant, membership unique."""

from __future__ import annotations

from typing import Iterable


class Watchlist:
    def __init__(self, instrument_ids: Iterable[str] = ()) -> None:
        self._ids: dict[str, None] = dict.fromkeys(instrument_ids)

    def add(self, instrument_id: str) -> bool:
        """Add; returns False if it was already present."""
        if instrument_id in self._ids:
            return False
        self._ids[instrument_id] = None
        return True

    def remove(self, instrument_id: str) -> bool:
        """Remove; returns False if it was not present."""
        if instrument_id not in self._ids:
            return False
        del self._ids[instrument_id]
        return True

    def contains(self, instrument_id: str) -> bool:
        return instrument_id in self._ids

    __contains__ = contains

    def items(self) -> list[str]:
        return list(self._ids)
