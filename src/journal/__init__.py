"""Append-only trading journal (JSON lines)."""

from journal.writer import JournalWriter

__all__ = ["JournalWriter"]
