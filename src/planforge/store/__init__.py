"""Durable storage: SQLite via aiosqlite."""

from planforge.store.database import Database

__all__ = ["Database"]
