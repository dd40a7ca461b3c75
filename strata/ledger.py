"""Ledger — persistent, append-only record of applied migrations.

One row per applied migration name. Rows are written and deleted through
the same connection the procedures use, and the ledger never commits:
the runner wraps each procedure and its ledger write in one transaction.
"""

from __future__ import annotations

import re
import sqlite3
from datetime import datetime, timezone
from typing import Iterable

import aiosqlite

from strata.exceptions import DuplicateEntryError, NotFoundError
from strata.types import LedgerEntry

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class Ledger:
    """Applied-migration ledger backed by a SQLite table."""

    def __init__(self, db: aiosqlite.Connection, table: str = "strata_meta") -> None:
        if not _IDENTIFIER.match(table):
            raise ValueError(f"Invalid ledger table name: {table!r}")
        self._db = db
        self.table = table

    async def ensure(self) -> None:
        """Create the ledger table if needed."""
        await self._db.execute(
            f"CREATE TABLE IF NOT EXISTS {self.table} ("
            "seq INTEGER PRIMARY KEY AUTOINCREMENT, "
            "name TEXT NOT NULL UNIQUE, "
            "applied_at TEXT NOT NULL)"
        )

    async def pending(self, all_names: Iterable[str]) -> list[str]:
        """Names from `all_names` not yet applied, in the given order."""
        applied = await self.applied()
        return [name for name in all_names if name not in applied]

    async def record(self, name: str) -> LedgerEntry:
        entry = LedgerEntry(name=name, applied_at=datetime.now(timezone.utc))
        try:
            await self._db.execute(
                f"INSERT INTO {self.table} (name, applied_at) VALUES (?, ?)",
                (entry.name, entry.applied_at.isoformat()),
            )
        except sqlite3.IntegrityError as e:
            raise DuplicateEntryError(name) from e
        return entry

    async def remove(self, name: str) -> None:
        cursor = await self._db.execute(
            f"DELETE FROM {self.table} WHERE name = ?", (name,)
        )
        if cursor.rowcount == 0:
            raise NotFoundError(name)

    async def applied(self) -> set[str]:
        return {entry.name for entry in await self.entries()}

    async def entries(self) -> list[LedgerEntry]:
        """All entries, oldest first (insertion order)."""
        cursor = await self._db.execute(
            f"SELECT name, applied_at FROM {self.table} ORDER BY seq"
        )
        rows = await cursor.fetchall()
        return [
            LedgerEntry(name=row[0], applied_at=datetime.fromisoformat(row[1]))
            for row in rows
        ]

    async def latest(self, count: int | None = None) -> list[str]:
        """The `count` most recently applied names, newest first (all if None)."""
        names = [entry.name for entry in reversed(await self.entries())]
        return names if count is None else names[:count]
