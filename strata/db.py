"""Database handle used by the ledger, the runner and every procedure."""

from __future__ import annotations

from pathlib import Path

import aiosqlite


def connect(db_path: str | Path, timeout: float = 5.0) -> aiosqlite.Connection:
    """Open an autocommit connection; the runner issues BEGIN/COMMIT itself.

    `timeout` is how long to wait for another writer's lock, in seconds.

    Usage:
        async with connect("app.db") as db:
            ...
    """
    return aiosqlite.connect(str(db_path), isolation_level=None, timeout=timeout)
