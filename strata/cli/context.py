"""CLI runtime context — bridges sync CLI to the async runner."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Coroutine

from strata.config import settings
from strata.db import connect
from strata.ledger import Ledger
from strata.loader import MigrationLoader
from strata.runner import MigrationRunner


@asynccontextmanager
async def open_runner(
    db_path: Path | None = None,
    migrations_dir: Path | None = None,
) -> AsyncIterator[MigrationRunner]:
    """Wire settings (or explicit overrides) into a ready runner."""
    db_path = db_path or settings.db_path
    db_path.parent.mkdir(parents=True, exist_ok=True)
    async with connect(db_path) as db:
        yield MigrationRunner(
            db=db,
            loader=MigrationLoader(migrations_dir or settings.migrations_dir),
            ledger=Ledger(db, settings.ledger_table),
        )


def run_async(coro: Coroutine) -> Any:
    """Run an async coroutine from sync CLI code."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None

    if loop and loop.is_running():
        import concurrent.futures
        with concurrent.futures.ThreadPoolExecutor() as pool:
            return pool.submit(asyncio.run, coro).result()
    else:
        return asyncio.run(coro)
