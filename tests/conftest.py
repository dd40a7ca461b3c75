"""Shared test fixtures — temp databases and on-disk migration directories."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest
import pytest_asyncio

from strata.db import connect
from strata.ledger import Ledger
from strata.loader import MigrationLoader
from strata.runner import MigrationRunner


def create_table_migration(table: str) -> str:
    """Source for a migration that creates `table` and drops it on down."""
    return textwrap.dedent(f'''
        async def up(db):
            await db.execute("CREATE TABLE {table} (id INTEGER PRIMARY KEY)")


        async def down(db):
            await db.execute("DROP TABLE {table}")
    ''')


FAILING_MIGRATION = textwrap.dedent('''
    async def up(db):
        await db.execute("CREATE TABLE half_done (id INTEGER)")
        raise RuntimeError("boom")


    async def down(db):
        raise RuntimeError("cannot undo")
''')


class MigrationDir:
    """Writes migration modules into a temporary directory."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def add(self, name: str, source: str) -> Path:
        file = self.path / f"{name}.py"
        file.write_text(source)
        return file

    def add_table(self, name: str, table: str) -> Path:
        return self.add(name, create_table_migration(table))


@pytest.fixture
def migrations(tmp_path):
    directory = tmp_path / "migrations"
    directory.mkdir()
    return MigrationDir(directory)


@pytest_asyncio.fixture
async def db(tmp_path):
    async with connect(tmp_path / "test.db") as conn:
        yield conn


@pytest.fixture
def ledger(db):
    return Ledger(db)


@pytest.fixture
def runner(db, migrations, ledger):
    return MigrationRunner(db=db, loader=MigrationLoader(migrations.path), ledger=ledger)


async def table_exists(db, table: str) -> bool:
    cursor = await db.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table,)
    )
    return await cursor.fetchone() is not None
