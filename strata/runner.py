"""Migration runner — applies pending units and reverts applied ones.

Each unit runs in its own transaction together with its ledger write:

    BEGIN IMMEDIATE -> procedure(db) -> ledger.record/remove -> COMMIT

A failing unit is rolled back and the run stops there. Units committed
earlier in the same run stay applied; nothing is compensated
automatically. A crash between the procedure and the COMMIT is the only
partial-failure window, and only for procedures that commit on their own
(e.g. via executescript).
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import sqlite3
from contextlib import contextmanager
from typing import Awaitable, Callable, Iterator

import aiosqlite

from strata.exceptions import (
    DatabaseLockedError,
    MigrationFailed,
    NotFoundError,
    UnknownMigrationError,
)
from strata.ledger import Ledger
from strata.loader import MigrationLoader
from strata.state import TransitionCallback, UnitStateMachine
from strata.types import MigrationUnit, Procedure, RunResult, UnitState, UnitStatus

_logger = logging.getLogger(__name__)

LedgerWrite = Callable[[str], Awaitable[object]]


class MigrationRunner:
    """Orders, executes and records migrations against one database.

    The connection, loader and ledger are supplied by the caller. Runs on
    one runner are serialised; BEGIN IMMEDIATE keeps other processes from
    writing the ledger concurrently.
    """

    def __init__(
        self,
        db: aiosqlite.Connection,
        loader: MigrationLoader,
        ledger: Ledger,
    ) -> None:
        self._db = db
        self._loader = loader
        self._ledger = ledger
        self._lock = asyncio.Lock()
        self._listeners: list[TransitionCallback] = []

    def on_transition(self, callback: TransitionCallback) -> None:
        """Observe every unit state change made by this runner."""
        self._listeners.append(callback)

    async def migrate_up(self, to: str | None = None) -> RunResult:
        """Apply pending migrations in ascending order.

        Args:
            to: Stop after applying this migration (inclusive).

        Raises:
            UnknownMigrationError: the ledger holds names that are not
                loaded, or `to` is not a pending migration.
            MigrationFailed: an `up` procedure raised.
            DatabaseLockedError: another connection holds the write lock.
        """
        async with self._lock:
            units = await self._prepare()
            applied = await self._ledger.applied()
            unknown = sorted(applied - units.keys())
            if unknown:
                raise UnknownMigrationError(unknown)

            pending = await self._ledger.pending(units)
            if to is not None:
                if to not in pending:
                    raise UnknownMigrationError([to])
                pending = pending[: pending.index(to) + 1]

            result = RunResult(direction="up")
            if not pending:
                _logger.info("Schema is up to date (%d applied)", len(applied))
                return result

            _logger.info("Applying %d pending migration(s)", len(pending))
            for name in pending:
                unit = units[name]
                machine = self._machine(name, UnitState.LOADED)
                await machine.transition(UnitState.PENDING)
                try:
                    await self._execute(unit, unit.up, self._ledger.record, result.names)
                except MigrationFailed:
                    await machine.transition(UnitState.PENDING)
                    raise
                await machine.transition(UnitState.APPLIED)
                result.names.append(name)
                _logger.info("Applied %s", name)
            return result

    async def migrate_down(self, count: int | None = 1, to: str | None = None) -> RunResult:
        """Revert the most recently applied migrations, newest first.

        Args:
            count: How many to revert; None reverts everything.
            to: Revert everything applied after this migration, keeping it.

        Raises:
            NotFoundError: `to` is not in the ledger.
            UnknownMigrationError: a target has no loaded unit.
            MigrationFailed: a `down` procedure raised.
            DatabaseLockedError: another connection holds the write lock.
        """
        if count is not None and count < 0:
            raise ValueError(f"count must be >= 0, got {count}")

        async with self._lock:
            units = await self._prepare()
            if to is not None:
                history = await self._ledger.latest()
                if to not in history:
                    raise NotFoundError(to)
                targets = history[: history.index(to)]
            else:
                targets = await self._ledger.latest(count)

            unknown = [name for name in targets if name not in units]
            if unknown:
                raise UnknownMigrationError(unknown)

            result = RunResult(direction="down")
            if not targets:
                _logger.info("Nothing to revert")
                return result

            _logger.info("Reverting %d migration(s)", len(targets))
            for name in targets:
                unit = units[name]
                machine = self._machine(name, UnitState.APPLIED)
                await machine.transition(UnitState.REVERTING)
                try:
                    await self._execute(unit, unit.down, self._ledger.remove, result.names)
                except MigrationFailed:
                    await machine.transition(UnitState.APPLIED)
                    raise
                await machine.transition(UnitState.LOADED)
                result.names.append(name)
                _logger.info("Reverted %s", name)
            return result

    async def status(self) -> list[UnitStatus]:
        """Every loaded migration with its applied/pending state."""
        async with self._lock:
            units = await self._prepare()
            entries = {entry.name: entry for entry in await self._ledger.entries()}
        statuses = []
        for name in units:
            entry = entries.get(name)
            statuses.append(UnitStatus(
                name=name,
                state=UnitState.APPLIED if entry else UnitState.PENDING,
                applied_at=entry.applied_at if entry else None,
            ))
        return statuses

    async def _prepare(self) -> dict[str, MigrationUnit]:
        units = self._loader.load()
        with _lock_errors():
            await self._ledger.ensure()
        return {unit.name: unit for unit in units}

    def _machine(self, name: str, initial: UnitState) -> UnitStateMachine:
        machine = UnitStateMachine(name, initial)
        for listener in self._listeners:
            machine.on_transition(listener)
        return machine

    async def _execute(
        self,
        unit: MigrationUnit,
        procedure: Procedure,
        ledger_write: LedgerWrite,
        completed: list[str],
    ) -> None:
        with _lock_errors():
            await self._db.execute("BEGIN IMMEDIATE")
        try:
            try:
                outcome = procedure(self._db)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                _logger.error("Migration %s failed: %s", unit.name, e)
                raise MigrationFailed(unit.name, e, completed) from e
            await ledger_write(unit.name)
        except BaseException:
            # Cancellation and interrupts must not leave the transaction open
            await self._db.rollback()
            raise
        await self._db.commit()


@contextmanager
def _lock_errors() -> Iterator[None]:
    """Surface SQLite write-lock contention as DatabaseLockedError."""
    try:
        yield
    except sqlite3.OperationalError as e:
        if "locked" not in str(e) and "busy" not in str(e):
            raise
        _logger.error("Database is locked by another writer: %s", e)
        raise DatabaseLockedError(str(e)) from e
