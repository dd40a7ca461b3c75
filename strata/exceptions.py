"""Custom exception hierarchy for strata."""

from __future__ import annotations

from pathlib import Path


class StrataError(Exception):
    """Base for all strata errors."""


class LoadError(StrataError):
    """A migration file could not be turned into a migration unit."""

    def __init__(self, path: Path | str, reason: str) -> None:
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"{self.path}: {reason}")


class LedgerError(StrataError):
    """The ledger is inconsistent with the requested change."""

    def __init__(self, name: str, message: str) -> None:
        self.name = name
        super().__init__(message)


class DuplicateEntryError(LedgerError):
    """Migration is already recorded in the ledger."""

    def __init__(self, name: str) -> None:
        super().__init__(name, f"Migration {name!r} is already recorded")


class NotFoundError(LedgerError):
    """Migration is not recorded in the ledger."""

    def __init__(self, name: str) -> None:
        super().__init__(name, f"Migration {name!r} is not recorded")


class UnknownMigrationError(StrataError):
    """Ledger or target refers to migrations that are not loaded."""

    def __init__(self, names: list[str]) -> None:
        self.names = list(names)
        super().__init__(f"Unknown migration(s): {', '.join(self.names)}")


class UnitStateError(StrataError):
    """Invalid migration unit state transition."""


class MigrationFailed(StrataError):
    """A migration procedure raised; the run stopped at this unit."""

    def __init__(self, name: str, cause: BaseException, completed: list[str]) -> None:
        self.name = name
        self.cause = cause
        self.completed = list(completed)
        super().__init__(f"Migration {name!r} failed: {cause}")


class DatabaseLockedError(StrataError):
    """Another connection holds the database write lock."""
