"""Core types shared across strata."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Literal, TypeAlias

from pydantic import BaseModel, Field

# A forward or reverse operation; receives the database handle.
Procedure: TypeAlias = Callable[[Any], Awaitable[None] | None]


class UnitState(str, Enum):
    UNLOADED = "unloaded"
    LOADED = "loaded"
    PENDING = "pending"
    APPLIED = "applied"
    REVERTING = "reverting"


@dataclass(frozen=True)
class MigrationUnit:
    """One named, ordered change script."""

    name: str
    path: Path
    up: Procedure
    down: Procedure


class LedgerEntry(BaseModel):
    name: str
    applied_at: datetime


class UnitStatus(BaseModel):
    name: str
    state: UnitState
    applied_at: datetime | None = None


class RunResult(BaseModel):
    """Units processed by a completed run, in execution order."""

    direction: Literal["up", "down"]
    names: list[str] = Field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.names)
