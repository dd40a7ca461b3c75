"""Migration file generator — writes a timestamped skeleton module."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import Path

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"

TEMPLATE = '''"""Migration: {label}

Created: {created}
"""

import aiosqlite


async def up(db: aiosqlite.Connection) -> None:
    pass


async def down(db: aiosqlite.Connection) -> None:
    pass
'''


def slugify(label: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", label.lower()).strip("-")


def create_migration(
    directory: str | Path,
    label: str,
    now: datetime | None = None,
) -> Path:
    """Create `<YYYYMMDDHHMMSS>-<slug>.py` in `directory` and return its path."""
    slug = slugify(label)
    if not slug:
        raise ValueError(f"Migration label {label!r} has no usable characters")

    now = now or datetime.now(timezone.utc)
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    path = directory / f"{now.strftime(TIMESTAMP_FORMAT)}-{slug}.py"
    if path.exists():
        raise FileExistsError(f"Migration already exists: {path}")

    path.write_text(TEMPLATE.format(label=label, created=now.isoformat(timespec="seconds")))
    return path
