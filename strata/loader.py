"""Migration set loader — turns a directory of modules into ordered units.

Migrations are Python files named `<timestamp>-<label>.py`. Each must
define `up(db)` and `down(db)`, either `async def` or plain functions.
The file stem is the migration name, so the timestamp prefix gives the
order. Subdirectories are not migrations.
"""

from __future__ import annotations

import importlib.machinery
import importlib.util
import logging
from pathlib import Path
from types import ModuleType

from strata.exceptions import LoadError
from strata.types import MigrationUnit

_logger = logging.getLogger(__name__)


class MigrationLoader:
    """Discovers and loads migration units from a directory."""

    def __init__(self, directory: str | Path, pattern: str = "*.py") -> None:
        self.directory = Path(directory)
        self.pattern = pattern

    def load(self) -> list[MigrationUnit]:
        """Load every migration, sorted ascending by name.

        Raises:
            LoadError: missing directory, unimportable file, missing
                procedure, or two files with the same name.
        """
        if not self.directory.is_dir():
            raise LoadError(self.directory, "migrations directory does not exist")

        units: dict[str, MigrationUnit] = {}
        for path in self._candidates():
            name = path.stem
            if name in units:
                raise LoadError(
                    path, f"duplicate migration name {name!r} (also {units[name].path})"
                )
            units[name] = self._load_unit(name, path)

        ordered = [units[name] for name in sorted(units)]
        _logger.debug("Loaded %d migrations from %s", len(ordered), self.directory)
        return ordered

    def names(self) -> list[str]:
        return [unit.name for unit in self.load()]

    def _candidates(self) -> list[Path]:
        return sorted(
            p for p in self.directory.glob(self.pattern)
            if p.is_file() and not p.name.startswith(("_", "."))
        )

    def _load_unit(self, name: str, path: Path) -> MigrationUnit:
        module = _import_file(name, path)
        procedures = {}
        for attr in ("up", "down"):
            fn = getattr(module, attr, None)
            if not callable(fn):
                raise LoadError(path, f"missing callable {attr}()")
            procedures[attr] = fn
        return MigrationUnit(name=name, path=path, **procedures)


class _UncachedSourceLoader(importlib.machinery.SourceFileLoader):
    """Compiles straight from source; never reads or writes __pycache__."""

    def get_code(self, fullname):
        path = self.get_filename(fullname)
        return self.source_to_code(self.get_data(path), path)


def _import_file(name: str, path: Path) -> ModuleType:
    """Import a file without registering it in sys.modules."""
    module_name = f"strata_migration_{name}"
    spec = importlib.util.spec_from_file_location(
        module_name, path, loader=_UncachedSourceLoader(module_name, str(path))
    )
    if spec is None or spec.loader is None:
        raise LoadError(path, "cannot create import spec")
    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        raise LoadError(path, f"import failed: {e}") from e
    return module
