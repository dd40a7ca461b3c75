"""Tests for the migration set loader."""

import os

import pytest

from strata.exceptions import LoadError
from strata.loader import MigrationLoader


def test_loads_units_in_name_order(migrations):
    migrations.add_table("20230102-add-email", "emails")
    migrations.add_table("20230101-create-users", "users")
    migrations.add_table("20221231-init", "init")

    units = MigrationLoader(migrations.path).load()

    assert [u.name for u in units] == [
        "20221231-init",
        "20230101-create-users",
        "20230102-add-email",
    ]
    assert all(callable(u.up) and callable(u.down) for u in units)


def test_names_are_strictly_ascending(migrations):
    for i in (5, 3, 9, 1):
        migrations.add_table(f"2023010{i}-step", f"t{i}")

    names = MigrationLoader(migrations.path).names()
    assert names == sorted(names)
    assert len(set(names)) == len(names)


def test_empty_directory(migrations):
    assert MigrationLoader(migrations.path).load() == []


def test_missing_directory(tmp_path):
    with pytest.raises(LoadError, match="does not exist"):
        MigrationLoader(tmp_path / "nope").load()


def test_ignores_private_and_non_python_files(migrations):
    migrations.add_table("20230101-create-users", "users")
    migrations.add("__init__", "")
    migrations.add("_helpers", "X = 1\n")
    (migrations.path / "README.md").write_text("notes")

    assert MigrationLoader(migrations.path).names() == ["20230101-create-users"]


def test_missing_down_raises(migrations):
    migrations.add("20230101-only-up", "async def up(db):\n    pass\n")

    with pytest.raises(LoadError, match="down") as exc:
        MigrationLoader(migrations.path).load()
    assert exc.value.path.name == "20230101-only-up.py"


def test_non_callable_procedure_raises(migrations):
    migrations.add("20230101-bad", "up = 1\n\ndef down(db):\n    pass\n")

    with pytest.raises(LoadError, match="up"):
        MigrationLoader(migrations.path).load()


def test_import_error_raises_load_error(migrations):
    migrations.add("20230101-broken", "def up(db)\n")

    with pytest.raises(LoadError, match="import failed"):
        MigrationLoader(migrations.path).load()


def test_duplicate_names_raise(migrations):
    migrations.add_table("20230101-create-users", "users")
    (migrations.path / "20230101-create-users.pyw").write_text(
        "def up(db):\n    pass\n\ndef down(db):\n    pass\n"
    )

    with pytest.raises(LoadError, match="duplicate"):
        MigrationLoader(migrations.path, pattern="*.py*").load()


def test_subdirectories_are_not_migrations(migrations):
    migrations.add_table("20230101-create-users", "users")
    package = migrations.path / "20230105-seed-lookup"
    package.mkdir()
    (package / "__init__.py").write_text(
        "from .helpers import X\n\ndef up(db):\n    pass\n\ndef down(db):\n    pass\n"
    )
    (package / "helpers.py").write_text("X = 1\n")

    assert MigrationLoader(migrations.path).names() == ["20230101-create-users"]


def test_load_leaves_directory_untouched(migrations):
    migrations.add_table("20230101-create-users", "users")
    migrations.add_table("20230102-add-email", "emails")
    before = sorted(p.name for p in migrations.path.iterdir())

    MigrationLoader(migrations.path).load()

    assert sorted(p.name for p in migrations.path.iterdir()) == before
    assert not (migrations.path / "__pycache__").exists()


def test_edited_migration_is_recompiled(migrations):
    path = migrations.add(
        "20230101-value", "V = 'aaaa'\n\ndef up(db):\n    return V\n\ndef down(db):\n    pass\n"
    )
    stat = path.stat()
    assert MigrationLoader(migrations.path).load()[0].up(None) == "aaaa"

    # Same size and mtime: only the content changed
    path.write_text(path.read_text().replace("aaaa", "bbbb"))
    os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns))

    assert MigrationLoader(migrations.path).load()[0].up(None) == "bbbb"


def test_sync_procedures_are_accepted(migrations):
    migrations.add("20230101-sync", "def up(db):\n    return None\n\ndef down(db):\n    return None\n")

    unit = MigrationLoader(migrations.path).load()[0]
    assert unit.up(None) is None
