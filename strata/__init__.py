"""strata — ordered, ledger-tracked schema migrations for SQLite."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("strata-migrations")
except PackageNotFoundError:
    __version__ = "0.1.0"  # fallback for development
