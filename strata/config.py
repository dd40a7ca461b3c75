"""Global configuration — loaded from environment variables."""

from pathlib import Path

from pydantic_settings import BaseSettings


class StrataSettings(BaseSettings):
    db_path: Path = Path("strata.db")
    migrations_dir: Path = Path("migrations")
    ledger_table: str = "strata_meta"
    log_level: str = "INFO"

    model_config = {"env_prefix": "STRATA_"}


settings = StrataSettings()
