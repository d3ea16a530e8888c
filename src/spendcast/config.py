"""Application configuration objects and helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    """Interpret environment variable values as booleans."""

    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    """Read an integer environment variable, falling back on bad input."""

    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


class BaseConfig:
    """Base configuration shared across environments."""

    APP_NAME = "SpendCast"
    DB_FILENAME = "spendcast.db"
    SQLITE_TIMEOUT_SECONDS = 30
    SQLITE_PRAGMAS = {"journal_mode": "wal", "foreign_keys": "on", "busy_timeout": "30000"}

    def __init__(self, data_dir: Path | None = None) -> None:
        self.DATA_DIR = self._resolve_data_dir(data_dir)
        self.DEV_MODE = _env_bool("SPENDCAST_DEV_MODE", default=True)
        self.DATABASE_URL = os.getenv("SPENDCAST_DATABASE_URL", self._build_sqlite_url())
        self.MIN_FORECAST_TRANSACTIONS = _env_int("SPENDCAST_MIN_FORECAST_TRANSACTIONS", 10)
        self.FORECAST_HISTORY_MONTHS = _env_int("SPENDCAST_FORECAST_HISTORY_MONTHS", 12)
        self.PROJECTION_MAX_MONTHS = _env_int("SPENDCAST_PROJECTION_MAX_MONTHS", 120)

    def _resolve_data_dir(self, override: Path | None = None) -> Path:
        """Return the directory where the SQLite file and logs live."""

        data_root = override or os.getenv("SPENDCAST_DATA_DIR", "instance")
        path = Path(data_root).expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _build_sqlite_url(self) -> str:
        db_path = self.DATA_DIR / self.DB_FILENAME
        return f"sqlite:///{db_path}"

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    def sqlalchemy_engine_options(self) -> dict[str, Any]:
        """Expose engine kwargs for SQLModel to consume."""

        if not self.is_sqlite:
            return {"pool_pre_ping": True}
        connect_args: dict[str, Any] = {
            "check_same_thread": False,
            "timeout": self.SQLITE_TIMEOUT_SECONDS,
        }
        return {"connect_args": connect_args}


class DevConfig(BaseConfig):
    """Development configuration using local SQLite."""

    DEBUG = True
    TESTING = False


class TestingConfig(BaseConfig):
    """Configuration used by the test-suite; callers point DATA_DIR at a tmp dir."""

    __test__ = False  # not a pytest test class
    DEBUG = False
    TESTING = True

    def __init__(self, data_dir: Path | None = None) -> None:
        super().__init__(data_dir)
        self.DEV_MODE = True
        if data_dir is not None:
            self.DATABASE_URL = self._build_sqlite_url()
