"""Database location configuration helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import optional_env_var

APP_DIR_NAME: Final[str] = "dpresolver"
DEFAULT_DB_FILENAME: Final[str] = "dpresolver.db"


def get_data_dir() -> Path:
    """Return the directory where dpresolver keeps its local database."""

    env_dir = optional_env_var("DPRESOLVER_DATA_DIR")
    if env_dir:
        return Path(env_dir).expanduser().resolve()

    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")

    return (base_path / APP_DIR_NAME).expanduser().resolve()


def get_database_uri() -> str:
    """Compute the schedule store URI, respecting overrides."""

    env_uri = optional_env_var("DATABASE_URI")
    if env_uri:
        return env_uri
    data_dir = get_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)
    return f"sqlite+aiosqlite:///{data_dir / DEFAULT_DB_FILENAME}"


def get_ledger_database_uri() -> str:
    """Return the ledger URI; the ledger shares the schedule store unless overridden."""

    return optional_env_var("LEDGER_DATABASE_URI") or get_database_uri()


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    schedule_uri: str
    ledger_uri: str

    @property
    def shared(self) -> bool:
        return self.schedule_uri == self.ledger_uri


def get_database_config() -> DatabaseConfig:
    return DatabaseConfig(schedule_uri=get_database_uri(), ledger_uri=get_ledger_database_uri())
