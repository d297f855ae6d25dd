"""Where the oracle keeps its reconciliation state and HTTP cache."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import bool_env_var, optional_env_var

APP_DIR_NAME: Final[str] = "trackoracle"
STATE_DB_FILENAME: Final[str] = "reconciliation.db"
HTTP_CACHE_FILENAME: Final[str] = "http_cache.db"


def _platform_state_dir() -> Path:
    # reconciliation state is not user data: XDG_STATE_HOME, not XDG_DATA_HOME
    if os.name == "nt":
        local = optional_env_var("LOCALAPPDATA")
        return (Path(local) if local else Path.home() / "AppData" / "Local") / APP_DIR_NAME
    state_home = optional_env_var("XDG_STATE_HOME")
    return (Path(state_home) if state_home else Path.home() / ".local" / "state") / APP_DIR_NAME


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path

    def _directory(self, *, ensure: bool) -> Path:
        directory = self.data_dir.expanduser().resolve()
        if ensure:
            directory.mkdir(parents=True, exist_ok=True)
        return directory

    def state_db_path(self, *, ensure: bool = True) -> Path:
        return self._directory(ensure=ensure) / STATE_DB_FILENAME

    def http_cache_path(self, *, ensure: bool = True) -> Path:
        return self._directory(ensure=ensure) / HTTP_CACHE_FILENAME


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str
    echo: bool = False


def get_storage_config() -> StorageConfig:
    configured = optional_env_var("TRACKORACLE_DATA_DIR")
    return StorageConfig(data_dir=Path(configured) if configured else _platform_state_dir())


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """``DATABASE_URI`` wins; otherwise a SQLite file in the data directory."""

    echo = bool_env_var("DATABASE_ECHO")
    uri = optional_env_var("DATABASE_URI")
    if uri is None:
        path = (storage or get_storage_config()).state_db_path()
        uri = f"sqlite+pysqlite:///{path}"
    return DatabaseConfig(uri=uri, echo=echo)
