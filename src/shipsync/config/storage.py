"""Where the shipment ledger lives and how its engine is opened."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final

from .env import optional_int_env_var

APP_DIR_NAME: Final[str] = "shipsync"
DEFAULT_DB_FILENAME: Final[str] = "ledger.db"
# Reconciliation workers commit from several threads; SQLite writers queue behind each
# other for up to this long before reporting "database is locked".
DEFAULT_SQLITE_BUSY_TIMEOUT_SECONDS: Final[int] = 30


def _platform_data_home() -> Path:
    if os.name == "nt":
        local = os.getenv("LOCALAPPDATA")
        return Path(local) if local else Path.home() / "AppData" / "Local"
    xdg = os.getenv("XDG_DATA_HOME")
    return Path(xdg) if xdg else Path.home() / ".local" / "share"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Local data directory used when no ``DATABASE_URI`` is configured."""

    data_dir: Path = field(default_factory=lambda: _platform_data_home() / APP_DIR_NAME)
    database_filename: str = DEFAULT_DB_FILENAME

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def ledger_path(self, *, create: bool = True) -> Path:
        directory = self.resolve_data_dir()
        if create:
            directory.mkdir(parents=True, exist_ok=True)
        return directory / self.database_filename

    def database_uri(self) -> str:
        return f"sqlite+pysqlite:///{self.ledger_path()}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str
    echo: bool = False
    sqlite_busy_timeout_seconds: int = DEFAULT_SQLITE_BUSY_TIMEOUT_SECONDS

    @property
    def is_sqlite(self) -> bool:
        return self.uri.startswith("sqlite")

    def engine_options(self) -> dict[str, Any]:
        """Keyword arguments for :func:`sqlalchemy.create_engine`."""

        options: dict[str, Any] = {"echo": self.echo, "future": True}
        if self.is_sqlite:
            options["connect_args"] = {"timeout": self.sqlite_busy_timeout_seconds}
        return options


def get_storage_config() -> StorageConfig:
    override = os.getenv("SHIPSYNC_DATA_DIR")
    return StorageConfig(data_dir=Path(override)) if override else StorageConfig()


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    uri = os.getenv("DATABASE_URI") or (storage or get_storage_config()).database_uri()
    return DatabaseConfig(
        uri=uri,
        echo=os.getenv("SHIPSYNC_SQL_ECHO", "").strip().lower() in {"1", "true", "yes"},
        sqlite_busy_timeout_seconds=optional_int_env_var(
            "SHIPSYNC_SQLITE_BUSY_TIMEOUT",
            DEFAULT_SQLITE_BUSY_TIMEOUT_SECONDS,
        ),
    )


def get_database_uri() -> str:
    return get_database_config().uri
