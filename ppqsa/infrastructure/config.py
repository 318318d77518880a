"""
Centralized configuration management for the PPQSA quick scan application.

Provides environment-specific configuration with validation, type safety,
and settings management using Pydantic.
"""

from __future__ import annotations

import math
from functools import cached_property, lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings


class DatabaseConfig(BaseSettings):
    """
    Storage backend configuration.

    The snapshot log, drafts and invites live in a single key/value table.
    ``sqlite`` keeps them in a local database file; ``memory`` keeps them in
    process memory (tests, throwaway demos).

    Example:
        >>> db_config = DatabaseConfig(backend="sqlite", sqlite_path="./test.db")
        >>> print(db_config.get_connection_url())
        >>> # sqlite:///./test.db
    """

    backend: Literal["sqlite", "memory"] = Field("sqlite", description="Storage backend type")
    sqlite_path: str | None = Field("./ppqsa.db", description="SQLite database file path")
    echo: bool = Field(False, description="Enable SQL query logging")

    model_config = {"env_prefix": "DB_", "case_sensitive": False}

    @field_validator("sqlite_path")
    def validate_sqlite_path(cls, v):
        """Validate SQLite path and ensure directory exists."""
        if v and v != ":memory:":
            path = Path(v)
            path.parent.mkdir(parents=True, exist_ok=True)
            if not path.suffix:
                v = str(path.with_suffix(".db"))
        return v

    def get_connection_url(self) -> str:
        """
        Generate database connection URL.

        Raises:
            ValueError: If the backend has no SQL connection URL
        """
        if self.backend == "sqlite":
            return f"sqlite:///{self.sqlite_path}"
        raise ValueError(f"Backend {self.backend!r} has no database connection URL")

    def get_engine_options(self) -> dict[str, Any]:
        """
        Keyword arguments for ``create_engine``.

        Request handlers run in a thread pool, so SQLite connections must be
        usable from threads other than the one that opened them.
        """
        options: dict[str, Any] = {"echo": self.echo, "pool_pre_ping": True}
        if self.backend == "sqlite":
            options["connect_args"] = {"check_same_thread": False}
        return options


class StorageConfig(BaseSettings):
    """
    Key names and behavioural constants for the persisted records.

    Key names match the ones written by earlier builds so existing logs and
    exports remain readable.
    """

    snapshots_key: str = Field("ppqsa_snapshots_v1", description="Current snapshot log key")
    legacy_snapshots_key: str = Field(
        "ppqsa_results_snapshots_v1", description="Pre-v1 snapshot log key (migration only)"
    )
    invites_key: str = Field("ppqsa_invites_v1", description="Invite registry key")
    answers_key: str = Field("ppqsa_answers_v1", description="Draft answers base key")
    profile_key: str = Field("ppqsa_profile_v1", description="Draft profile base key")
    notes_key: str = Field("ppqsa_pillar_notes_v1", description="Draft pillar notes base key")
    target_key: str = Field("ppqsa_target_v1", description="Admin target score key")
    results_target_key: str = Field(
        "ppqsa_target_score24_v1", description="Results page target score key"
    )
    dedup_window_seconds: float = Field(60.0, gt=0, description="Duplicate save window")
    default_target_score24: float = Field(18.0, ge=0, le=24, description="Default target /24")

    model_config = {"env_prefix": "STORAGE_", "case_sensitive": False}

    @field_validator("default_target_score24")
    def validate_target(cls, v):
        if not math.isfinite(v):
            raise ValueError("Target score must be a finite number")
        return v


class AdminConfig(BaseSettings):
    """
    Admin passcode gate.

    A blank code disables the gate: every admin check then succeeds.
    """

    code: str = Field("", description="Admin passcode (blank disables the gate)")
    header_name: str = Field("X-Admin-Code", description="Request header carrying the passcode")

    model_config = {"env_prefix": "ADMIN_", "case_sensitive": False}

    @field_validator("code")
    def strip_code(cls, v: str) -> str:
        return v.strip()

    @property
    def gate_enabled(self) -> bool:
        return self.code != ""


LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LoggingConfig(BaseSettings):
    """
    Log output settings (``LOG_*``).

    ``level`` left unset falls back to a per-environment default, see
    ``Settings.logging``. File output is off unless ``file_path`` is given.

    Example:
        >>> LoggingConfig(file_path="./logs/ppqsa.log").get_file_handler_config()["maxBytes"]
        10485760
    """

    level: LogLevel | None = Field(None, description="Minimum logging level")
    file_path: str | None = Field(None, description="Rotating log file path")
    max_bytes: int = Field(10 * 1024 * 1024, ge=1024, description="Rotate after this many bytes")
    backup_count: int = Field(5, ge=1, description="Rotated files kept")
    structured: bool = Field(True, description="JSON lines instead of plain text")
    console_enabled: bool = Field(True, description="Write to stdout")

    model_config = {"env_prefix": "LOG_", "case_sensitive": False}

    @field_validator("file_path")
    def prepare_log_dir(cls, v):
        if v:
            Path(v).parent.mkdir(parents=True, exist_ok=True)
        return v

    def get_file_handler_config(self) -> dict[str, Any] | None:
        """A dictConfig handler entry for the log file, or None without one."""
        if not self.file_path:
            return None
        return {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": self.file_path,
            "maxBytes": self.max_bytes,
            "backupCount": self.backup_count,
            "encoding": "utf-8",
        }


class ApplicationConfig(BaseSettings):
    """
    Main application configuration.

    Example:
        >>> config = get_settings()
        >>> print(config.app.environment)
    """

    environment: Literal["development", "testing", "production"] = Field(
        "development", description="Application environment"
    )
    debug: bool = Field(False, description="Enable debug mode")
    version: str = Field("0.1.0", description="Application version")
    title: str = Field("Pacific Parliament Quick Scan Assessment", description="API title")
    quick_win_display_limit: int = Field(10, ge=1, description="Quick wins shown on results")

    model_config = {"env_prefix": "APP_", "case_sensitive": False}

    @model_validator(mode="after")
    def debug_implies_development(self):
        """Ensure debug mode is only enabled outside production."""
        if self.debug and self.environment == "production":
            raise ValueError("Debug mode cannot be enabled in production")
        return self


ENVIRONMENT_LOG_LEVELS: dict[str, LogLevel] = {
    "development": "INFO",
    "testing": "WARNING",
    "production": "WARNING",
}


class Settings:
    """
    All configuration sections, each read from the environment on first use.

    Example:
        >>> settings = get_settings()
        >>> settings.storage.snapshots_key
        'ppqsa_snapshots_v1'
    """

    @cached_property
    def app(self) -> ApplicationConfig:
        return ApplicationConfig()

    @cached_property
    def database(self) -> DatabaseConfig:
        return DatabaseConfig()

    @cached_property
    def storage(self) -> StorageConfig:
        return StorageConfig()

    @cached_property
    def admin(self) -> AdminConfig:
        return AdminConfig()

    @cached_property
    def logging(self) -> LoggingConfig:
        config = LoggingConfig()
        if config.level is None:
            level = "DEBUG" if self.app.debug else ENVIRONMENT_LOG_LEVELS[self.app.environment]
            config = config.model_copy(update={"level": level})
        return config

    def is_development(self) -> bool:
        return self.app.environment == "development"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get application settings instance (cached).

    Example:
        >>> settings = get_settings()
        >>> key = settings.storage.snapshots_key
    """
    return Settings()


def reset_settings() -> None:
    """Reset settings cache to reload from environment."""
    get_settings.cache_clear()
