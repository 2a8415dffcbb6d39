"""
Centralised config for the entire application.

This module consolidates all configuration settings, loading sensitive values
from environment variables and providing typed, validated access to them
through a singleton `settings` object.
"""

import os
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from psycopg.conninfo import make_conninfo

CONFIG_FILE = Path(__file__).resolve()


def _discover_project_root(config_file: Path) -> tuple[Path, Path]:
    """Return a project root and env file path without assuming ``.env`` exists.

    Deployments keep a ``.env`` file next to the checkout, but development and
    CI usually have none. Walk the parents looking for one and fall back to the
    directory holding the project markers when it is missing.
    """

    parents = list(config_file.parents)

    for parent in parents:
        env_file = parent / ".env"
        if env_file.exists():
            return parent, env_file

    for marker in ("pyproject.toml", ".git"):
        for parent in parents:
            if (parent / marker).exists():
                return parent, parent / ".env"

    fallback_root = parents[1] if len(parents) > 1 else parents[0]
    return fallback_root, fallback_root / ".env"


PROJECT_ROOT, ENV_FILE_PATH = _discover_project_root(CONFIG_FILE)

T = TypeVar("T")


class Settings(BaseSettings):
    """
    Centralised and validated application settings.
    """
    model_config = SettingsConfigDict(
        env_file=ENV_FILE_PATH, env_file_encoding="utf-8", extra="ignore", case_sensitive=False
    )

    # --- CORE APP SETTINGS ---
    PROJECT_ROOT: Path = PROJECT_ROOT
    ENVIRONMENT: str = "development"
    DATABASE_URL: Optional[str] = Field(None, validate_default=True)

    # --- LOGGING ---
    COACHPLAN_LOG_LEVEL: str = "INFO"
    COACHPLAN_LOG_TO_CONSOLE: bool = True
    COACHPLAN_LOG_DIR: Optional[Path] = None

    # --- DATABASE CONNECTION (from environment) ---
    POSTGRES_USER: Optional[str] = None
    POSTGRES_PASSWORD: Optional[SecretStr] = None
    POSTGRES_HOST: Optional[str] = None
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: Optional[str] = None
    DB_POOL_MIN_SIZE: int = 1
    DB_POOL_MAX_SIZE: int = 5

    # --- REMOTE CALLS ---
    REMOTE_TIMEOUT_SECONDS: float = 10.0
    REMOTE_MAX_ATTEMPTS: int = 3
    REMOTE_BACKOFF_SECONDS: float = 0.5

    # --- OFFLINE PROGRESS ---
    RESUME_GRACE_SECONDS: float = 1.0
    PROGRESS_LOG_PATH: Optional[Path] = None

    # --- PLAN DEFAULTS & EXPIRY THRESHOLDS ---
    DEFAULT_PLAN_WEEKS: int = 4
    EXPIRING_SOON_DAYS: int = 7
    CRITICAL_DAYS: int = 3

    @model_validator(mode="after")
    def build_database_url(self) -> "Settings":
        """Construct ``DATABASE_URL`` from the ``POSTGRES_*`` values when absent."""
        if self.DATABASE_URL:
            return self

        db_host = os.getenv("DB_HOST_OVERRIDE", self.POSTGRES_HOST)
        if not (self.POSTGRES_USER and self.POSTGRES_PASSWORD and db_host and self.POSTGRES_DB):
            return self

        self.DATABASE_URL = make_conninfo(
            user=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD.get_secret_value(),
            host=db_host,
            port=self.POSTGRES_PORT,
            dbname=self.POSTGRES_DB,
        )
        return self

    # --- DYNAMIC FILE PATHS ---
    @property
    def log_path(self) -> Path:
        """
        Path for the main application log file.

        Uses ``COACHPLAN_LOG_DIR`` when configured, then /var/log/coachplan if it
        is writable, otherwise a ``logs`` directory under the project root.
        """
        if self.COACHPLAN_LOG_DIR is not None:
            return Path(self.COACHPLAN_LOG_DIR) / "coachplan.log"

        prod_log_dir = Path("/var/log/coachplan")
        if prod_log_dir.exists() and os.access(prod_log_dir, os.W_OK):
            return prod_log_dir / "coachplan.log"

        return self.PROJECT_ROOT / "logs" / "coachplan.log"

    @property
    def progress_log_path(self) -> Path:
        """Location of the local-first completion log."""
        if self.PROGRESS_LOG_PATH is not None:
            return Path(self.PROGRESS_LOG_PATH)
        return Path.home() / ".coachplan" / "progress.json"


# Create a single, importable instance of the settings for the entire application.
settings = Settings()


def _coerce_secret(value: Any) -> Any:
    if isinstance(value, SecretStr):
        return value.get_secret_value()
    return value


def _to_bool(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _coerce_type(raw: str, template: Any) -> Any:
    if isinstance(template, bool):
        return _to_bool(raw)
    if isinstance(template, int) and not isinstance(template, bool):
        return int(raw)
    if isinstance(template, float):
        return float(raw)
    if isinstance(template, Path):
        return Path(raw)
    return raw


def get_env(
    name: str,
    default: T | None = None,
    *,
    parser: Callable[[str], T] | None = None,
) -> T | Any | None:
    """Return a configuration value resolving environment overrides consistently.

    The resolution order is:

    1. Explicit environment variable overrides at runtime.
    2. Typed values provided by the Pydantic ``settings`` object.
    3. The supplied ``default`` value.

    When an override is read directly from :mod:`os.environ`, ``parser`` (or the
    inferred type from ``settings``) is used to coerce the string into the
    expected type.
    """

    if name in os.environ:
        raw_value = os.environ[name]
        if parser is not None:
            return parser(raw_value)
        current = getattr(settings, name, None)
        if current is not None:
            template = _coerce_secret(current)
            try:
                return _coerce_type(raw_value, template)
            except (TypeError, ValueError):
                return template
        return raw_value

    if hasattr(settings, name):
        value = _coerce_secret(getattr(settings, name))
        return default if value is None else value

    return default
