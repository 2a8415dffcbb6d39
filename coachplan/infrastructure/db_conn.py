"""Utility helpers for database connection configuration."""

from __future__ import annotations

import os


def get_database_url() -> str:
    """Return the configured PostgreSQL connection URL.

    ``DATABASE_URL`` in the environment wins so a deployment can override it
    at runtime; otherwise the value built from the ``POSTGRES_*`` settings is
    used. Missing configuration raises instead of guessing a default.
    """

    env_url = os.getenv("DATABASE_URL")
    if env_url:
        return env_url

    from coachplan.config.config import settings

    settings_url = settings.DATABASE_URL
    if settings_url:
        return settings_url

    raise RuntimeError(
        "Database connection information is missing. Set the DATABASE_URL "
        "environment variable or configure the POSTGRES_* variables."
    )


def statement_timeout_option(timeout_seconds: float) -> str:
    """libpq ``options`` value capping every statement at ``timeout_seconds``."""
    return f"-c statement_timeout={int(timeout_seconds * 1000)}"
