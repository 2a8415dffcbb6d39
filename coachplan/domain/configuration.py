"""Domain configuration registry decoupled from infrastructure settings."""
from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class DomainSettings:
    """Runtime configuration values consumed by domain logic."""

    default_plan_weeks: int = 4
    expiring_soon_days: int = 7
    critical_days: int = 3
    default_plan_name: str = "Training Plan"


_SETTINGS = DomainSettings()


def configure(settings: DomainSettings | None = None, /, **overrides: object) -> None:
    """Override the active :class:`DomainSettings` instance.

    The container calls this during bootstrapping with values derived from
    environment configuration. Tests may also override individual fields via
    keyword arguments.
    """

    global _SETTINGS

    if settings is not None and overrides:
        settings = replace(settings, **overrides)
    elif settings is None:
        settings = replace(_SETTINGS, **overrides)

    _SETTINGS = settings


def get_settings() -> DomainSettings:
    """Return the currently configured :class:`DomainSettings`."""

    return _SETTINGS


def reset() -> None:
    """Restore the default settings."""

    global _SETTINGS
    _SETTINGS = DomainSettings()
