from __future__ import annotations

from typing import Any, Dict, Mapping, Type

from coachplan.infrastructure.di_container import build_container
from coachplan.infrastructure.postgres_dal import PostgresDal
from coachplan.infrastructure.progress_log import JsonFileProgressLog
from tests.memory_store import MemoryProgressLog, MemoryStore

ServiceType = Type[Any]


def build_stub_container(
    *,
    dal: Any | None = None,
    progress_log: Any | None = None,
    extra_overrides: Mapping[ServiceType, Any] | None = None,
):
    """Construct a container wired to in-memory stores instead of PostgreSQL."""
    overrides: Dict[ServiceType, Any] = {
        PostgresDal: dal if dal is not None else MemoryStore(),
        JsonFileProgressLog: progress_log if progress_log is not None else MemoryProgressLog(),
    }
    if extra_overrides:
        overrides.update(extra_overrides)
    return build_container(overrides=overrides)


__all__ = ["build_stub_container"]
