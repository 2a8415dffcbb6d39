"""Domain-level protocol for the local-first completion log."""

from __future__ import annotations

from typing import List, Optional, Protocol

from coachplan.domain.entities import EntityKind, ProgressEntry


class ProgressLog(Protocol):
    """Durable store of completion toggles, keyed by entity kind and id."""

    def get(self, kind: EntityKind, entity_id: str) -> Optional[ProgressEntry]:
        """Return the entry for the entity, if any."""

    def put(self, entry: ProgressEntry) -> None:
        """Insert or overwrite the entry for the entity."""

    def remove(self, kind: EntityKind, entity_id: str) -> None:
        """Drop the entry for the entity, if present."""

    def entries(self) -> List[ProgressEntry]:
        """Return every entry currently held."""


__all__ = ["ProgressLog"]
