"""Infrastructure implementation of the local completion log."""

from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, List, Optional

from coachplan.domain.entities import EntityKind, ProgressEntry, entry_key
from coachplan.infrastructure.log_utils import log_message


class JsonFileProgressLog:
    """Persist completion toggles to a JSON file on disk.

    Every write replaces the file atomically, so a crash mid-write leaves the
    previous content in place.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def get(self, kind: EntityKind, entity_id: str) -> Optional[ProgressEntry]:
        with self._lock:
            return self._read().get(entry_key(kind, entity_id))

    def put(self, entry: ProgressEntry) -> None:
        with self._lock:
            entries = self._read()
            entries[entry.key] = entry
            self._write(entries)

    def remove(self, kind: EntityKind, entity_id: str) -> None:
        with self._lock:
            entries = self._read()
            if entries.pop(entry_key(kind, entity_id), None) is not None:
                self._write(entries)

    def entries(self) -> List[ProgressEntry]:
        with self._lock:
            return list(self._read().values())

    def _read(self) -> Dict[str, ProgressEntry]:
        if not self._path.exists():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, ValueError) as exc:
            log_message(f"Failed to read progress log {self._path}: {exc}", "WARN")
            return {}
        if not isinstance(payload, dict) or not isinstance(payload.get("entries", []), list):
            log_message(f"Ignoring progress log {self._path}: unexpected layout", "WARN")
            return {}

        entries: Dict[str, ProgressEntry] = {}
        for raw in payload.get("entries", []):
            try:
                entry = ProgressEntry.from_dict(raw)
            except (KeyError, TypeError, ValueError) as exc:
                log_message(f"Skipping malformed progress entry {raw!r}: {exc}", "WARN")
                continue
            entries[entry.key] = entry
        return entries

    def _write(self, entries: Dict[str, ProgressEntry]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"entries": [entry.to_dict() for entry in entries.values()]}
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".progress-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self._path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        try:
            os.chmod(self._path, 0o600)
        except OSError as exc:  # pragma: no cover - depends on platform
            log_message(f"Could not set permissions on {self._path}: {exc}", "WARN")


__all__ = ["JsonFileProgressLog"]
