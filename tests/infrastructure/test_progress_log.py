from __future__ import annotations

import json
import os
import stat
from datetime import datetime, timezone

import pytest

from coachplan.domain.entities import EntityKind, ProgressEntry, SyncState
from coachplan.infrastructure.progress_log import JsonFileProgressLog

NOW = datetime(2024, 1, 3, 7, 45, tzinfo=timezone.utc)


def _entry(entity_id: str, completed: bool = True, state: SyncState = SyncState.UNSYNCED, revision: int = 1):
    return ProgressEntry(
        entity_kind=EntityKind.EXERCISE,
        entity_id=entity_id,
        completed=completed,
        state=state,
        timestamp=NOW,
        revision=revision,
    )


def test_entries_survive_a_restart(tmp_path) -> None:
    path = tmp_path / "nested" / "progress.json"
    JsonFileProgressLog(path).put(_entry("ex-1"))

    reopened = JsonFileProgressLog(path)

    assert reopened.get(EntityKind.EXERCISE, "ex-1") == _entry("ex-1")
    assert reopened.get(EntityKind.BLOCK, "ex-1") is None


def test_put_replaces_the_entry_for_the_same_entity(tmp_path) -> None:
    log = JsonFileProgressLog(tmp_path / "progress.json")
    log.put(_entry("ex-1"))
    log.put(_entry("ex-1", completed=False, state=SyncState.SYNCED, revision=2))

    entries = log.entries()
    assert len(entries) == 1
    assert entries[0].revision == 2
    assert entries[0].reconciled


def test_remove_deletes_only_the_named_entry(tmp_path) -> None:
    log = JsonFileProgressLog(tmp_path / "progress.json")
    log.put(_entry("ex-1"))
    log.put(_entry("ex-2"))

    log.remove(EntityKind.EXERCISE, "ex-1")
    log.remove(EntityKind.EXERCISE, "missing")

    assert [entry.entity_id for entry in log.entries()] == ["ex-2"]


def test_file_is_private_and_leaves_no_temp_files(tmp_path) -> None:
    store_dir = tmp_path / "store"
    path = store_dir / "progress.json"
    JsonFileProgressLog(path).put(_entry("ex-1"))

    assert sorted(os.listdir(store_dir)) == ["progress.json"]
    if os.name == "posix":
        assert stat.S_IMODE(path.stat().st_mode) == 0o600
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["entries"][0]["entity_id"] == "ex-1"


def test_corrupt_file_reads_as_empty(tmp_path) -> None:
    path = tmp_path / "progress.json"
    path.write_text("{not json", encoding="utf-8")

    log = JsonFileProgressLog(path)

    assert log.entries() == []
    log.put(_entry("ex-1"))
    assert len(log.entries()) == 1


@pytest.mark.parametrize("content", ['[]', '"x"', '42', 'null', '{"entries": {"a": 1}}'])
def test_non_object_payload_reads_as_empty(tmp_path, content) -> None:
    path = tmp_path / "progress.json"
    path.write_text(content, encoding="utf-8")

    log = JsonFileProgressLog(path)

    assert log.entries() == []
    log.put(_entry("ex-1"))
    assert [entry.entity_id for entry in log.entries()] == ["ex-1"]


def test_malformed_entries_are_skipped(tmp_path) -> None:
    path = tmp_path / "progress.json"
    good = _entry("ex-1").to_dict()
    path.write_text(json.dumps({"entries": [good, {"entity_kind": "planet"}]}), encoding="utf-8")

    assert [entry.entity_id for entry in JsonFileProgressLog(path).entries()] == ["ex-1"]


@pytest.mark.parametrize("missing", ["nope.json", "dir/nope.json"])
def test_missing_file_is_empty(tmp_path, missing) -> None:
    assert JsonFileProgressLog(tmp_path / missing).entries() == []
