# coachplan/application/completion_sync.py
"""
Offline-first completion toggles.

Every toggle is written to the local progress log before the store is
contacted. Entries move unsynced -> syncing -> synced; a failed push leaves
them ``unsynced_after_failure`` until a later retry. Reads overlay every
unreconciled entry on top of the store's value, and reconciled entries are
pruned once a read shows the store agrees with them, or once they are
older than a week.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from coachplan.application.exceptions import DataAccessError, NotFoundError
from coachplan.application.schedule_store import ScheduleStore
from coachplan.domain.entities import DaySchedule, EntityKind, ProgressEntry, SyncState, entry_key
from coachplan.domain.progress_log import ProgressLog
from coachplan.domain.repositories import CompletionRemote
from coachplan.domain.week_keys import DateLike
from coachplan.infrastructure import log_utils
from coachplan.infrastructure.decorators import retry_on_remote_error

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_SECONDS = 0.5
DEFAULT_GRACE_SECONDS = 1.0
DEFAULT_RETENTION_DAYS = 7


@dataclass
class RetrySummary:
    attempted: int = 0
    synced: int = 0
    failed: int = 0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CompletionSync:
    """Service reconciling local completion toggles with the shared store."""

    def __init__(
        self,
        remote: CompletionRemote,
        progress_log: ProgressLog,
        store: ScheduleStore,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
        grace_seconds: float = DEFAULT_GRACE_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.remote = remote
        self.progress_log = progress_log
        self.store = store
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.grace_seconds = grace_seconds
        self.sleep = sleep

    # ------------------------------------------------------------------
    # Toggles
    # ------------------------------------------------------------------
    def toggle(self, exercise_id: str, completed: bool, now: Optional[datetime] = None) -> ProgressEntry:
        return self._toggle(EntityKind.EXERCISE, exercise_id, completed, now)

    def toggle_block(self, block_id: str, completed: bool, now: Optional[datetime] = None) -> ProgressEntry:
        return self._toggle(EntityKind.BLOCK, block_id, completed, now)

    def toggle_day(self, day_id: str, completed: bool, now: Optional[datetime] = None) -> ProgressEntry:
        return self._toggle(EntityKind.DAY, day_id, completed, now)

    def _toggle(
        self,
        kind: EntityKind,
        entity_id: str,
        completed: bool,
        now: Optional[datetime],
    ) -> ProgressEntry:
        previous = self.progress_log.get(kind, entity_id)
        entry = ProgressEntry(
            entity_kind=kind,
            entity_id=entity_id,
            completed=bool(completed),
            state=SyncState.UNSYNCED,
            timestamp=now or _utcnow(),
            revision=previous.revision + 1 if previous else 1,
        )
        self.progress_log.put(entry)
        return self._push(entry)

    def _push(self, entry: ProgressEntry) -> ProgressEntry:
        """Send one entry to the store and record the outcome if it is still current."""
        self._record(entry, SyncState.SYNCING)
        try:
            self._send(entry.entity_kind, entry.entity_id, entry.completed)
        except NotFoundError:
            self.progress_log.remove(entry.entity_kind, entry.entity_id)
            raise
        except DataAccessError as exc:
            log_utils.warn(
                f"Completion of {entry.key} kept locally after failed sync: {exc}"
            )
            return self._record(entry, SyncState.UNSYNCED_AFTER_FAILURE)
        return self._record(entry, SyncState.SYNCED)

    @retry_on_remote_error()
    def _send(self, kind: EntityKind, entity_id: str, completed: bool) -> None:
        self.remote.set_completed(kind, entity_id, completed)

    def _record(self, entry: ProgressEntry, state: SyncState) -> ProgressEntry:
        current = self.progress_log.get(entry.entity_kind, entry.entity_id)
        if current is None or current.revision != entry.revision:
            # A newer toggle superseded this one; leave it alone.
            return current or entry
        updated = replace(current, state=state)
        self.progress_log.put(updated)
        return updated

    def retry_pending(self) -> RetrySummary:
        """Re-push every entry the store has not confirmed yet."""
        summary = RetrySummary()
        for entry in self.progress_log.entries():
            if entry.reconciled:
                continue
            summary.attempted += 1
            try:
                result = self._push(entry)
            except NotFoundError as exc:
                log_utils.warn(f"Dropped completion of {entry.key}: {exc}")
                summary.failed += 1
                continue
            if result.reconciled:
                summary.synced += 1
            else:
                summary.failed += 1
        if summary.attempted:
            log_utils.info(
                f"Completion retry: {summary.synced}/{summary.attempted} synced, {summary.failed} pending."
            )
        return summary

    def pending(self) -> List[ProgressEntry]:
        return [entry for entry in self.progress_log.entries() if not entry.reconciled]

    def prune_older_than(self, now: Optional[datetime] = None, days: int = DEFAULT_RETENTION_DAYS) -> int:
        """Drop reconciled entries older than ``days``; unsynced ones are always kept."""
        cutoff = (now or _utcnow()) - timedelta(days=days)
        stale = [entry for entry in self.progress_log.entries() if entry.reconciled and entry.timestamp < cutoff]
        for entry in stale:
            self.progress_log.remove(entry.entity_kind, entry.entity_id)
        if stale:
            log_utils.debug(f"Pruned {len(stale)} synced completion(s) older than {days} day(s).")
        return len(stale)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def read_week(self, student_id: str, coach_id: str, week_key: DateLike) -> List[DaySchedule]:
        """Load a week and overlay local completion state on top of the store's."""
        days = self.store.load_week(student_id, coach_id, week_key)
        entries: Dict[str, ProgressEntry] = {entry.key: entry for entry in self.progress_log.entries()}
        if not entries:
            return days

        for day in days:
            day.completed = self._merge(entries, EntityKind.DAY, day.id, day.completed)
            for exercise in day.exercises:
                exercise.completed = self._merge(entries, EntityKind.EXERCISE, exercise.id, exercise.completed)
            for block in day.blocks:
                block.completed = self._merge(entries, EntityKind.BLOCK, block.id, block.completed)
        return days

    def _merge(
        self,
        entries: Dict[str, ProgressEntry],
        kind: EntityKind,
        entity_id: Optional[str],
        remote_value: bool,
    ) -> bool:
        if entity_id is None:
            return remote_value
        entry = entries.get(entry_key(kind, entity_id))
        if entry is None:
            return remote_value
        if not entry.reconciled:
            return entry.completed
        if entry.completed == remote_value:
            self.progress_log.remove(kind, entity_id)
        return remote_value

    def on_resume(
        self,
        student_id: str,
        coach_id: str,
        week_key: DateLike,
        now: Optional[datetime] = None,
    ) -> List[DaySchedule]:
        """Handle the app regaining focus: wait, flush pending toggles, prune old entries, then re-read."""
        if self.grace_seconds > 0:
            self.sleep(self.grace_seconds)
        self.retry_pending()
        self.prune_older_than(now)
        return self.read_week(student_id, coach_id, week_key)


__all__ = ["CompletionSync", "RetrySummary"]
