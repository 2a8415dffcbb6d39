"""Custom exception hierarchy for coachplan plan composition and sync."""

from __future__ import annotations

from typing import Any, Optional


class ApplicationError(Exception):
    """Base exception for coachplan failures."""

    retryable: bool = False


class ValidationError(ApplicationError):
    """Raised when input breaks a model rule (weekday, duration, group size...)."""

    def __init__(self, message: str, *, field: str | None = None, value: Any = None) -> None:
        super().__init__(message)
        self.field = field
        self.value = value


class NotFoundError(ApplicationError):
    """Raised when a template, day schedule or plan does not exist."""

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(f"{entity} {entity_id!r} not found")
        self.entity = entity
        self.entity_id = entity_id


class DataAccessError(ApplicationError):
    """Raised when persistence layer calls fail."""


class RemoteSyncError(DataAccessError):
    """Transient failure talking to the shared store (network, timeout, pool)."""

    retryable = True


class ConflictError(DataAccessError):
    """Raised when two writers created the same day schedule concurrently."""


class PartialCopyError(ApplicationError):
    """One half of a day copy (exercises or blocks) failed after the other landed."""

    retryable = True

    def __init__(
        self,
        day_id: str,
        *,
        failed_step: str,
        compensated: bool,
        cause: Optional[BaseException] = None,
    ) -> None:
        state = "cleaned up" if compensated else "NOT cleaned up"
        super().__init__(
            f"Copy into day {day_id} failed while inserting {failed_step}; partial rows {state}"
        )
        self.day_id = day_id
        self.failed_step = failed_step
        self.compensated = compensated
        self.cause = cause


class ReplicationError(ApplicationError):
    """A replication run stopped on a failing target week."""

    retryable = True

    def __init__(self, report: Any, cause: Optional[BaseException] = None) -> None:
        super().__init__(
            f"Replication stopped at week offset {report.failed_offset}; "
            f"completed offsets {list(report.completed_offsets)}; resume from {report.resume_offset}"
        )
        self.report = report
        self.cause = cause


__all__ = [
    "ApplicationError",
    "ValidationError",
    "NotFoundError",
    "DataAccessError",
    "RemoteSyncError",
    "ConflictError",
    "PartialCopyError",
    "ReplicationError",
]
