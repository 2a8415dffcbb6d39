"""Derived plan progress and expiry status, computed on read and never stored."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional

from coachplan.domain.configuration import DomainSettings, get_settings
from coachplan.domain.entities import WorkoutPlan


class PresentationStatus(str, Enum):
    NO_PLAN = "no_plan"
    ACTIVE = "active"
    EXPIRING_SOON = "expiring_soon"
    CRITICAL = "critical"
    EXPIRED = "expired"


@dataclass(frozen=True)
class PlanProgress:
    status: PresentationStatus
    total_days: int = 0
    elapsed_days: int = 0
    remaining_days: int = 0
    percent_complete: int = 0
    end_date: Optional[date] = None


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def status_for_remaining(remaining_days: int, settings: DomainSettings | None = None) -> PresentationStatus:
    thresholds = settings or get_settings()
    if remaining_days <= 0:
        return PresentationStatus.EXPIRED
    if remaining_days <= thresholds.critical_days:
        return PresentationStatus.CRITICAL
    if remaining_days <= thresholds.expiring_soon_days:
        return PresentationStatus.EXPIRING_SOON
    return PresentationStatus.ACTIVE


def derive_progress(
    plan: Optional[WorkoutPlan],
    now: date | datetime,
    settings: DomainSettings | None = None,
) -> PlanProgress:
    """Compute elapsed/remaining days, percent complete and presentation status.

    ``plan`` is the student's active plan, or ``None`` when there is none.
    """
    if plan is None or not plan.is_active:
        return PlanProgress(status=PresentationStatus.NO_PLAN)

    total = plan.total_days
    elapsed = (_as_date(now) - plan.start_date).days
    elapsed = max(0, min(elapsed, total))
    # Halves round up.
    percent = math.floor(100 * elapsed / total + 0.5) if total else 100
    percent = max(0, min(percent, 100))
    remaining = max(0, total - elapsed)

    return PlanProgress(
        status=status_for_remaining(remaining, settings),
        total_days=total,
        elapsed_days=elapsed,
        remaining_days=remaining,
        percent_complete=percent,
        end_date=plan.computed_end_date,
    )


__all__ = ["PresentationStatus", "PlanProgress", "derive_progress", "status_for_remaining"]
