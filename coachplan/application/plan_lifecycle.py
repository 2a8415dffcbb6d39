# coachplan/application/plan_lifecycle.py
"""
Plan lifecycle: create, renew and end plans, derive their expiry status and
replicate the authored base week across the plan's duration.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, List, Optional

from coachplan.application.exceptions import (
    ApplicationError,
    NotFoundError,
    ReplicationError,
    ValidationError,
)
from coachplan.application.instantiation import InstantiationEngine
from coachplan.application.schedule_store import ScheduleStore
from coachplan.domain.configuration import get_settings
from coachplan.domain.entities import (
    DayTarget,
    PlanStatus,
    ReminderThreshold,
    WorkoutPlan,
)
from coachplan.domain.plan_status import PlanProgress, derive_progress
from coachplan.domain.repositories import PlanRepository
from coachplan.domain.validation import validate_duration_weeks
from coachplan.domain.week_keys import WeekKey, shift_weeks, week_start
from coachplan.infrastructure import log_utils
from coachplan.infrastructure.log_utils import log_context


@dataclass
class ReplicationReport:
    """Outcome of one replication run, detailed enough to resume it."""

    base_week: WeekKey
    duration_weeks: int
    start_offset: int = 1
    source_day_count: int = 0
    completed_offsets: List[int] = field(default_factory=list)
    failed_offset: Optional[int] = None
    failed_target: Optional[DayTarget] = None
    days_written: int = 0
    cancelled: bool = False

    @property
    def completed_weeks(self) -> List[WeekKey]:
        return [shift_weeks(self.base_week, offset) for offset in self.completed_offsets]

    @property
    def finished(self) -> bool:
        return self.failed_offset is None and not self.cancelled

    @property
    def resume_offset(self) -> Optional[int]:
        """First week offset not fully replicated, or ``None`` when nothing is left."""
        if self.failed_offset is not None:
            return self.failed_offset
        if not self.cancelled:
            return None
        if self.completed_offsets:
            return self.completed_offsets[-1] + 1
        return self.start_offset


@dataclass
class LifecycleResult:
    plan: WorkoutPlan
    replication: ReplicationReport
    previous: Optional[WorkoutPlan] = None


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


class PlanLifecycleManager:
    """Service for creating, renewing and ending training plans."""

    def __init__(
        self,
        plans: PlanRepository,
        store: ScheduleStore,
        engine: InstantiationEngine,
    ):
        self.plans = plans
        self.store = store
        self.engine = engine

    # ------------------------------------------------------------------
    # State changes
    # ------------------------------------------------------------------
    def create(
        self,
        student_id: str,
        coach_id: str,
        name: Optional[str] = None,
        duration_weeks: Optional[int] = None,
        start_date: Optional[date] = None,
        notes: Optional[str] = None,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> LifecycleResult:
        """End any active plan of the student, start a new one and replicate its base week."""
        domain_settings = get_settings()
        weeks = validate_duration_weeks(
            domain_settings.default_plan_weeks if duration_weeks is None else duration_weeks
        )
        start = _as_date(start_date or date.today())

        with self.plans.transaction():
            previous = self.plans.get_active_plan(student_id)
            if previous is not None:
                previous.transition_to(PlanStatus.ENDED)
                self.plans.update_plan_status(previous.id, PlanStatus.ENDED)
                log_utils.info(f"Ended plan {previous.id} of student {student_id} to make room for a new one.")
            plan = self.plans.insert_plan(
                WorkoutPlan(
                    id=None,
                    student_id=student_id,
                    coach_id=coach_id,
                    name=name or domain_settings.default_plan_name,
                    start_date=start,
                    duration_weeks=weeks,
                    notes=notes,
                )
            )

        with log_context(plan=plan.id, student=student_id):
            log_utils.info(f"Created plan {plan.id}: {weeks} week(s) from {start}.")
            report = self.replicate(student_id, coach_id, week_start(start), weeks, should_cancel=should_cancel)
        return LifecycleResult(plan=plan, replication=report, previous=previous)

    def renew(
        self,
        existing_plan: WorkoutPlan,
        name: Optional[str] = None,
        duration_weeks: Optional[int] = None,
        notes: Optional[str] = None,
        now: Optional[date] = None,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> LifecycleResult:
        """Mark an active plan ``renewed`` and start its successor today.

        The status update and the insert share one unit of work. On a store
        without transactions the old plan is marked first; if the insert then
        fails the student is left without an active plan and the error is
        raised.
        """
        weeks = validate_duration_weeks(
            existing_plan.duration_weeks if duration_weeks is None else duration_weeks
        )
        today = _as_date(now or date.today())

        with self.plans.transaction():
            current = self._reload(existing_plan)
            if not current.is_active:
                raise ValidationError(
                    f"Only an active plan can be renewed; plan {current.id} is {current.status.value}",
                    field="status",
                    value=current.status.value,
                )
            current.transition_to(PlanStatus.RENEWED)
            self.plans.update_plan_status(current.id, PlanStatus.RENEWED)
            plan = self.plans.insert_plan(
                WorkoutPlan(
                    id=None,
                    student_id=current.student_id,
                    coach_id=current.coach_id,
                    name=name or current.name,
                    start_date=today,
                    duration_weeks=weeks,
                    notes=notes if notes is not None else current.notes,
                )
            )

        existing_plan.status = current.status
        with log_context(plan=plan.id, student=plan.student_id):
            log_utils.info(f"Renewed plan {current.id} as {plan.id}: {weeks} week(s) from {today}.")
            report = self.replicate(
                plan.student_id, plan.coach_id, week_start(today), weeks, should_cancel=should_cancel
            )
        return LifecycleResult(plan=plan, replication=report, previous=current)

    def end(self, existing_plan: WorkoutPlan) -> WorkoutPlan:
        """Mark a plan ``ended``; no content is copied."""
        current = self._reload(existing_plan)
        current.transition_to(PlanStatus.ENDED)
        self.plans.update_plan_status(current.id, PlanStatus.ENDED)
        existing_plan.status = current.status
        log_utils.info(f"Ended plan {current.id} of student {current.student_id}.")
        return current

    def mark_reminder_sent(self, plan_id: str, threshold: ReminderThreshold | str) -> WorkoutPlan:
        """Record a sent expiry reminder so the reminder job never repeats it."""
        kind = ReminderThreshold(threshold)
        plan = self.plans.get_plan(plan_id)
        if plan is None:
            raise NotFoundError("WorkoutPlan", plan_id)
        if not plan.reminder_sent(kind):
            self.plans.set_reminder_flag(plan_id, kind)
            setattr(plan, kind.flag_name, True)
            log_utils.debug(f"Reminder {kind.value} recorded for plan {plan_id}.")
        return plan

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get_active_plan(self, student_id: str) -> Optional[WorkoutPlan]:
        return self.plans.get_active_plan(student_id)

    def history(self, student_id: str) -> List[WorkoutPlan]:
        return self.plans.list_plans(student_id)

    def progress(self, plan: Optional[WorkoutPlan], now: date | datetime) -> PlanProgress:
        return derive_progress(plan, now)

    def student_progress(self, student_id: str, now: date | datetime) -> PlanProgress:
        return derive_progress(self.plans.get_active_plan(student_id), now)

    # ------------------------------------------------------------------
    # Replication
    # ------------------------------------------------------------------
    def replicate(
        self,
        student_id: str,
        coach_id: str,
        base_week: WeekKey | date,
        duration_weeks: int,
        start_offset: int = 1,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> ReplicationReport:
        """Copy every day of ``base_week`` into weeks ``start_offset .. duration_weeks - 1``.

        The base week itself (offset 0) is authored content and is never
        written. Each target copy is idempotent, so a failed run is resumed by
        passing ``report.resume_offset`` as ``start_offset``.
        """
        weeks = validate_duration_weeks(duration_weeks)
        if isinstance(start_offset, bool) or not isinstance(start_offset, int) or start_offset < 1:
            raise ValidationError(
                f"start_offset must be an integer of at least 1, got {start_offset!r}",
                field="start_offset",
                value=start_offset,
            )
        base = week_start(base_week)
        report = ReplicationReport(base_week=base, duration_weeks=weeks, start_offset=start_offset)

        source_days = self.store.load_week(student_id, coach_id, base)
        report.source_day_count = len(source_days)
        if not source_days:
            log_utils.info(f"Base week {base} of student {student_id} is empty; nothing to replicate.")
            return report

        for offset in range(start_offset, weeks):
            target_week = shift_weeks(base, offset)
            with log_context(week=target_week):
                for source_day in source_days:
                    if should_cancel is not None and should_cancel():
                        report.cancelled = True
                        log_utils.warn(
                            f"Replication from {base} cancelled before week offset {offset}; "
                            f"resume from {report.resume_offset}."
                        )
                        return report

                    target = DayTarget(
                        student_id=student_id,
                        coach_id=coach_id,
                        week_key=target_week,
                        weekday=source_day.weekday,
                        order_in_day=source_day.order_in_day,
                    )
                    try:
                        self.engine.instantiate(source_day, target)
                    except ApplicationError as exc:
                        report.failed_offset = offset
                        report.failed_target = target
                        log_utils.error(
                            f"Replication into {target_week} weekday {target.weekday} failed: {exc}. "
                            f"Completed offsets: {report.completed_offsets}."
                        )
                        raise ReplicationError(report, exc) from exc
                    report.days_written += 1
            report.completed_offsets.append(offset)

        log_utils.info(
            f"Replicated {len(source_days)} day(s) from {base} into {len(report.completed_offsets)} week(s)."
        )
        return report

    def _reload(self, plan: WorkoutPlan) -> WorkoutPlan:
        if plan.id is None:
            raise NotFoundError("WorkoutPlan", None)
        current = self.plans.get_plan(plan.id)
        if current is None:
            raise NotFoundError("WorkoutPlan", plan.id)
        return current


__all__ = ["PlanLifecycleManager", "ReplicationReport", "LifecycleResult"]
