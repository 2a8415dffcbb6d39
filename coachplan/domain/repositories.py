from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence

from coachplan.domain.entities import (
    DaySchedule,
    EntityKind,
    Exercise,
    PlanStatus,
    ReminderThreshold,
    WorkoutBlock,
    WorkoutPlan,
    WorkoutTemplate,
)
from coachplan.domain.week_keys import WeekKey


class UnitOfWork:
    """Mixin giving repositories an optional transaction scope.

    Stores without transactions inherit the no-op scope and report
    ``supports_transactions = False`` so callers can compensate by hand.
    """

    supports_transactions: bool = False

    @contextmanager
    def transaction(self) -> Iterator[None]:
        yield


class ScheduleRepository(UnitOfWork, ABC):
    """Abstract interface for day schedules and their exercises and blocks."""

    @abstractmethod
    def list_days(self, student_id: str, coach_id: str, week_key: WeekKey) -> List[DaySchedule]:
        """Return the day rows of one week, without children."""

    @abstractmethod
    def get_day(self, day_id: str) -> Optional[DaySchedule]:
        """Return one day row without children, or ``None``."""

    @abstractmethod
    def find_day(
        self,
        student_id: str,
        coach_id: str,
        week_key: WeekKey,
        weekday: int,
        order_in_day: int,
    ) -> Optional[DaySchedule]:
        """Return the day occupying the slot, or ``None``."""

    @abstractmethod
    def insert_day(self, day: DaySchedule) -> DaySchedule:
        """Insert a day row; raise ``ConflictError`` when the slot is taken."""

    @abstractmethod
    def update_day(self, day: DaySchedule) -> None:
        """Persist name, description, completion and source template of a day."""

    @abstractmethod
    def list_exercises(self, day_ids: Sequence[str]) -> List[Exercise]:
        """Return the exercises of the given days."""

    @abstractmethod
    def list_blocks(self, day_ids: Sequence[str]) -> List[WorkoutBlock]:
        """Return the blocks of the given days."""

    @abstractmethod
    def insert_exercises(self, day_id: str, exercises: Sequence[Exercise]) -> List[Exercise]:
        """Insert exercises bound to ``day_id`` and return them with ids."""

    @abstractmethod
    def insert_blocks(self, day_id: str, blocks: Sequence[WorkoutBlock]) -> List[WorkoutBlock]:
        """Insert blocks bound to ``day_id`` and return them with ids."""

    @abstractmethod
    def delete_exercises(self, day_id: str) -> int:
        """Hard-delete every exercise of a day; return the number removed."""

    @abstractmethod
    def delete_blocks(self, day_id: str) -> int:
        """Hard-delete every block of a day; return the number removed."""

    @abstractmethod
    def update_exercise(self, exercise: Exercise) -> None:
        """Persist every editable field of one exercise, completion excluded."""

    @abstractmethod
    def delete_exercise(self, exercise_id: str) -> None:
        """Hard-delete one exercise; raise ``NotFoundError`` when it is missing."""

    @abstractmethod
    def update_block(self, block: WorkoutBlock) -> None:
        """Persist every editable field of one block, type and completion excluded."""

    @abstractmethod
    def delete_block(self, block_id: str) -> None:
        """Hard-delete one block; raise ``NotFoundError`` when it is missing."""


class PlanRepository(UnitOfWork, ABC):
    """Abstract interface for plan persistence."""

    @abstractmethod
    def get_plan(self, plan_id: str) -> Optional[WorkoutPlan]:
        """Return a plan by id."""

    @abstractmethod
    def get_active_plan(self, student_id: str) -> Optional[WorkoutPlan]:
        """Return the student's active plan, if any."""

    @abstractmethod
    def list_plans(self, student_id: str) -> List[WorkoutPlan]:
        """Return all plans of a student, newest first."""

    @abstractmethod
    def list_active_plans(self) -> List[WorkoutPlan]:
        """Return every active plan (read by the reminder job)."""

    @abstractmethod
    def insert_plan(self, plan: WorkoutPlan) -> WorkoutPlan:
        """Persist a new plan and return it with its id."""

    @abstractmethod
    def update_plan_status(self, plan_id: str, status: PlanStatus) -> None:
        """Persist a status change."""

    @abstractmethod
    def set_reminder_flag(self, plan_id: str, threshold: ReminderThreshold) -> None:
        """Record that the reminder for ``threshold`` went out."""


class TemplateRepository(UnitOfWork, ABC):
    """Abstract interface for coach templates."""

    @abstractmethod
    def get_template(self, template_id: str) -> Optional[WorkoutTemplate]:
        """Return a template with its exercises and blocks."""

    @abstractmethod
    def list_templates(self, coach_id: str) -> List[WorkoutTemplate]:
        """Return a coach's templates without children."""

    @abstractmethod
    def insert_template(self, template: WorkoutTemplate) -> WorkoutTemplate:
        """Persist a template and its children."""

    @abstractmethod
    def update_template(self, template: WorkoutTemplate) -> WorkoutTemplate:
        """Replace a template's metadata and children."""

    @abstractmethod
    def delete_template(self, template_id: str) -> None:
        """Delete a template; days copied from it keep their content."""


class CompletionRemote(ABC):
    """Remote side of completion toggles."""

    @abstractmethod
    def set_completed(self, kind: EntityKind, entity_id: str, completed: bool) -> None:
        """Write a completion flag; raise ``NotFoundError`` for unknown ids."""
