# coachplan/application/instantiation.py
"""
Copy a template or an authored day onto a target day slot.

Copies use replace semantics: the target day is cleared before the source
content is inserted, so running the same copy twice leaves the same result.
Source group ids are remapped to fresh ids per copy so two copies of one
source never share a group.
"""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from coachplan.application.exceptions import (
    DataAccessError,
    NotFoundError,
    PartialCopyError,
    ValidationError,
)
from coachplan.application.schedule_store import ScheduleStore
from coachplan.domain.entities import DaySchedule, DayTarget, Exercise, WorkoutBlock, WorkoutTemplate
from coachplan.domain.repositories import TemplateRepository
from coachplan.domain.validation import validate_order_in_day, validate_weekday
from coachplan.domain.week_keys import WeekKey, week_start
from coachplan.infrastructure import log_utils
from coachplan.infrastructure.log_utils import log_context

Source = Union[WorkoutTemplate, DaySchedule]


@dataclass
class InstantiationResult:
    day: DaySchedule
    exercises: List[Exercise] = field(default_factory=list)
    blocks: List[WorkoutBlock] = field(default_factory=list)
    group_mapping: Dict[str, str] = field(default_factory=dict)


def _new_id() -> str:
    return str(uuid.uuid4())


def remap_exercises(
    exercises: Iterable[Exercise],
    id_factory: Callable[[], str] = _new_id,
) -> Tuple[List[Exercise], Dict[str, str]]:
    """Return unbound copies of ``exercises`` with fresh group ids.

    The mapping from old to new group id is filled lazily in source order, so
    every member of one source group resolves to the same new id.
    """
    mapping: Dict[str, str] = {}
    copies: List[Exercise] = []
    for exercise in exercises:
        new_group_id: Optional[str] = None
        if exercise.group_id:
            new_group_id = mapping.get(exercise.group_id)
            if new_group_id is None:
                new_group_id = id_factory()
                mapping[exercise.group_id] = new_group_id
        copies.append(
            replace(
                exercise,
                id=None,
                day_schedule_id=None,
                completed=False,
                executed_load=None,
                group_id=new_group_id,
                group_type=exercise.group_type if new_group_id else None,
                order_in_group=exercise.order_in_group if new_group_id else None,
                group_rest_seconds=exercise.group_rest_seconds if new_group_id else None,
            )
        )
    return copies, mapping


def copy_blocks(blocks: Sequence[WorkoutBlock]) -> List[WorkoutBlock]:
    """Unbound copies of ``blocks``; a missing or non-positive order becomes the 1-based index."""
    copies: List[WorkoutBlock] = []
    for index, block in enumerate(blocks, start=1):
        order = block.order if block.order and block.order > 0 else index
        copies.append(
            replace(
                block,
                id=None,
                day_schedule_id=None,
                completed=False,
                order=order,
                config=copy.deepcopy(block.config),
            )
        )
    return copies


class InstantiationEngine:
    """Service copying templates and days onto day slots."""

    def __init__(
        self,
        store: ScheduleStore,
        templates: TemplateRepository,
        id_factory: Callable[[], str] = _new_id,
    ):
        self.store = store
        self.templates = templates
        self.id_factory = id_factory

    @property
    def repository(self):
        return self.store.repository

    def instantiate(self, source: Source, target: DayTarget) -> InstantiationResult:
        """Replace the content of ``target`` with a fresh copy of ``source``."""
        validate_weekday(target.weekday)
        validate_order_in_day(target.order_in_day)

        exercise_copies, mapping = remap_exercises(source.exercises, self.id_factory)
        block_copies = copy_blocks(source.blocks)

        with self.repository.transaction():
            day = self.store.find_or_create_day(
                target.student_id,
                target.coach_id,
                target.week_key,
                target.weekday,
                target.order_in_day,
            )
            with log_context(day=day.id):
                self._refresh_header(day, source)
                self.store.clear_day_content(day.id)
                inserted_exercises, inserted_blocks = self._insert_content(day, exercise_copies, block_copies)

        day.exercises = inserted_exercises
        day.blocks = inserted_blocks
        day.sort_children()
        with log_context(day=day.id):
            log_utils.info(
                f"Copied {len(inserted_exercises)} exercise(s), {len(mapping)} group(s) and "
                f"{len(inserted_blocks)} block(s) ({target.week_key} weekday {target.weekday})."
            )
        return InstantiationResult(
            day=day,
            exercises=inserted_exercises,
            blocks=inserted_blocks,
            group_mapping=mapping,
        )

    def instantiate_template(self, template_id: str, target: DayTarget) -> InstantiationResult:
        template = self.templates.get_template(template_id)
        if template is None:
            raise NotFoundError("WorkoutTemplate", template_id)
        return self.instantiate(template, target)

    def instantiate_day(self, day_id: str, target: DayTarget) -> InstantiationResult:
        return self.instantiate(self.store.get_day(day_id), target)

    def apply_template(
        self,
        template_id: str,
        student_id: str,
        coach_id: str,
        weekdays: Sequence[int],
        week_key: Optional[WeekKey] = None,
        now: Optional[date] = None,
        order_in_day: int = 1,
    ) -> Dict[int, InstantiationResult]:
        """Copy one template onto several weekdays of one week (the current week by default)."""
        if not weekdays:
            raise ValidationError("Select at least one weekday", field="weekdays", value=list(weekdays))
        days = list(dict.fromkeys(validate_weekday(weekday) for weekday in weekdays))
        template = self.templates.get_template(template_id)
        if template is None:
            raise NotFoundError("WorkoutTemplate", template_id)

        key = week_start(week_key) if week_key is not None else week_start(now or date.today())
        results: Dict[int, InstantiationResult] = {}
        for weekday in days:
            target = DayTarget(student_id, coach_id, key, weekday, order_in_day)
            results[weekday] = self.instantiate(template, target)
        log_utils.info(f"Applied template {template_id} to {len(days)} day(s) of week {key}.")
        return results

    def _refresh_header(self, day: DaySchedule, source: Source) -> None:
        day.name = source.name
        day.description = source.description
        if isinstance(source, WorkoutTemplate):
            day.source_template_id = source.id
        else:
            day.source_template_id = source.source_template_id
        day.completed = False
        self.store.update_day(day)

    def _insert_content(
        self,
        day: DaySchedule,
        exercises: List[Exercise],
        blocks: List[WorkoutBlock],
    ) -> Tuple[List[Exercise], List[WorkoutBlock]]:
        try:
            inserted_exercises = self.repository.insert_exercises(day.id, exercises) if exercises else []
        except DataAccessError as exc:
            if not self.repository.supports_transactions:
                # A batch may have landed partially; put the day back to empty.
                self._compensate(day.id)
            log_utils.warn(f"Exercise copy into day {day.id} failed before blocks: {exc}")
            raise

        try:
            inserted_blocks = self.repository.insert_blocks(day.id, blocks) if blocks else []
        except DataAccessError as exc:
            if self.repository.supports_transactions:
                compensated = True  # the enclosing transaction rolls back
            else:
                compensated = self._compensate(day.id)
            if not inserted_exercises:
                raise
            log_utils.error(
                f"Block copy into day {day.id} failed after {len(inserted_exercises)} exercise(s) landed; "
                f"compensated={compensated}."
            )
            raise PartialCopyError(
                day.id, failed_step="blocks", compensated=compensated, cause=exc
            ) from exc

        return inserted_exercises, inserted_blocks

    def _compensate(self, day_id: str) -> bool:
        try:
            self.store.clear_day_content(day_id)
        except DataAccessError as exc:
            log_utils.error(f"Compensating clear of day {day_id} failed: {exc}")
            return False
        return True


__all__ = ["InstantiationEngine", "InstantiationResult", "remap_exercises", "copy_blocks"]
