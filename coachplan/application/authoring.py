# coachplan/application/authoring.py
"""
Coach-side editing of day schedules and templates.

Grouping and block rules are enforced here, when content is written by a
coach. Copies made later by the instantiation engine trust this content.
"""

from __future__ import annotations

import uuid
from dataclasses import replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, TypeVar

from coachplan.application.exceptions import NotFoundError, ValidationError
from coachplan.application.schedule_store import ScheduleStore
from coachplan.application.instantiation import copy_blocks, remap_exercises
from coachplan.domain.blocks import BlockPosition, check_config_matches, parse_position
from coachplan.domain.entities import DaySchedule, Exercise, WorkoutBlock, WorkoutTemplate
from coachplan.domain.grouping_rules import GroupType, validate_group_consistency, validate_group_size
from coachplan.domain.repositories import TemplateRepository
from coachplan.infrastructure import log_utils

T = TypeVar("T")
_UNSET: Any = object()

EDITABLE_EXERCISE_FIELDS = frozenset(
    {"name", "video_link", "sets", "reps", "rest_seconds", "load", "executed_load", "notes"}
)
EDITABLE_BLOCK_FIELDS = frozenset({"name", "description", "estimated_minutes", "config"})
EDITABLE_TEMPLATE_FIELDS = frozenset({"name", "description", "category", "exercises", "blocks"})


def _new_id() -> str:
    return str(uuid.uuid4())


def _next_order(exercises: Sequence[Exercise]) -> int:
    return max((exercise.order for exercise in exercises), default=0) + 1


def _validate_blocks(blocks: Sequence[WorkoutBlock]) -> None:
    for block in blocks:
        check_config_matches(block.type, block.config)


def _apply_changes(entity: T, changes: Mapping[str, Any], allowed: frozenset) -> T:
    unknown = sorted(set(changes) - allowed)
    if unknown:
        raise ValidationError(f"Cannot edit {', '.join(unknown)}", field=unknown[0], value=changes[unknown[0]])
    return replace(entity, **changes)


def _find_exercise(day: DaySchedule, exercise_id: str) -> Exercise:
    for exercise in day.exercises:
        if exercise.id == exercise_id:
            return exercise
    raise NotFoundError("Exercise", exercise_id)


def _find_block(day: DaySchedule, block_id: str) -> WorkoutBlock:
    for block in day.blocks:
        if block.id == block_id:
            return block
    raise NotFoundError("WorkoutBlock", block_id)


def _group_members(day: DaySchedule, group_id: str) -> List[Exercise]:
    for group in day.groups:
        if group.group_id == group_id:
            return list(group.members)
    raise NotFoundError("ExerciseGroup", group_id)


class AuthoringService:
    """Service for coaches building days and templates."""

    def __init__(
        self,
        store: ScheduleStore,
        templates: TemplateRepository,
        id_factory: Callable[[], str] = _new_id,
    ):
        self.store = store
        self.templates = templates
        self.id_factory = id_factory

    # ------------------------------------------------------------------
    # Day content
    # ------------------------------------------------------------------
    def add_exercise(self, day_id: str, exercise: Exercise) -> Exercise:
        """Append a single exercise after the day's current last one."""
        day = self.store.get_day(day_id)
        if not exercise.name or not exercise.name.strip():
            raise ValidationError("Exercise name is required", field="name", value=exercise.name)
        candidate = replace(
            exercise,
            id=None,
            day_schedule_id=day.id,
            order=_next_order(day.exercises),
            completed=False,
        )
        validate_group_consistency([*day.exercises, candidate])
        inserted = self.store.repository.insert_exercises(day.id, [candidate])
        log_utils.info(f"Added exercise {candidate.name!r} to day {day.id} at position {candidate.order}.")
        return inserted[0]

    def create_group(
        self,
        day_id: str,
        group_type: GroupType | str,
        exercises: Sequence[Exercise],
        group_rest_seconds: Optional[int] = None,
    ) -> List[Exercise]:
        """Insert ``exercises`` as one new group sharing a single position in the day."""
        kind = GroupType.parse(group_type)
        validate_group_size(kind, len(exercises))
        day = self.store.get_day(day_id)
        group_id = self.id_factory()
        order = _next_order(day.exercises)
        members = [
            replace(
                exercise,
                id=None,
                day_schedule_id=day.id,
                order=order,
                completed=False,
                group_id=group_id,
                group_type=kind,
                order_in_group=position,
                group_rest_seconds=group_rest_seconds,
            )
            for position, exercise in enumerate(exercises, start=1)
        ]
        inserted = self.store.repository.insert_exercises(day.id, members)
        log_utils.info(f"Created {kind.value} group {group_id} with {len(members)} exercise(s) in day {day.id}.")
        return inserted

    def add_block(self, day_id: str, block: WorkoutBlock) -> WorkoutBlock:
        """Append a block at the end of its position (start, middle or end)."""
        check_config_matches(block.type, block.config)
        day = self.store.get_day(day_id)
        same_position = [existing for existing in day.blocks if existing.position is block.position]
        candidate = replace(
            block,
            id=None,
            day_schedule_id=day.id,
            order=max((existing.order for existing in same_position), default=0) + 1,
            completed=False,
        )
        inserted = self.store.repository.insert_blocks(day.id, [candidate])
        log_utils.info(f"Added {candidate.type.value} block to day {day.id} ({candidate.position.value}).")
        return inserted[0]

    def rename_day(self, day_id: str, name: Optional[str], description: Optional[str] = None) -> DaySchedule:
        day = self.store.get_day(day_id)
        day.name = name
        day.description = description
        self.store.update_day(day)
        return day

    def update_exercise(self, day_id: str, exercise_id: str, **changes: Any) -> Exercise:
        """Edit prescription fields of one exercise, ``executed_load`` included."""
        day = self.store.get_day(day_id)
        current = _find_exercise(day, exercise_id)
        updated = _apply_changes(current, changes, EDITABLE_EXERCISE_FIELDS)
        if not updated.name or not updated.name.strip():
            raise ValidationError("Exercise name is required", field="name", value=updated.name)
        self.store.repository.update_exercise(updated)
        log_utils.debug(f"Updated {sorted(changes)} of exercise {exercise_id}.")
        return updated

    def remove_exercise(self, day_id: str, exercise_id: str) -> None:
        """Delete one exercise; remaining group members close the gap in ``order_in_group``."""
        day = self.store.get_day(day_id)
        doomed = _find_exercise(day, exercise_id)
        repository = self.store.repository
        with repository.transaction():
            repository.delete_exercise(exercise_id)
            if doomed.group_id:
                survivors = [
                    member
                    for group in day.groups
                    if group.group_id == doomed.group_id
                    for member in group.members
                    if member.id != exercise_id
                ]
                for position, member in enumerate(survivors, start=1):
                    if member.order_in_group != position:
                        repository.update_exercise(replace(member, order_in_group=position))
        log_utils.info(f"Removed exercise {doomed.name!r} from day {day.id}.")

    def reorder_items(self, day_id: str, item_ids: Sequence[str]) -> DaySchedule:
        """Give the day's items the positions of ``item_ids``.

        Each id names either an ungrouped exercise or a ``group_id``; every
        item of the day must appear exactly once. Group members share the
        new position.
        """
        day = self.store.get_day(day_id)
        members_by_item: Dict[str, List[Exercise]] = {}
        for exercise in day.exercises:
            members_by_item.setdefault(exercise.group_id or exercise.id, []).append(exercise)
        if len(item_ids) != len(set(item_ids)) or set(item_ids) != set(members_by_item):
            raise ValidationError(
                "Reorder must list every exercise and group of the day exactly once",
                field="item_ids",
                value=list(item_ids),
            )
        repository = self.store.repository
        with repository.transaction():
            for position, item_id in enumerate(item_ids, start=1):
                for member in members_by_item[item_id]:
                    if member.order != position:
                        repository.update_exercise(replace(member, order=position))
        log_utils.debug(f"Reordered {len(item_ids)} item(s) of day {day.id}.")
        return self.store.get_day(day.id)

    def update_group(
        self,
        day_id: str,
        group_id: str,
        *,
        group_type: GroupType | str | None = None,
        group_rest_seconds: Any = _UNSET,
    ) -> List[Exercise]:
        """Change the type or shared rest of a group; size is checked against the new type."""
        members = _group_members(self.store.get_day(day_id), group_id)
        kind = GroupType.parse(group_type) if group_type is not None else members[0].group_type
        validate_group_size(kind, len(members))
        rest = members[0].group_rest_seconds if group_rest_seconds is _UNSET else group_rest_seconds
        updated = [replace(member, group_type=kind, group_rest_seconds=rest) for member in members]
        repository = self.store.repository
        with repository.transaction():
            for member in updated:
                repository.update_exercise(member)
        log_utils.info(f"Updated group {group_id}: {kind.value}, rest {rest}.")
        return updated

    def delete_group(self, day_id: str, group_id: str) -> int:
        """Delete every member of a group; return how many exercises went."""
        members = _group_members(self.store.get_day(day_id), group_id)
        repository = self.store.repository
        with repository.transaction():
            for member in members:
                repository.delete_exercise(member.id)
        log_utils.info(f"Deleted group {group_id} ({len(members)} exercise(s)) from day {day_id}.")
        return len(members)

    def update_block(self, day_id: str, block_id: str, **changes: Any) -> WorkoutBlock:
        day = self.store.get_day(day_id)
        updated = _apply_changes(_find_block(day, block_id), changes, EDITABLE_BLOCK_FIELDS)
        self.store.repository.update_block(updated)
        log_utils.debug(f"Updated {sorted(changes)} of block {block_id}.")
        return updated

    def remove_block(self, day_id: str, block_id: str) -> None:
        block = _find_block(self.store.get_day(day_id), block_id)
        self.store.repository.delete_block(block.id)
        log_utils.info(f"Removed {block.type.value} block {block.name!r} from day {day_id}.")

    def reorder_blocks(
        self,
        day_id: str,
        position: BlockPosition | str,
        block_ids: Sequence[str],
    ) -> List[WorkoutBlock]:
        """Renumber the blocks of one position in the order of ``block_ids``."""
        where = parse_position(position)
        day = self.store.get_day(day_id)
        current = {block.id: block for block in day.blocks if block.position is where}
        if len(block_ids) != len(set(block_ids)) or set(block_ids) != set(current):
            raise ValidationError(
                f"Reorder must list every {where.value} block of the day exactly once",
                field="block_ids",
                value=list(block_ids),
            )
        reordered = [replace(current[block_id], order=order) for order, block_id in enumerate(block_ids, start=1)]
        repository = self.store.repository
        with repository.transaction():
            for block in reordered:
                if block.order != current[block.id].order:
                    repository.update_block(block)
        return reordered

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------
    def create_template(
        self,
        coach_id: str,
        name: str,
        exercises: Sequence[Exercise] = (),
        blocks: Sequence[WorkoutBlock] = (),
        description: Optional[str] = None,
        category: Optional[str] = None,
    ) -> WorkoutTemplate:
        """Validate and persist a reusable template."""
        if not name or not name.strip():
            raise ValidationError("Template name is required", field="name", value=name)
        validate_group_consistency(exercises)
        _validate_blocks(blocks)
        template = WorkoutTemplate(
            id=None,
            coach_id=coach_id,
            name=name.strip(),
            description=description,
            category=category,
            exercises=[replace(exercise, id=None, day_schedule_id=None, completed=False) for exercise in exercises],
            blocks=[replace(block, id=None, day_schedule_id=None, completed=False) for block in blocks],
        )
        saved = self.templates.insert_template(template)
        log_utils.info(
            f"Saved template {saved.id} {saved.name!r} with {len(saved.exercises)} exercise(s) "
            f"and {len(saved.blocks)} block(s)."
        )
        return saved

    def update_template(self, template_id: str, **changes: Any) -> WorkoutTemplate:
        """Edit a template; ``exercises`` or ``blocks``, when given, replace the old content."""
        current = self.templates.get_template(template_id)
        if current is None:
            raise NotFoundError("WorkoutTemplate", template_id)
        updated = _apply_changes(current, changes, EDITABLE_TEMPLATE_FIELDS)
        if not updated.name or not updated.name.strip():
            raise ValidationError("Template name is required", field="name", value=updated.name)
        validate_group_consistency(updated.exercises)
        _validate_blocks(updated.blocks)
        updated.name = updated.name.strip()
        updated.exercises = [
            replace(exercise, id=None, day_schedule_id=None, completed=False) for exercise in updated.exercises
        ]
        updated.blocks = [replace(block, id=None, day_schedule_id=None, completed=False) for block in updated.blocks]
        saved = self.templates.update_template(updated)
        log_utils.info(f"Updated template {saved.id} {saved.name!r}.")
        return saved

    def delete_template(self, template_id: str) -> None:
        """Delete a template. Days already built from it keep their content."""
        self.templates.delete_template(template_id)
        log_utils.info(f"Deleted template {template_id}.")

    def save_day_as_template(
        self,
        day_id: str,
        name: str,
        description: Optional[str] = None,
        category: Optional[str] = None,
    ) -> WorkoutTemplate:
        """Capture an authored day as a template owned by the day's coach."""
        day = self.store.get_day(day_id)
        exercises, _ = remap_exercises(day.exercises, self.id_factory)
        return self.create_template(
            day.coach_id,
            name,
            exercises=exercises,
            blocks=copy_blocks(day.blocks),
            description=description if description is not None else day.description,
            category=category,
        )


__all__ = ["AuthoringService"]
