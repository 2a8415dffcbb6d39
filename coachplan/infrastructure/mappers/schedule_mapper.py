"""Mapping utilities for converting between persistence rows and schedule entities."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional

from coachplan.application.exceptions import ValidationError
from coachplan.domain.blocks import config_from_dict, config_to_dict
from coachplan.domain.entities import (
    DaySchedule,
    Exercise,
    WorkoutBlock,
    WorkoutPlan,
    WorkoutTemplate,
)
from coachplan.domain.week_keys import WeekKey, week_start


class ScheduleMappingError(ValueError):
    """Raised when a persistence row cannot be converted to an entity."""


def _to_id(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _to_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _required(row: Mapping[str, Any], key: str) -> Any:
    value = row.get(key)
    if value is None:
        raise ScheduleMappingError(f"{key} is required")
    return value


@dataclass
class ScheduleMapper:
    """Translate between database rows and plan/schedule/template entities."""

    def plan_from_row(self, row: Mapping[str, Any]) -> WorkoutPlan:
        if row is None:
            raise ScheduleMappingError("plan row is required")
        start_date = _to_date(_required(row, "start_date"))
        if start_date is None:
            raise ScheduleMappingError("start_date must be a valid date")
        return WorkoutPlan(
            id=_to_id(row.get("id")),
            student_id=str(_required(row, "student_id")),
            coach_id=str(_required(row, "coach_id")),
            name=row.get("name") or "",
            start_date=start_date,
            duration_weeks=int(_required(row, "duration_weeks")),
            notes=row.get("notes"),
            status=row.get("status") or "active",
            reminder_7d_sent=bool(row.get("reminder_7d_sent")),
            reminder_3d_sent=bool(row.get("reminder_3d_sent")),
            reminder_expired_sent=bool(row.get("reminder_expired_sent")),
            created_at=row.get("created_at"),
        )

    def day_from_row(self, row: Mapping[str, Any]) -> DaySchedule:
        week_date = _to_date(_required(row, "week_start"))
        if week_date is None:
            raise ScheduleMappingError("week_start must be a valid date")
        return DaySchedule(
            id=_to_id(row.get("id")),
            student_id=str(_required(row, "student_id")),
            coach_id=str(_required(row, "coach_id")),
            week_key=week_start(week_date),
            weekday=int(_required(row, "weekday")),
            order_in_day=int(row.get("order_in_day") or 1),
            name=row.get("name"),
            description=row.get("description"),
            completed=bool(row.get("completed")),
            source_template_id=_to_id(row.get("source_template_id")),
        )

    def exercise_from_row(self, row: Mapping[str, Any]) -> Exercise:
        try:
            return Exercise(
                id=_to_id(row.get("id")),
                name=str(_required(row, "name")),
                order=int(row.get("order_index") or 0),
                day_schedule_id=_to_id(row.get("day_schedule_id")),
                video_link=row.get("video_link"),
                sets=row.get("sets"),
                reps=row.get("reps"),
                rest_seconds=row.get("rest_seconds"),
                load=row.get("load"),
                executed_load=row.get("executed_load"),
                notes=row.get("notes"),
                completed=bool(row.get("completed")),
                group_id=_to_id(row.get("group_id")),
                group_type=row.get("group_type"),
                order_in_group=row.get("order_in_group"),
                group_rest_seconds=row.get("group_rest_seconds"),
            )
        except ValidationError as exc:
            raise ScheduleMappingError(str(exc)) from exc

    def block_from_row(self, row: Mapping[str, Any]) -> WorkoutBlock:
        block_type = _required(row, "type")
        try:
            return WorkoutBlock(
                id=_to_id(row.get("id")),
                name=str(row.get("name") or ""),
                type=block_type,
                position=row.get("position") or "middle",
                order=int(row.get("order_index") or 0),
                day_schedule_id=_to_id(row.get("day_schedule_id")),
                description=row.get("description"),
                estimated_minutes=row.get("estimated_minutes"),
                completed=bool(row.get("completed")),
                config=config_from_dict(block_type, row.get("config")),
            )
        except ValidationError as exc:
            raise ScheduleMappingError(str(exc)) from exc

    def template_from_rows(
        self,
        row: Mapping[str, Any],
        exercise_rows: list,
        block_rows: list,
    ) -> WorkoutTemplate:
        return WorkoutTemplate(
            id=_to_id(row.get("id")),
            coach_id=str(_required(row, "coach_id")),
            name=str(row.get("name") or ""),
            description=row.get("description"),
            category=row.get("category"),
            exercises=sorted(
                (self.exercise_from_row(item) for item in exercise_rows),
                key=lambda exercise: (exercise.order, exercise.order_in_group or 0),
            ),
            blocks=[self.block_from_row(item) for item in block_rows],
            created_at=row.get("created_at"),
        )

    # ------------------------------------------------------------------
    # Entity -> statement parameters
    # ------------------------------------------------------------------
    def plan_params(self, plan: WorkoutPlan) -> Dict[str, Any]:
        return {
            "student_id": plan.student_id,
            "coach_id": plan.coach_id,
            "name": plan.name,
            "start_date": plan.start_date,
            "duration_weeks": plan.duration_weeks,
            "notes": plan.notes,
            "status": plan.status.value,
        }

    def day_params(self, day: DaySchedule) -> Dict[str, Any]:
        week: WeekKey = day.week_key
        return {
            "student_id": day.student_id,
            "coach_id": day.coach_id,
            "week_start": week.monday,
            "weekday": day.weekday,
            "order_in_day": day.order_in_day,
            "name": day.name,
            "description": day.description,
            "completed": day.completed,
            "source_template_id": day.source_template_id,
        }

    def exercise_params(self, owner_id: str, exercise: Exercise) -> Dict[str, Any]:
        return {
            "owner_id": owner_id,
            "name": exercise.name,
            "video_link": exercise.video_link,
            "order_index": exercise.order,
            "sets": exercise.sets,
            "reps": exercise.reps,
            "rest_seconds": exercise.rest_seconds,
            "load": exercise.load,
            "executed_load": exercise.executed_load,
            "notes": exercise.notes,
            "completed": exercise.completed,
            "group_id": exercise.group_id,
            "group_type": exercise.group_type.value if exercise.group_type else None,
            "order_in_group": exercise.order_in_group,
            "group_rest_seconds": exercise.group_rest_seconds,
        }

    def block_params(self, owner_id: str, block: WorkoutBlock) -> Dict[str, Any]:
        return {
            "owner_id": owner_id,
            "type": block.type.value,
            "name": block.name,
            "description": block.description,
            "position": block.position.value,
            "order_index": block.order,
            "estimated_minutes": block.estimated_minutes,
            "completed": block.completed,
            "config": config_to_dict(block.config),
        }


__all__ = ["ScheduleMapper", "ScheduleMappingError"]
