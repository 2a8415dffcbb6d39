# coachplan/application/schedule_store.py
"""
Read model and slot management for weekly schedules.

Assembles a week's days with their exercises (groups derived on read) and
blocks, and owns the two writes every copy starts with: find-or-create of a
day slot and clearing a day's content.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, List

from coachplan.application.exceptions import ApplicationError, ConflictError, NotFoundError
from coachplan.domain.entities import DaySchedule, Exercise, WorkoutBlock
from coachplan.domain.repositories import ScheduleRepository
from coachplan.domain.validation import validate_order_in_day, validate_weekday
from coachplan.domain.week_keys import DateLike, week_start
from coachplan.infrastructure import log_utils


class ScheduleStore:
    """Service for reading and preparing day schedules."""

    def __init__(self, repository: ScheduleRepository):
        self.repository = repository

    def load_week(self, student_id: str, coach_id: str, week_key: DateLike) -> List[DaySchedule]:
        """Return the week's days ordered by (weekday, order_in_day), children attached."""
        key = week_start(week_key)
        days = self.repository.list_days(student_id, coach_id, key)
        days.sort(key=lambda day: (day.weekday, day.order_in_day))
        self._attach_children(days)
        return days

    def get_day(self, day_id: str) -> DaySchedule:
        day = self.repository.get_day(day_id)
        if day is None:
            raise NotFoundError("DaySchedule", day_id)
        self._attach_children([day])
        return day

    def find_or_create_day(
        self,
        student_id: str,
        coach_id: str,
        week_key: DateLike,
        weekday: int,
        order_in_day: int = 1,
    ) -> DaySchedule:
        """Return the day occupying the slot, inserting an empty one when missing."""
        weekday = validate_weekday(weekday)
        order_in_day = validate_order_in_day(order_in_day)
        key = week_start(week_key)

        existing = self.repository.find_day(student_id, coach_id, key, weekday, order_in_day)
        if existing is not None:
            return existing

        candidate = DaySchedule(
            id=None,
            student_id=student_id,
            coach_id=coach_id,
            week_key=key,
            weekday=weekday,
            order_in_day=order_in_day,
        )
        try:
            created = self.repository.insert_day(candidate)
        except ConflictError:
            # Another writer took the slot between our read and insert.
            existing = self.repository.find_day(student_id, coach_id, key, weekday, order_in_day)
            if existing is None:
                raise
            log_utils.info(
                f"Day slot {key} weekday {weekday}/{order_in_day} created concurrently; using {existing.id}."
            )
            return existing

        log_utils.debug(f"Created day {created.id} for {student_id} {key} weekday {weekday}/{order_in_day}.")
        return created

    def clear_day_content(self, day_id: str) -> None:
        """Delete every exercise and block of a day, keeping the day row.

        Runs in one unit of work. Stores without transactions get the blocks
        back (under new ids) when the exercise delete fails, so the day is
        never left half-cleared; the failure is re-raised either way.
        """
        with self.repository.transaction():
            snapshot = [] if self.repository.supports_transactions else self.repository.list_blocks([day_id])
            removed_blocks = self.repository.delete_blocks(day_id)
            try:
                removed_exercises = self.repository.delete_exercises(day_id)
            except ApplicationError:
                if snapshot:
                    self._restore_blocks(day_id, snapshot)
                raise
        log_utils.debug(
            f"Cleared day {day_id}: {removed_exercises} exercise(s), {removed_blocks} block(s)."
        )

    def _restore_blocks(self, day_id: str, blocks: List[WorkoutBlock]) -> None:
        try:
            self.repository.insert_blocks(day_id, [replace(block, id=None) for block in blocks])
        except ApplicationError as exc:
            log_utils.error(f"Could not restore {len(blocks)} block(s) of day {day_id}: {exc}")
            return
        log_utils.warn(f"Restored {len(blocks)} block(s) of day {day_id} after a failed clear.")

    def update_day(self, day: DaySchedule) -> None:
        self.repository.update_day(day)

    def _attach_children(self, days: List[DaySchedule]) -> None:
        if not days:
            return
        day_ids = [day.id for day in days if day.id is not None]
        exercises_by_day: Dict[str, List[Exercise]] = {day_id: [] for day_id in day_ids}
        blocks_by_day: Dict[str, List[WorkoutBlock]] = {day_id: [] for day_id in day_ids}

        for exercise in self.repository.list_exercises(day_ids):
            exercises_by_day.setdefault(exercise.day_schedule_id, []).append(exercise)
        for block in self.repository.list_blocks(day_ids):
            blocks_by_day.setdefault(block.day_schedule_id, []).append(block)

        for day in days:
            day.exercises = exercises_by_day.get(day.id, [])
            day.blocks = blocks_by_day.get(day.id, [])
            day.sort_children()


__all__ = ["ScheduleStore"]
