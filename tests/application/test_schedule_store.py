from datetime import date

import pytest

from coachplan.application.exceptions import ConflictError, NotFoundError, RemoteSyncError, ValidationError
from coachplan.domain.blocks import BlockPosition
from coachplan.domain.entities import DaySchedule
from coachplan.domain.week_keys import WeekKey
from tests.memory_store import make_block, make_exercise

WEEK = WeekKey(date(2024, 1, 1))


def test_load_week_orders_days_and_children(memory_store, schedule_store):
    memory_store.seed_day("stu", "coach", WEEK, 5, [make_exercise("Deadlift", 1)])
    second = memory_store.seed_day(
        "stu",
        "coach",
        WEEK,
        1,
        [make_exercise("Curl", 2), make_exercise("Squat", 1)],
        [make_block("Stretch", "stretch", position="end"), make_block("Warm-up", "warmup")],
    )
    memory_store.seed_day("stu", "coach", WEEK, 1, order_in_day=2, name="PM")
    memory_store.seed_day("other", "coach", WEEK, 2)

    days = schedule_store.load_week("stu", "coach", date(2024, 1, 4))

    assert [(d.weekday, d.order_in_day) for d in days] == [(1, 1), (1, 2), (5, 1)]
    monday = days[0]
    assert monday.id == second.id
    assert [e.name for e in monday.exercises] == ["Squat", "Curl"]
    assert [b.name for b in monday.blocks_by_position[BlockPosition.START]] == ["Warm-up"]
    assert [b.name for b in monday.blocks_by_position[BlockPosition.END]] == ["Stretch"]
    assert days[1].exercises == []


def test_get_day_missing_raises_not_found(schedule_store):
    with pytest.raises(NotFoundError):
        schedule_store.get_day("nope")


def test_find_or_create_returns_existing_or_inserts(memory_store, schedule_store):
    existing = memory_store.seed_day("stu", "coach", WEEK, 3)

    found = schedule_store.find_or_create_day("stu", "coach", WEEK, 3)
    created = schedule_store.find_or_create_day("stu", "coach", date(2024, 1, 9), 3, 2)

    assert found.id == existing.id
    assert created.id != existing.id
    assert created.week_key == WeekKey(date(2024, 1, 8))
    assert created.order_in_day == 2
    assert len(memory_store.days) == 2


@pytest.mark.parametrize("weekday, order", [(0, 1), (8, 1), (3, 0)])
def test_find_or_create_validates_slot(memory_store, schedule_store, weekday, order):
    with pytest.raises(ValidationError):
        schedule_store.find_or_create_day("stu", "coach", WEEK, weekday, order)
    assert memory_store.days == {}


def test_concurrent_creation_is_treated_as_found(memory_store, schedule_store):
    def _competitor(day: DaySchedule) -> None:
        memory_store.seed_day(day.student_id, day.coach_id, day.week_key, day.weekday)

    memory_store.before_insert_day = _competitor

    day = schedule_store.find_or_create_day("stu", "coach", WEEK, 4)

    assert len(memory_store.days) == 1
    assert day.id == next(iter(memory_store.days))


def test_conflict_without_a_row_is_reraised(memory_store, schedule_store):
    memory_store.fail("insert_day", ConflictError("slot taken"))
    with pytest.raises(ConflictError):
        schedule_store.find_or_create_day("stu", "coach", WEEK, 4)


def test_clear_day_content_removes_both_collections(memory_store, schedule_store):
    day = memory_store.seed_day(
        "stu", "coach", WEEK, 2, [make_exercise("Squat", 1)], [make_block("Bike", "cardio")]
    )

    schedule_store.clear_day_content(day.id)

    assert memory_store.exercises_of(day.id) == []
    assert memory_store.blocks_of(day.id) == []
    assert day.id in memory_store.days
    assert memory_store.calls == ["list_blocks", "delete_blocks", "delete_exercises"]


def test_clear_day_content_failure_is_surfaced(memory_store, schedule_store):
    day = memory_store.seed_day(
        "stu", "coach", WEEK, 2, [make_exercise("Squat", 1)], [make_block("Bike", "cardio")]
    )
    memory_store.fail("delete_exercises")

    with pytest.raises(RemoteSyncError):
        schedule_store.clear_day_content(day.id)

    assert [e.name for e in memory_store.exercises_of(day.id)] == ["Squat"]
    assert [b.name for b in memory_store.blocks_of(day.id)] == ["Bike"]


def test_failed_clear_reports_blocks_it_could_not_restore(memory_store, schedule_store):
    day = memory_store.seed_day(
        "stu", "coach", WEEK, 2, [make_exercise("Squat", 1)], [make_block("Bike", "cardio")]
    )
    memory_store.fail("delete_exercises")
    memory_store.fail("insert_blocks")

    with pytest.raises(RemoteSyncError, match="delete_exercises"):
        schedule_store.clear_day_content(day.id)

    assert memory_store.blocks_of(day.id) == []
