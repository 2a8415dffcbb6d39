from datetime import date, datetime, timezone

import pytest

from coachplan.application.exceptions import ValidationError
from coachplan.domain.blocks import BlockPosition
from coachplan.domain.entities import (
    DaySchedule,
    Exercise,
    ExerciseGroup,
    PlanStatus,
    ProgressEntry,
    ReminderThreshold,
    SyncState,
    WorkoutPlan,
)
from coachplan.domain.week_keys import WeekKey
from tests.memory_store import make_block, make_exercise


def _plan(**overrides):
    values = dict(
        id="plan-1",
        student_id="stu",
        coach_id="coach",
        name="Block A",
        start_date=date(2024, 1, 1),
        duration_weeks=4,
    )
    values.update(overrides)
    return WorkoutPlan(**values)


def test_plan_end_date_is_derived():
    plan = _plan()
    assert plan.total_days == 28
    assert plan.computed_end_date == date(2024, 1, 29)


@pytest.mark.parametrize("terminal", [PlanStatus.ENDED, PlanStatus.RENEWED])
def test_plan_status_only_moves_forward(terminal):
    plan = _plan()
    plan.transition_to(terminal)
    assert plan.status is terminal
    with pytest.raises(ValidationError):
        plan.transition_to(PlanStatus.ACTIVE)
    with pytest.raises(ValidationError):
        plan.transition_to(PlanStatus.ENDED)


def test_reminder_flags_default_to_unsent():
    plan = _plan(reminder_3d_sent=True)
    assert not plan.reminder_sent(ReminderThreshold.SEVEN_DAYS)
    assert plan.reminder_sent("3d")
    assert ReminderThreshold.EXPIRED.flag_name == "reminder_expired_sent"


def test_day_groups_and_items_are_derived_on_read():
    day = DaySchedule(
        id="d1",
        student_id="stu",
        coach_id="coach",
        week_key=WeekKey(date(2024, 1, 1)),
        weekday=3,
        exercises=[
            make_exercise("Row", 2, group_id="G1", group_type="bi-set", order_in_group=2),
            make_exercise("Squat", 1),
            make_exercise("Press", 2, group_id="G1", group_type="bi-set", order_in_group=1),
            make_exercise("Plank", 3),
        ],
    )
    groups = day.groups
    assert len(groups) == 1
    assert [member.name for member in groups[0].members] == ["Press", "Row"]
    assert groups[0].shared_rest

    items = day.items
    assert [type(item) for item in items] == [Exercise, ExerciseGroup, Exercise]
    assert items[0].name == "Squat"
    assert items[2].name == "Plank"
    assert day.date == date(2024, 1, 3)


def test_blocks_are_partitioned_by_position():
    day = DaySchedule(
        id="d1",
        student_id="stu",
        coach_id="coach",
        week_key=WeekKey(date(2024, 1, 1)),
        weekday=1,
        blocks=[
            make_block("Stretch", "stretch", order=1, position="end"),
            make_block("Bike", "cardio", order=2, position="start"),
            make_block("Warm-up", "warmup", order=1, position="start"),
        ],
    )
    partitioned = day.blocks_by_position
    assert [b.name for b in partitioned[BlockPosition.START]] == ["Warm-up", "Bike"]
    assert partitioned[BlockPosition.MIDDLE] == []
    assert [b.name for b in partitioned[BlockPosition.END]] == ["Stretch"]


def test_progress_entry_serialises_for_the_local_log():
    entry = ProgressEntry(
        entity_kind="exercise",
        entity_id="ex-1",
        completed=True,
        state="unsynced",
        timestamp=datetime(2024, 1, 3, 10, 0, tzinfo=timezone.utc),
        revision=2,
    )
    restored = ProgressEntry.from_dict(entry.to_dict())
    assert restored == entry
    assert restored.key == "exercise:ex-1"
    assert not restored.reconciled
    assert ProgressEntry.from_dict({**entry.to_dict(), "state": "synced"}).state is SyncState.SYNCED
