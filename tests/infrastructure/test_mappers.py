"""Tests for the mapper bridging database rows and schedule entities."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from coachplan.domain.blocks import BlockPosition, BlockType, CardioConfig, StretchConfig
from coachplan.domain.entities import PlanStatus
from coachplan.domain.grouping_rules import GroupType
from coachplan.domain.week_keys import WeekKey
from coachplan.infrastructure.mappers import ScheduleMapper, ScheduleMappingError


@pytest.fixture()
def mapper() -> ScheduleMapper:
    return ScheduleMapper()


def test_plan_row_is_mapped(mapper: ScheduleMapper) -> None:
    plan = mapper.plan_from_row(
        {
            "id": 7,
            "student_id": "stu",
            "coach_id": "coach",
            "name": "Base",
            "start_date": datetime(2024, 3, 4, 9, 0),
            "duration_weeks": 6,
            "status": "renewed",
            "reminder_3d_sent": True,
        }
    )
    assert plan.id == "7"
    assert plan.start_date == date(2024, 3, 4)
    assert plan.status is PlanStatus.RENEWED
    assert plan.reminder_3d_sent and not plan.reminder_7d_sent
    assert mapper.plan_params(plan)["status"] == "renewed"


def test_plan_row_without_start_date_is_rejected(mapper: ScheduleMapper) -> None:
    with pytest.raises(ScheduleMappingError):
        mapper.plan_from_row({"student_id": "s", "coach_id": "c", "duration_weeks": 4})


def test_day_row_normalises_the_week(mapper: ScheduleMapper) -> None:
    day = mapper.day_from_row(
        {"id": "d1", "student_id": "s", "coach_id": "c", "week_start": "2024-01-07", "weekday": 2}
    )
    assert day.week_key == WeekKey(date(2024, 1, 1))
    assert day.order_in_day == 1
    assert mapper.day_params(day)["week_start"] == date(2024, 1, 1)


def test_grouped_exercise_row(mapper: ScheduleMapper) -> None:
    exercise = mapper.exercise_from_row(
        {
            "id": "e1",
            "name": "Bench",
            "order_index": 2,
            "day_schedule_id": "d1",
            "group_id": "g1",
            "group_type": "bi-set",
            "order_in_group": 1,
            "group_rest_seconds": 90,
        }
    )
    assert exercise.group_type is GroupType.BI_SET
    params = mapper.exercise_params("d1", exercise)
    assert params["owner_id"] == "d1"
    assert params["order_index"] == 2
    assert params["group_type"] == "bi-set"


def test_unknown_group_type_is_a_mapping_error(mapper: ScheduleMapper) -> None:
    with pytest.raises(ScheduleMappingError):
        mapper.exercise_from_row({"name": "Bench", "group_id": "g", "group_type": "giant-set"})


def test_block_row_builds_the_config_variant(mapper: ScheduleMapper) -> None:
    block = mapper.block_from_row(
        {
            "id": "b1",
            "type": "cardio",
            "name": "Bike",
            "position": "end",
            "order_index": 1,
            "config": {"equipment": "bike", "modality": "interval", "rounds": 6},
        }
    )
    assert block.type is BlockType.CARDIO
    assert block.position is BlockPosition.END
    assert isinstance(block.config, CardioConfig)
    assert block.config.rounds == 6
    assert mapper.block_params("d1", block)["config"]["equipment"] == "bike"


def test_block_row_without_config_gets_defaults(mapper: ScheduleMapper) -> None:
    block = mapper.block_from_row({"type": "stretch", "config": None})
    assert block.position is BlockPosition.MIDDLE
    assert block.config == StretchConfig()


def test_template_rows_are_assembled_in_order(mapper: ScheduleMapper) -> None:
    template = mapper.template_from_rows(
        {"id": "t1", "coach_id": "coach", "name": "Upper"},
        [
            {"id": "x2", "name": "Row", "order_index": 1, "group_id": "g", "group_type": "bi-set", "order_in_group": 2},
            {"id": "x3", "name": "Plank", "order_index": 2},
            {"id": "x1", "name": "Bench", "order_index": 1, "group_id": "g", "group_type": "bi-set", "order_in_group": 1},
        ],
        [{"id": "b1", "type": "warmup", "position": "start", "order_index": 1, "config": {}}],
    )
    assert [e.name for e in template.exercises] == ["Bench", "Row", "Plank"]
    assert all(e.day_schedule_id is None for e in template.exercises)
    assert template.blocks[0].type is BlockType.WARMUP
