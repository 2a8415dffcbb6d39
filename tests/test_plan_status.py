from datetime import date, timedelta

import pytest

from coachplan.domain import configuration
from coachplan.domain.entities import PlanStatus, WorkoutPlan
from coachplan.domain.plan_status import PresentationStatus, derive_progress

TODAY = date(2024, 6, 15)


def _plan(start, weeks=4, status=PlanStatus.ACTIVE):
    return WorkoutPlan(
        id="plan-1",
        student_id="stu",
        coach_id="coach",
        name="Plan",
        start_date=start,
        duration_weeks=weeks,
        status=status,
    )


def test_no_plan():
    assert derive_progress(None, TODAY).status is PresentationStatus.NO_PLAN


def test_inactive_plan_reads_as_no_plan():
    plan = _plan(TODAY, status=PlanStatus.ENDED)
    assert derive_progress(plan, TODAY).status is PresentationStatus.NO_PLAN


def test_twenty_six_of_twenty_eight_days_is_critical():
    progress = derive_progress(_plan(TODAY - timedelta(days=26)), TODAY)
    assert progress.total_days == 28
    assert progress.elapsed_days == 26
    assert progress.remaining_days == 2
    assert progress.percent_complete == 93
    assert progress.status is PresentationStatus.CRITICAL


@pytest.mark.parametrize(
    "days_ago, expected",
    [
        (0, PresentationStatus.ACTIVE),
        (20, PresentationStatus.ACTIVE),
        (21, PresentationStatus.EXPIRING_SOON),
        (24, PresentationStatus.EXPIRING_SOON),
        (25, PresentationStatus.CRITICAL),
        (27, PresentationStatus.CRITICAL),
        (28, PresentationStatus.EXPIRED),
        (90, PresentationStatus.EXPIRED),
    ],
)
def test_status_thresholds(days_ago, expected):
    assert derive_progress(_plan(TODAY - timedelta(days=days_ago)), TODAY).status is expected


@pytest.mark.parametrize("days_in, percent", [(7, 13), (21, 38), (35, 63)])
def test_half_percent_rounds_up(days_in, percent):
    plan = _plan(TODAY - timedelta(days=days_in), weeks=8)
    assert derive_progress(plan, TODAY).percent_complete == percent


def test_future_start_is_clamped_to_zero():
    progress = derive_progress(_plan(TODAY + timedelta(days=5)), TODAY)
    assert progress.elapsed_days == 0
    assert progress.percent_complete == 0
    assert progress.remaining_days == 28


def test_percent_is_clamped_and_never_decreases():
    plan = _plan(date(2024, 1, 1), weeks=3)
    previous = -1
    for offset in range(-10, 40):
        percent = derive_progress(plan, date(2024, 1, 1) + timedelta(days=offset)).percent_complete
        assert 0 <= percent <= 100
        assert percent >= previous
        previous = percent
    assert previous == 100


def test_thresholds_come_from_domain_settings():
    configuration.configure(expiring_soon_days=14, critical_days=5)
    plan = _plan(TODAY - timedelta(days=18))
    assert derive_progress(plan, TODAY).status is PresentationStatus.EXPIRING_SOON
    plan = _plan(TODAY - timedelta(days=23))
    assert derive_progress(plan, TODAY).status is PresentationStatus.CRITICAL
