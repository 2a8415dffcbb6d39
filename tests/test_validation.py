import pytest

from coachplan.application.exceptions import ValidationError
from coachplan.domain.validation import (
    validate_duration_weeks,
    validate_order_in_day,
    validate_weekday,
)


@pytest.mark.parametrize("weekday", range(1, 8))
def test_valid_weekdays_are_returned_unchanged(weekday):
    assert validate_weekday(weekday) == weekday


@pytest.mark.parametrize("weekday", [0, -1, 8, 99])
def test_out_of_range_weekdays_are_rejected(weekday):
    with pytest.raises(ValidationError) as excinfo:
        validate_weekday(weekday)
    assert excinfo.value.field == "weekday"
    assert excinfo.value.value == weekday


def test_weekday_eight_message_names_the_value():
    with pytest.raises(ValidationError) as excinfo:
        validate_weekday(8)
    assert "8" in str(excinfo.value)


@pytest.mark.parametrize("weekday", ["3", 3.0, None, True])
def test_non_integer_weekdays_are_rejected(weekday):
    with pytest.raises(ValidationError):
        validate_weekday(weekday)


def test_order_in_day_must_be_positive():
    assert validate_order_in_day(2) == 2
    with pytest.raises(ValidationError, match="order_in_day"):
        validate_order_in_day(0)


@pytest.mark.parametrize("weeks", [0, -4, "4", 2.5])
def test_duration_weeks_rejects_bad_values(weeks):
    with pytest.raises(ValidationError):
        validate_duration_weeks(weeks)


def test_duration_weeks_accepts_positive_ints():
    assert validate_duration_weeks(1) == 1
    assert validate_duration_weeks(12) == 12
