"""Input checks shared by the store, the copy engine and the plan lifecycle."""

from __future__ import annotations

from typing import Any

from coachplan.application.exceptions import ValidationError

MIN_WEEKDAY = 1
MAX_WEEKDAY = 7


def _as_int(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer, got {value!r}", field=field, value=value)
    return value


def validate_weekday(weekday: Any) -> int:
    """Return ``weekday`` when it lies in 1..7 (1 = Monday), else raise."""
    day = _as_int(weekday, "weekday")
    if not MIN_WEEKDAY <= day <= MAX_WEEKDAY:
        raise ValidationError(
            f"weekday must be between {MIN_WEEKDAY} and {MAX_WEEKDAY}, got {day}",
            field="weekday",
            value=day,
        )
    return day


def validate_order_in_day(order_in_day: Any) -> int:
    order = _as_int(order_in_day, "order_in_day")
    if order < 1:
        raise ValidationError(
            f"order_in_day must be at least 1, got {order}",
            field="order_in_day",
            value=order,
        )
    return order


def validate_duration_weeks(duration_weeks: Any) -> int:
    weeks = _as_int(duration_weeks, "duration_weeks")
    if weeks < 1:
        raise ValidationError(
            f"duration_weeks must be at least 1, got {weeks}",
            field="duration_weeks",
            value=weeks,
        )
    return weeks


__all__ = ["validate_weekday", "validate_order_in_day", "validate_duration_weeks"]
