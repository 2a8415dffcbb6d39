"""Monday-aligned week identifiers.

A :class:`WeekKey` names a 7-day span starting on a Monday. It is derived from
any date, compares and hashes like the Monday it wraps, and renders as an ISO
date string for persistence.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Union

from coachplan.application.exceptions import ValidationError

DAYS_PER_WEEK = 7


@dataclass(frozen=True, order=True)
class WeekKey:
    """Opaque identifier for the week starting on ``monday``."""

    monday: date

    def __post_init__(self) -> None:
        if self.monday.weekday() != 0:
            raise ValidationError(
                f"WeekKey must start on a Monday, got {self.monday.isoformat()}",
                field="week_key",
                value=self.monday,
            )

    def __str__(self) -> str:
        return self.monday.isoformat()

    @classmethod
    def parse(cls, text: str) -> "WeekKey":
        """Parse ``YYYY-MM-DD`` and normalise it to the week containing that day."""
        try:
            parsed = date.fromisoformat(str(text).strip()[:10])
        except ValueError as exc:
            raise ValidationError(f"Invalid week key {text!r}", field="week_key", value=text) from exc
        return week_start(parsed)

    def day(self, weekday: int) -> date:
        """Calendar date of ``weekday`` (1 = Monday ... 7 = Sunday) in this week."""
        return self.monday + timedelta(days=weekday - 1)

    @property
    def sunday(self) -> date:
        return self.monday + timedelta(days=DAYS_PER_WEEK - 1)


DateLike = Union[date, datetime, WeekKey]


def week_start(value: DateLike) -> WeekKey:
    """Return the key of the Monday-aligned week containing ``value``.

    Sunday belongs to the week that began the previous Monday.
    """
    if isinstance(value, WeekKey):
        return value
    if isinstance(value, datetime):
        value = value.date()
    return WeekKey(value - timedelta(days=value.weekday()))


def shift_weeks(key: WeekKey, weeks: int) -> WeekKey:
    return WeekKey(key.monday + timedelta(days=DAYS_PER_WEEK * weeks))


def previous_week(key: WeekKey) -> WeekKey:
    return shift_weeks(key, -1)


def next_week(key: WeekKey) -> WeekKey:
    return shift_weeks(key, 1)


def is_current_week(key: WeekKey, now: DateLike) -> bool:
    return key == week_start(now)


def weeks_between(start: WeekKey, end: WeekKey) -> int:
    """Number of whole weeks from ``start`` to ``end`` (negative if ``end`` is earlier)."""
    return (end.monday - start.monday).days // DAYS_PER_WEEK


__all__ = [
    "WeekKey",
    "week_start",
    "shift_weeks",
    "previous_week",
    "next_week",
    "is_current_week",
    "weeks_between",
]
