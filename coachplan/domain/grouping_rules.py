# coachplan/domain/grouping_rules.py
"""
Exercise grouping table.

Exercises in one day schedule that share a ``group_id`` form a group performed
back-to-back. The group type decides how many members it may hold and whether
rest is shared after the round. These checks run when a coach authors content;
copying already-valid content does not re-check them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional

from coachplan.application.exceptions import ValidationError


class GroupType(str, Enum):
    NORMAL = "normal"
    BI_SET = "bi-set"
    TRI_SET = "tri-set"
    DROP_SET = "drop-set"
    SUPERSET = "superset"

    @classmethod
    def parse(cls, value: "GroupType | str") -> "GroupType":
        try:
            return cls(value)
        except ValueError as exc:
            raise ValidationError(f"Unknown group type {value!r}", field="group_type", value=value) from exc


@dataclass(frozen=True)
class GroupRule:
    label: str
    max_members: Optional[int]  # None = unbounded
    shared_rest: bool
    description: str


GROUP_RULES: Dict[GroupType, GroupRule] = {
    GroupType.NORMAL: GroupRule("Normal", 1, False, "Single exercise, no shared rest"),
    GroupType.BI_SET: GroupRule(
        "Bi-set", 2, True, "Two exercises with no rest between them, rest after the round"
    ),
    GroupType.TRI_SET: GroupRule(
        "Tri-set", 3, True, "Three exercises with no rest between them, rest after the round"
    ),
    GroupType.DROP_SET: GroupRule(
        "Drop-set", None, True, "Same movement repeated with decreasing load"
    ),
    GroupType.SUPERSET: GroupRule(
        "Superset", None, True, "Exercises chained as one circuit, timed as a whole"
    ),
}


def rule_for(group_type: GroupType | str) -> GroupRule:
    return GROUP_RULES[GroupType.parse(group_type)]


def validate_group_size(group_type: GroupType | str, member_count: int) -> None:
    """Raise :class:`ValidationError` when ``member_count`` does not fit the group type."""
    kind = GroupType.parse(group_type)
    rule = GROUP_RULES[kind]
    if member_count < 1:
        raise ValidationError(
            f"A {rule.label} group needs at least one exercise", field="group", value=member_count
        )
    if rule.max_members is not None and member_count > rule.max_members:
        raise ValidationError(
            f"A {rule.label} group allows at most {rule.max_members} exercise(s), got {member_count}",
            field="group",
            value=member_count,
        )


def validate_group_consistency(exercises: Iterable[object]) -> Dict[str, int]:
    """Check that grouped exercises agree on their type and fit its size.

    ``exercises`` are any objects exposing ``group_id`` and ``group_type``.
    Returns the member count per ``group_id``.
    """
    types_by_group: Dict[str, GroupType] = {}
    counts: Dict[str, int] = {}
    for exercise in exercises:
        group_id = getattr(exercise, "group_id", None)
        if not group_id:
            continue
        raw_type = getattr(exercise, "group_type", None)
        if raw_type is None:
            raise ValidationError(
                f"Exercise in group {group_id} has no group type", field="group_type", value=None
            )
        kind = GroupType.parse(raw_type)
        seen = types_by_group.setdefault(group_id, kind)
        if seen is not kind:
            raise ValidationError(
                f"Group {group_id} mixes types {seen.value} and {kind.value}",
                field="group_type",
                value=kind.value,
            )
        counts[group_id] = counts.get(group_id, 0) + 1

    for group_id, count in counts.items():
        validate_group_size(types_by_group[group_id], count)
    return counts
