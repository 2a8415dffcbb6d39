"""Domain entities for training plans, weekly schedules and templates."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from coachplan.application.exceptions import ValidationError
from coachplan.domain.blocks import (
    BlockConfig,
    BlockPosition,
    BlockType,
    check_config_matches,
    config_from_dict,
    default_config,
    parse_block_type,
    parse_position,
)
from coachplan.domain.grouping_rules import GroupType, rule_for
from coachplan.domain.week_keys import DAYS_PER_WEEK, WeekKey


class PlanStatus(str, Enum):
    ACTIVE = "active"
    ENDED = "ended"
    RENEWED = "renewed"


# Forward-only moves; ended and renewed are terminal.
_ALLOWED_TRANSITIONS = {
    PlanStatus.ACTIVE: {PlanStatus.ENDED, PlanStatus.RENEWED},
    PlanStatus.ENDED: set(),
    PlanStatus.RENEWED: set(),
}


class ReminderThreshold(str, Enum):
    """Expiry reminders the external reminder job sends at most once per plan."""

    SEVEN_DAYS = "7d"
    THREE_DAYS = "3d"
    EXPIRED = "expired"

    @property
    def flag_name(self) -> str:
        return _REMINDER_FLAGS[self]


_REMINDER_FLAGS = {
    ReminderThreshold.SEVEN_DAYS: "reminder_7d_sent",
    ReminderThreshold.THREE_DAYS: "reminder_3d_sent",
    ReminderThreshold.EXPIRED: "reminder_expired_sent",
}


@dataclass
class WorkoutPlan:
    """A multi-week programme for one student, authored by one coach."""

    id: Optional[str]
    student_id: str
    coach_id: str
    name: str
    start_date: date
    duration_weeks: int
    notes: Optional[str] = None
    status: PlanStatus = PlanStatus.ACTIVE
    reminder_7d_sent: bool = False
    reminder_3d_sent: bool = False
    reminder_expired_sent: bool = False
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.status = PlanStatus(self.status)

    @property
    def total_days(self) -> int:
        return self.duration_weeks * DAYS_PER_WEEK

    @property
    def computed_end_date(self) -> date:
        return self.start_date + timedelta(days=self.total_days)

    @property
    def is_active(self) -> bool:
        return self.status is PlanStatus.ACTIVE

    def transition_to(self, new_status: PlanStatus | str) -> None:
        target = PlanStatus(new_status)
        if target not in _ALLOWED_TRANSITIONS[self.status]:
            raise ValidationError(
                f"Plan {self.id} cannot move from {self.status.value} to {target.value}",
                field="status",
                value=target.value,
            )
        self.status = target

    def reminder_sent(self, threshold: ReminderThreshold | str) -> bool:
        return bool(getattr(self, ReminderThreshold(threshold).flag_name))


@dataclass
class Exercise:
    """One strength exercise inside a day schedule or template."""

    id: Optional[str]
    name: str
    order: int = 1
    day_schedule_id: Optional[str] = None
    video_link: Optional[str] = None
    sets: Optional[int] = None
    reps: Optional[str] = None
    rest_seconds: Optional[int] = None
    load: Optional[str] = None
    executed_load: Optional[str] = None
    notes: Optional[str] = None
    completed: bool = False
    group_id: Optional[str] = None
    group_type: Optional[GroupType] = None
    order_in_group: Optional[int] = None
    group_rest_seconds: Optional[int] = None

    def __post_init__(self) -> None:
        if self.group_type is not None:
            self.group_type = GroupType.parse(self.group_type)

    @property
    def is_grouped(self) -> bool:
        return bool(self.group_id)


@dataclass
class ExerciseGroup:
    """Exercises of one day sharing a ``group_id``. Derived on read, never stored."""

    group_id: str
    group_type: GroupType
    members: List[Exercise] = field(default_factory=list)
    group_rest_seconds: Optional[int] = None

    @property
    def order(self) -> int:
        return min((member.order for member in self.members), default=0)

    @property
    def shared_rest(self) -> bool:
        return rule_for(self.group_type).shared_rest

    def __len__(self) -> int:
        return len(self.members)


def _exercise_sort_key(exercise: Exercise) -> tuple:
    return (exercise.order, exercise.order_in_group or 0)


def group_exercises(exercises: List[Exercise]) -> List[ExerciseGroup]:
    """Collect grouped exercises into :class:`ExerciseGroup` views ordered by position."""
    groups: Dict[str, ExerciseGroup] = {}
    for exercise in sorted(exercises, key=_exercise_sort_key):
        if not exercise.group_id:
            continue
        group = groups.get(exercise.group_id)
        if group is None:
            group = ExerciseGroup(
                group_id=exercise.group_id,
                group_type=exercise.group_type or GroupType.NORMAL,
                group_rest_seconds=exercise.group_rest_seconds,
            )
            groups[exercise.group_id] = group
        group.members.append(exercise)
        if group.group_rest_seconds is None:
            group.group_rest_seconds = exercise.group_rest_seconds

    for group in groups.values():
        group.members.sort(key=lambda member: (member.order_in_group or 0, member.order))
    return sorted(groups.values(), key=lambda group: group.order)


@dataclass
class WorkoutBlock:
    """A non-strength segment of a session: warm-up, cardio, mobility, stretch or core."""

    id: Optional[str]
    name: str
    type: BlockType
    position: BlockPosition = BlockPosition.MIDDLE
    order: int = 1
    day_schedule_id: Optional[str] = None
    description: Optional[str] = None
    estimated_minutes: Optional[int] = None
    completed: bool = False
    config: Optional[Union[BlockConfig, Mapping[str, Any]]] = None

    def __post_init__(self) -> None:
        self.type = parse_block_type(self.type)
        self.position = parse_position(self.position)
        if self.config is None:
            self.config = default_config(self.type)
        elif isinstance(self.config, Mapping):
            self.config = config_from_dict(self.type, self.config)
        else:
            check_config_matches(self.type, self.config)


def _block_sort_key(block: WorkoutBlock) -> tuple:
    return (list(BlockPosition).index(block.position), block.order)


@dataclass
class DaySchedule:
    """One workout session for a student on a weekday of a given week."""

    id: Optional[str]
    student_id: str
    coach_id: str
    week_key: WeekKey
    weekday: int
    order_in_day: int = 1
    name: Optional[str] = None
    description: Optional[str] = None
    completed: bool = False
    source_template_id: Optional[str] = None
    exercises: List[Exercise] = field(default_factory=list)
    blocks: List[WorkoutBlock] = field(default_factory=list)

    @property
    def date(self) -> date:
        return self.week_key.day(self.weekday)

    @property
    def slot(self) -> tuple:
        return (self.student_id, self.coach_id, self.week_key, self.weekday, self.order_in_day)

    @property
    def groups(self) -> List[ExerciseGroup]:
        return group_exercises(self.exercises)

    @property
    def items(self) -> List[Union[Exercise, ExerciseGroup]]:
        """Ungrouped exercises and whole groups in session order."""
        entries: List[Union[Exercise, ExerciseGroup]] = [
            exercise for exercise in self.exercises if not exercise.group_id
        ]
        entries.extend(self.groups)
        return sorted(entries, key=lambda entry: entry.order)

    @property
    def blocks_by_position(self) -> Dict[BlockPosition, List[WorkoutBlock]]:
        partitioned: Dict[BlockPosition, List[WorkoutBlock]] = {position: [] for position in BlockPosition}
        for block in sorted(self.blocks, key=_block_sort_key):
            partitioned[block.position].append(block)
        return partitioned

    def sort_children(self) -> None:
        self.exercises.sort(key=_exercise_sort_key)
        self.blocks.sort(key=_block_sort_key)


@dataclass
class WorkoutTemplate:
    """Reusable bundle of exercises and blocks owned by a coach."""

    id: Optional[str]
    coach_id: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    exercises: List[Exercise] = field(default_factory=list)
    blocks: List[WorkoutBlock] = field(default_factory=list)
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class DayTarget:
    """Where a copy lands: one (student, coach, week, weekday, session) slot."""

    student_id: str
    coach_id: str
    week_key: WeekKey
    weekday: int
    order_in_day: int = 1


class EntityKind(str, Enum):
    EXERCISE = "exercise"
    BLOCK = "block"
    DAY = "day"


class SyncState(str, Enum):
    UNSYNCED = "unsynced"
    SYNCING = "syncing"
    SYNCED = "synced"
    UNSYNCED_AFTER_FAILURE = "unsynced_after_failure"


@dataclass
class ProgressEntry:
    """Local record of a completion toggle awaiting (or confirmed by) the store."""

    entity_kind: EntityKind
    entity_id: str
    completed: bool
    state: SyncState
    timestamp: datetime
    revision: int = 1

    def __post_init__(self) -> None:
        self.entity_kind = EntityKind(self.entity_kind)
        self.state = SyncState(self.state)

    @property
    def key(self) -> str:
        return entry_key(self.entity_kind, self.entity_id)

    @property
    def reconciled(self) -> bool:
        return self.state is SyncState.SYNCED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity_kind": self.entity_kind.value,
            "entity_id": self.entity_id,
            "completed": self.completed,
            "state": self.state.value,
            "timestamp": self.timestamp.isoformat(),
            "revision": self.revision,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ProgressEntry":
        return cls(
            entity_kind=payload["entity_kind"],
            entity_id=str(payload["entity_id"]),
            completed=bool(payload["completed"]),
            state=payload.get("state", SyncState.UNSYNCED.value),
            timestamp=datetime.fromisoformat(payload["timestamp"]),
            revision=int(payload.get("revision", 1)),
        )


def entry_key(kind: EntityKind | str, entity_id: str) -> str:
    return f"{EntityKind(kind).value}:{entity_id}"


__all__ = [
    "PlanStatus",
    "ReminderThreshold",
    "WorkoutPlan",
    "Exercise",
    "ExerciseGroup",
    "group_exercises",
    "WorkoutBlock",
    "DaySchedule",
    "WorkoutTemplate",
    "DayTarget",
    "EntityKind",
    "SyncState",
    "ProgressEntry",
    "entry_key",
]
