"""Workout block types and their per-type configuration.

Each block type carries exactly one configuration variant. The variants are
plain dataclasses; :func:`config_from_dict` and :func:`config_to_dict` move them
in and out of the JSON column the store keeps them in.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Type, Union

from coachplan.application.exceptions import ValidationError


class BlockType(str, Enum):
    CARDIO = "cardio"
    WARMUP = "warmup"
    STRETCH = "stretch"
    MOBILITY = "mobility"
    CORE = "core"


class BlockPosition(str, Enum):
    START = "start"
    MIDDLE = "middle"
    END = "end"


@dataclass
class CardioConfig:
    equipment: str = "other"  # treadmill, bike, rower, airbike, elliptical, ...
    modality: str = "continuous"  # continuous | hiit | interval
    duration_minutes: Optional[int] = None
    intensity_value: Optional[float] = None
    intensity_unit: Optional[str] = None  # rpm | bpm | speed | watts | percent
    work_seconds: Optional[int] = None
    rest_seconds: Optional[int] = None
    rounds: Optional[int] = None
    speed_kmh: Optional[float] = None
    incline_percent: Optional[float] = None
    resistance: Optional[int] = None
    target_hr_min: Optional[int] = None
    target_hr_max: Optional[int] = None


@dataclass
class WarmupConfig:
    duration_minutes: Optional[int] = None
    style: str = "general"  # general | specific
    activities: List[str] = field(default_factory=list)
    notes: Optional[str] = None


@dataclass
class StretchConfig:
    muscle_groups: List[str] = field(default_factory=list)
    duration_minutes: Optional[int] = None
    style: str = "static"  # static | dynamic | mixed
    notes: Optional[str] = None


@dataclass
class MobilityConfig:
    muscle_groups: List[str] = field(default_factory=list)
    duration_minutes: Optional[int] = None
    style: str = "dynamic"
    notes: Optional[str] = None


@dataclass
class CoreConfig:
    duration_minutes: Optional[int] = None
    activities: List[str] = field(default_factory=list)
    rounds: Optional[int] = None


BlockConfig = Union[CardioConfig, WarmupConfig, StretchConfig, MobilityConfig, CoreConfig]

CONFIG_TYPES: Dict[BlockType, Type[Any]] = {
    BlockType.CARDIO: CardioConfig,
    BlockType.WARMUP: WarmupConfig,
    BlockType.STRETCH: StretchConfig,
    BlockType.MOBILITY: MobilityConfig,
    BlockType.CORE: CoreConfig,
}

if set(CONFIG_TYPES) != set(BlockType):  # pragma: no cover - import-time guard
    raise RuntimeError("every BlockType needs a configuration variant")


def parse_block_type(value: BlockType | str) -> BlockType:
    try:
        return BlockType(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown block type {value!r}", field="type", value=value) from exc


def parse_position(value: BlockPosition | str) -> BlockPosition:
    try:
        return BlockPosition(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown block position {value!r}", field="position", value=value) from exc


def default_config(block_type: BlockType | str) -> BlockConfig:
    return CONFIG_TYPES[parse_block_type(block_type)]()


def config_from_dict(block_type: BlockType | str, payload: Optional[Mapping[str, Any]]) -> BlockConfig:
    """Build the variant for ``block_type``; unknown keys are dropped."""
    config_cls = CONFIG_TYPES[parse_block_type(block_type)]
    if not payload:
        return config_cls()
    if not isinstance(payload, Mapping):
        raise ValidationError("block config must be a mapping", field="config", value=payload)
    allowed = {f.name for f in fields(config_cls)}
    return config_cls(**{key: value for key, value in payload.items() if key in allowed})


def config_to_dict(config: BlockConfig) -> Dict[str, Any]:
    return asdict(config)


def check_config_matches(block_type: BlockType | str, config: BlockConfig) -> None:
    """Raise when ``config`` is not the variant belonging to ``block_type``."""
    kind = parse_block_type(block_type)
    expected = CONFIG_TYPES[kind]
    if type(config) is not expected:
        raise ValidationError(
            f"{kind.value} block cannot carry a {type(config).__name__}",
            field="config",
            value=type(config).__name__,
        )


def describe(config: BlockConfig) -> str:
    """One-line human summary of a block configuration."""
    formatter: Callable[[Any], str] = _DESCRIBERS[type(config)]
    return formatter(config)


def _minutes(value: Optional[int]) -> str:
    return f"{value} min" if value else "untimed"


_DESCRIBERS: Dict[Type[Any], Callable[[Any], str]] = {
    CardioConfig: lambda c: (
        f"{c.equipment} {c.modality} {c.rounds}x{c.work_seconds}s/{c.rest_seconds}s"
        if c.rounds and c.work_seconds
        else f"{c.equipment} {c.modality} {_minutes(c.duration_minutes)}"
    ),
    WarmupConfig: lambda c: f"{c.style} warm-up {_minutes(c.duration_minutes)}",
    StretchConfig: lambda c: f"{c.style} stretch {_minutes(c.duration_minutes)}",
    MobilityConfig: lambda c: f"mobility {_minutes(c.duration_minutes)}",
    CoreConfig: lambda c: f"core {_minutes(c.duration_minutes)}",
}
