"""Infrastructure mappers bridging persistence and domain layers."""

from .schedule_mapper import ScheduleMapper, ScheduleMappingError

__all__ = [
    "ScheduleMapper",
    "ScheduleMappingError",
]
