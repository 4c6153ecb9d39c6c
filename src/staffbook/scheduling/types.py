"""Plain snapshot rows consumed by the resolver.

Storage rows are converted into these before any rule is evaluated, so the
resolver never touches a session or an ORM object.
"""

from dataclasses import dataclass
from datetime import date, time


@dataclass(frozen=True)
class TimeRange:
    start: time
    end: time

    def __str__(self) -> str:
        return f"{self.start:%H:%M}-{self.end:%H:%M}"


@dataclass(frozen=True)
class WeeklyRule:
    professional_id: int
    day_of_week: int  # 0=Monday, 6=Sunday
    start_time: time
    end_time: time

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(self.start_time, self.end_time)


@dataclass(frozen=True)
class OverrideWindow:
    professional_id: int
    day: date
    start_time: time
    end_time: time

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(self.start_time, self.end_time)


@dataclass(frozen=True)
class BlockedDate:
    professional_id: int | None  # None applies to every professional
    day: date
    reason: str | None = None


@dataclass(frozen=True)
class BookedSlot:
    """An existing appointment as seen by the rules."""

    id: int
    user_id: int
    professional_id: int
    specialty_id: int
    day: date
    start_time: time
    status: str
