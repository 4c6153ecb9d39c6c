"""Availability resolver: which dates and hourly slots a professional can offer.

Pure functions over snapshot rows (see ``staffbook.scheduling.types``). Callers
load the rows; nothing here performs I/O.
"""

from collections.abc import Callable, Iterable
from datetime import date, datetime, time, timedelta

from staffbook.scheduling.holidays import is_holiday
from staffbook.scheduling.refusals import RefusalReason
from staffbook.scheduling.types import BlockedDate, OverrideWindow, TimeRange, WeeklyRule

DEFAULT_WINDOW_DAYS = 30
DEFAULT_WORKING_HOURS = TimeRange(time(9, 0), time(17, 0))
WEEKEND = frozenset({5, 6})  # Saturday, Sunday

# Status that holds a slot for the resolver's booked-times input.
OCCUPYING_STATUS = "scheduled"

HolidayFn = Callable[[date], bool]


def check_date(
    professional_id: int,
    day: date,
    weekly: Iterable[WeeklyRule],
    overrides: Iterable[OverrideWindow],
    blocked: Iterable[BlockedDate],
    today: date,
    holidays_fn: HolidayFn = is_holiday,
    window_days: int = DEFAULT_WINDOW_DAYS,
) -> RefusalReason | None:
    """Return why `day` cannot be offered, or None when it is admissible.

    Rules are evaluated in precedence order and the first match wins:
    booking window, blocked days, holidays, date overrides, weekly pattern,
    and finally the Monday-Friday default for professionals without a
    weekly pattern.
    """
    if day < today or day > today + timedelta(days=window_days):
        return RefusalReason.OUT_OF_WINDOW

    if any(
        b.day == day and b.professional_id in (professional_id, None) for b in blocked
    ):
        return RefusalReason.DATE_BLOCKED

    if holidays_fn(day):
        return RefusalReason.HOLIDAY

    if any(o.professional_id == professional_id and o.day == day for o in overrides):
        return None

    weekdays = {w.day_of_week for w in weekly if w.professional_id == professional_id}
    if weekdays:
        return None if day.weekday() in weekdays else RefusalReason.NO_WEEKLY_MATCH
    return RefusalReason.NO_WEEKLY_MATCH if day.weekday() in WEEKEND else None


def resolve_available_dates(
    professional_id: int,
    weekly: Iterable[WeeklyRule],
    overrides: Iterable[OverrideWindow],
    blocked: Iterable[BlockedDate],
    holidays_fn: HolidayFn,
    today: date,
    window_days: int = DEFAULT_WINDOW_DAYS,
) -> set[date]:
    """All admissible dates from `today` through `today + window_days`."""
    weekly = list(weekly)
    overrides = list(overrides)
    blocked = list(blocked)
    available: set[date] = set()
    for offset in range(window_days + 1):
        day = today + timedelta(days=offset)
        reason = check_date(
            professional_id,
            day,
            weekly,
            overrides,
            blocked,
            today,
            holidays_fn=holidays_fn,
            window_days=window_days,
        )
        if reason is None:
            available.add(day)
    return available


def hourly_slots(time_range: TimeRange) -> list[time]:
    """Top-of-hour starts of every full hour that fits inside `time_range`.

    09:00-17:00 gives 09:00..16:00; the slot starting at the end time is
    excluded, and a 09:30 start yields 10:00 as the first slot.
    """
    first_hour = time_range.start.hour
    if time_range.start > time(first_hour):
        first_hour += 1
    end_minutes = time_range.end.hour * 60 + time_range.end.minute
    return [time(hour) for hour in range(first_hour, 24) if (hour + 1) * 60 <= end_minutes]


def source_ranges(
    professional_id: int,
    day: date,
    weekly: Iterable[WeeklyRule],
    overrides: Iterable[OverrideWindow],
    default_range: TimeRange | None = DEFAULT_WORKING_HOURS,
) -> list[TimeRange]:
    """Time ranges that feed slot generation for `day`.

    Overrides for the date win over the weekly pattern. A professional with
    no weekly rows at all falls back to `default_range`.
    """
    day_overrides = [
        o.time_range for o in overrides if o.professional_id == professional_id and o.day == day
    ]
    if day_overrides:
        return day_overrides

    own_weekly = [w for w in weekly if w.professional_id == professional_id]
    if own_weekly:
        return [w.time_range for w in own_weekly if w.day_of_week == day.weekday()]
    return [default_range] if default_range is not None else []


def resolve_available_slots(
    professional_id: int,
    day: date,
    weekly: Iterable[WeeklyRule],
    overrides: Iterable[OverrideWindow],
    booked_times: Iterable[time],
    now: datetime,
    default_range: TimeRange | None = DEFAULT_WORKING_HOURS,
) -> list[time]:
    """Free hourly slots for `day`, sorted ascending.

    `booked_times` are the start times already held on that date by
    appointments in the ``scheduled`` state. When `day` is today, slots at or
    before the current time are dropped.
    """
    slots: set[time] = set()
    for time_range in source_ranges(professional_id, day, weekly, overrides, default_range):
        slots.update(hourly_slots(time_range))

    taken = {t.replace(second=0, microsecond=0) for t in booked_times}
    free = slots - taken
    if day == now.date():
        current = now.time()
        free = {slot for slot in free if slot > current}
    return sorted(free)
