"""National holiday calendar: fixed civil dates plus Easter-relative feasts."""

from datetime import date, timedelta
from functools import lru_cache

FIXED_HOLIDAYS: list[tuple[int, int, str]] = [
    (1, 1, "New Year's Day"),
    (4, 21, "Tiradentes"),
    (5, 1, "Labour Day"),
    (9, 7, "Independence Day"),
    (10, 12, "Our Lady of Aparecida"),
    (11, 2, "All Souls' Day"),
    (11, 15, "Republic Day"),
    (12, 25, "Christmas Day"),
]

# Offsets in days from Easter Sunday
MOVABLE_HOLIDAYS: list[tuple[int, str]] = [
    (-48, "Carnival Monday"),
    (-47, "Carnival Tuesday"),
    (-2, "Good Friday"),
    (60, "Corpus Christi"),
]


def easter_date(year: int) -> date:
    """Easter Sunday for `year` (anonymous Gregorian algorithm)."""
    a = year % 19
    b, c = divmod(year, 100)
    d, e = divmod(b, 4)
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i, k = divmod(c, 4)
    l = (32 + 2 * e + 2 * i - h - k) % 7  # noqa: E741
    m = (a + 11 * h + 22 * l) // 451
    month, day = divmod(h + l - 7 * m + 114, 31)
    return date(year, month, day + 1)


@lru_cache(maxsize=32)
def national_holidays(year: int) -> dict[date, str]:
    """Map of holiday date -> name for `year`."""
    holidays = {date(year, month, day): name for month, day, name in FIXED_HOLIDAYS}
    easter = easter_date(year)
    for offset, name in MOVABLE_HOLIDAYS:
        holidays[easter + timedelta(days=offset)] = name
    return holidays


def is_holiday(day: date) -> bool:
    return day in national_holidays(day.year)
