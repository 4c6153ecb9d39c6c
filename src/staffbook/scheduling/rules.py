"""Booking rules evaluated around the resolver: limits, penalties, suspensions."""

import logging
import re
from collections.abc import Iterable
from datetime import date, datetime, time
from typing import Protocol

from staffbook.scheduling.refusals import RefusalReason
from staffbook.scheduling.types import BookedSlot, TimeRange

logger = logging.getLogger(__name__)

LIMITED_STATUSES = frozenset({"scheduled", "completed"})

LEGACY_OVERRIDE_PREFIX = "AVAILABLE:"
_LEGACY_OVERRIDE_RE = re.compile(r"^AVAILABLE:\s*(\d{2}):(\d{2})\s*-\s*(\d{2}):(\d{2})\s*$")


class AccountState(Protocol):
    blocked: bool
    suspended_until: datetime | None


class BlockState(Protocol):
    specialty_id: int
    blocked_until: datetime | None


def check_monthly_limit(
    user_id: int,
    specialty_id: int,
    appointments: Iterable[BookedSlot],
    month: date,
) -> BookedSlot | None:
    """Return the appointment that uses up this month's booking, if any.

    Only ``scheduled`` and ``completed`` appointments count; `month` may be
    any day inside the calendar month being checked.
    """
    matches = [
        a
        for a in appointments
        if a.user_id == user_id
        and a.specialty_id == specialty_id
        and a.status in LIMITED_STATUSES
        and (a.day.year, a.day.month) == (month.year, month.month)
    ]
    return min(matches, key=lambda a: (a.day, a.start_time)) if matches else None


def evaluate_cancellation_penalty(appointment_date: date, today: date) -> bool:
    """Same calendar day cancellations are penalised; time of day is ignored."""
    return appointment_date == today


def check_account(account: AccountState, now: datetime) -> RefusalReason | None:
    if account.blocked:
        return RefusalReason.ACCOUNT_BLOCKED
    if account.suspended_until is not None and account.suspended_until > now:
        return RefusalReason.ACCOUNT_SUSPENDED
    return None


def is_block_active(block: BlockState, now: datetime) -> bool:
    return block.blocked_until is None or block.blocked_until > now


def active_specialty_blocks(blocks: Iterable[BlockState], now: datetime) -> set[int]:
    """Specialty ids the user may not book right now."""
    return {b.specialty_id for b in blocks if is_block_active(b, now)}


def ranges_overlap(a: TimeRange, b: TimeRange) -> bool:
    """Half-open overlap test: touching ranges (09-11, 11-13) do not overlap."""
    return a.start < b.end and b.start < a.end


def find_overlap(new: TimeRange, existing: Iterable[TimeRange]) -> TimeRange | None:
    for current in existing:
        if ranges_overlap(new, current):
            return current
    return None


def parse_legacy_override(reason: str | None) -> TimeRange | None:
    """Parse an ``AVAILABLE:HH:MM-HH:MM`` blocked-day reason.

    Fails closed: anything malformed, out of range or empty yields None,
    which callers treat as "no override present".
    """
    if not reason:
        return None
    match = _LEGACY_OVERRIDE_RE.match(reason.strip())
    if match is None:
        logger.warning("Ignoring malformed availability override %r", reason)
        return None
    start_h, start_m, end_h, end_m = (int(g) for g in match.groups())
    try:
        time_range = TimeRange(time(start_h, start_m), time(end_h, end_m))
    except ValueError:
        logger.warning("Ignoring availability override with invalid time %r", reason)
        return None
    if time_range.start >= time_range.end:
        logger.warning("Ignoring empty availability override %r", reason)
        return None
    return time_range
