"""Database queries that build the resolver's row snapshot."""

from dataclasses import dataclass, field
from datetime import date, time, timedelta

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from staffbook.models.appointment import Appointment
from staffbook.models.availability import BlockedDay, DateOverride, WeeklyAvailability
from staffbook.scheduling.types import BlockedDate, BookedSlot, OverrideWindow, WeeklyRule


@dataclass
class AvailabilitySnapshot:
    """Everything the resolver needs for one professional over a date range."""

    professional_id: int
    weekly: list[WeeklyRule] = field(default_factory=list)
    overrides: list[OverrideWindow] = field(default_factory=list)
    blocked: list[BlockedDate] = field(default_factory=list)
    appointments: list[BookedSlot] = field(default_factory=list)

    def booked_times(self, day: date) -> list[time]:
        """Start times held on `day` by scheduled appointments."""
        return [a.start_time for a in self.appointments if a.day == day and a.status == "scheduled"]


def to_booked_slot(row: Appointment) -> BookedSlot:
    return BookedSlot(
        id=row.id,
        user_id=row.user_id,
        professional_id=row.professional_id,
        specialty_id=row.specialty_id,
        day=row.appointment_date,
        start_time=row.appointment_time,
        status=row.status,
    )


async def load_snapshot(
    session: AsyncSession, professional_id: int, start: date, end: date
) -> AvailabilitySnapshot:
    """Load weekly rules, overrides, blocks and appointments for [start, end]."""
    weekly_rows = await session.execute(
        select(WeeklyAvailability).where(WeeklyAvailability.professional_id == professional_id)
    )
    override_rows = await session.execute(
        select(DateOverride).where(
            DateOverride.professional_id == professional_id,
            DateOverride.override_date >= start,
            DateOverride.override_date <= end,
        )
    )
    blocked_rows = await session.execute(
        select(BlockedDay).where(
            or_(
                BlockedDay.professional_id == professional_id,
                BlockedDay.professional_id.is_(None),
            ),
            BlockedDay.blocked_date >= start,
            BlockedDay.blocked_date <= end,
        )
    )
    appointment_rows = await session.execute(
        select(Appointment).where(
            Appointment.professional_id == professional_id,
            Appointment.appointment_date >= start,
            Appointment.appointment_date <= end,
        )
    )

    return AvailabilitySnapshot(
        professional_id=professional_id,
        weekly=[
            WeeklyRule(w.professional_id, w.day_of_week, w.start_time, w.end_time)
            for w in weekly_rows.scalars().all()
        ],
        overrides=[
            OverrideWindow(o.professional_id, o.override_date, o.start_time, o.end_time)
            for o in override_rows.scalars().all()
        ],
        blocked=[
            BlockedDate(b.professional_id, b.blocked_date, b.reason)
            for b in blocked_rows.scalars().all()
        ],
        appointments=[to_booked_slot(a) for a in appointment_rows.scalars().all()],
    )


async def load_user_month_appointments(
    session: AsyncSession, user_id: int, specialty_id: int, month: date
) -> list[BookedSlot]:
    """A user's appointments for one specialty inside the calendar month of `month`."""
    first = month.replace(day=1)
    next_first = (first + timedelta(days=32)).replace(day=1)
    result = await session.execute(
        select(Appointment).where(
            Appointment.user_id == user_id,
            Appointment.specialty_id == specialty_id,
            Appointment.appointment_date >= first,
            Appointment.appointment_date < next_first,
        )
    )
    return [to_booked_slot(a) for a in result.scalars().all()]
