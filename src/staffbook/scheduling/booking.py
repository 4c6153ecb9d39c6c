"""Booking service: loads snapshots, applies the rules, persists decisions."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from staffbook.config import Settings, get_settings
from staffbook.models.appointment import Appointment, SpecialtyBlock
from staffbook.models.user import User
from staffbook.scheduling.cache import ProfessionalInfo, ReferenceDataCache
from staffbook.scheduling.holidays import is_holiday
from staffbook.scheduling.refusals import BookingRefused, RefusalReason
from staffbook.scheduling.resolver import (
    check_date,
    resolve_available_dates,
    resolve_available_slots,
)
from staffbook.scheduling.rules import (
    active_specialty_blocks,
    check_account,
    check_monthly_limit,
    evaluate_cancellation_penalty,
)
from staffbook.scheduling.snapshot import (
    AvailabilitySnapshot,
    load_snapshot,
    load_user_month_appointments,
)
from staffbook.scheduling.types import BookedSlot, TimeRange

logger = logging.getLogger(__name__)

# Status changes outside cancellation, which goes through ``cancel``.
STATUS_TRANSITIONS: dict[str, set[str]] = {
    "scheduled": {"completed", "no_show"},
}

SAME_DAY_REASON = "Same-day cancellation"
CANCELLATION_NOTES = {
    "user": "Cancelled by user",
    "professional": "Cancelled by professional",
    "admin": "Cancelled by admin",
}


@dataclass
class BookableSpecialty:
    id: int
    name: str
    description: str | None
    professionals: list[ProfessionalInfo]
    suspended: bool


@dataclass
class CancellationResult:
    appointment: Appointment
    penalty_applied: bool
    blocked_until: datetime | None = None


class BookingService:
    """Evaluates availability and booking rules against stored rows."""

    def __init__(
        self,
        cache: ReferenceDataCache | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._cache = cache or ReferenceDataCache(self._settings.reference_cache_ttl_seconds)

    @property
    def window_days(self) -> int:
        return self._settings.booking_window_days

    @property
    def default_hours(self) -> TimeRange:
        return TimeRange(self._settings.default_day_start, self._settings.default_day_end)

    async def _snapshot(
        self, session: AsyncSession, professional_id: int, today: date
    ) -> AvailabilitySnapshot:
        return await load_snapshot(
            session, professional_id, today, today + timedelta(days=self.window_days)
        )

    # -- Eligibility ---------------------------------------------------------

    async def _specialty_blocks(self, session: AsyncSession, user_id: int) -> list[SpecialtyBlock]:
        result = await session.execute(
            select(SpecialtyBlock).where(SpecialtyBlock.user_id == user_id)
        )
        return list(result.scalars().all())

    async def monthly_conflict(
        self, session: AsyncSession, user_id: int, specialty_id: int, today: date
    ) -> BookedSlot | None:
        appointments = await load_user_month_appointments(session, user_id, specialty_id, today)
        return check_monthly_limit(user_id, specialty_id, appointments, today)

    async def ensure_can_book(
        self, session: AsyncSession, user: User, specialty_id: int, now: datetime
    ) -> None:
        """Account, specialty-suspension and monthly-limit checks.

        Raises:
            BookingRefused: with the first rule that refuses the booking.
        """
        reason = check_account(user, now)
        if reason is not None:
            raise BookingRefused(reason)

        blocks = await self._specialty_blocks(session, user.id)
        if specialty_id in active_specialty_blocks(blocks, now):
            raise BookingRefused(RefusalReason.SPECIALTY_SUSPENDED)

        conflict = await self.monthly_conflict(session, user.id, specialty_id, now.date())
        if conflict is not None:
            raise BookingRefused(RefusalReason.MONTHLY_LIMIT, conflicting_date=conflict.day)

    async def list_bookable_specialties(
        self, session: AsyncSession, user: User, now: datetime
    ) -> list[BookableSpecialty]:
        """Specialties with at least one active professional, flagged when suspended.

        Raises:
            BookingRefused: if the account itself is blocked or suspended.
        """
        reason = check_account(user, now)
        if reason is not None:
            raise BookingRefused(reason)

        data = await self._cache.get(session)
        suspended = active_specialty_blocks(await self._specialty_blocks(session, user.id), now)
        result: list[BookableSpecialty] = []
        for specialty in sorted(data.specialties.values(), key=lambda s: (s.name, s.id)):
            professionals = data.professionals_for(specialty.id)
            if not professionals:
                continue
            result.append(
                BookableSpecialty(
                    id=specialty.id,
                    name=specialty.name,
                    description=specialty.description,
                    professionals=professionals,
                    suspended=specialty.id in suspended,
                )
            )
        return result

    async def _ensure_offers(
        self, session: AsyncSession, professional_id: int, specialty_id: int
    ) -> None:
        data = await self._cache.get(session)
        if not data.offers(professional_id, specialty_id):
            raise LookupError(
                f"Professional {professional_id} does not offer specialty {specialty_id}"
            )

    # -- Availability --------------------------------------------------------

    async def available_dates(
        self, session: AsyncSession, professional_id: int, today: date
    ) -> list[date]:
        snapshot = await self._snapshot(session, professional_id, today)
        dates = resolve_available_dates(
            professional_id,
            snapshot.weekly,
            snapshot.overrides,
            snapshot.blocked,
            is_holiday,
            today,
            window_days=self.window_days,
        )
        return sorted(dates)

    def _check_date(self, snapshot: AvailabilitySnapshot, day: date, today: date) -> None:
        reason = check_date(
            snapshot.professional_id,
            day,
            snapshot.weekly,
            snapshot.overrides,
            snapshot.blocked,
            today,
            window_days=self.window_days,
        )
        if reason is not None:
            raise BookingRefused(reason)

    async def available_slots(
        self, session: AsyncSession, professional_id: int, day: date, now: datetime
    ) -> list[time]:
        """Free slots on an admissible date.

        Raises:
            BookingRefused: if the date itself cannot be offered.
        """
        snapshot = await self._snapshot(session, professional_id, now.date())
        self._check_date(snapshot, day, now.date())
        return resolve_available_slots(
            professional_id,
            day,
            snapshot.weekly,
            snapshot.overrides,
            snapshot.booked_times(day),
            now,
            default_range=self.default_hours,
        )

    # -- Booking -------------------------------------------------------------

    async def book(
        self,
        session: AsyncSession,
        user: User,
        professional_id: int,
        specialty_id: int,
        day: date,
        slot: time,
        now: datetime,
    ) -> Appointment:
        """Create a scheduled appointment after every rule has passed.

        Raises:
            BookingRefused: for any business-rule refusal, including a slot
                taken concurrently (unique-constraint violation on insert).
            LookupError: if the professional does not offer the specialty.
        """
        await self.ensure_can_book(session, user, specialty_id, now)
        await self._ensure_offers(session, professional_id, specialty_id)

        slot = slot.replace(second=0, microsecond=0)
        snapshot = await self._snapshot(session, professional_id, now.date())
        self._check_date(snapshot, day, now.date())

        booked = snapshot.booked_times(day)
        free = resolve_available_slots(
            professional_id,
            day,
            snapshot.weekly,
            snapshot.overrides,
            booked,
            now,
            default_range=self.default_hours,
        )
        if slot not in free:
            reason = RefusalReason.SLOT_TAKEN if slot in booked else RefusalReason.SLOT_UNAVAILABLE
            raise BookingRefused(reason)

        appointment = Appointment(
            user_id=user.id,
            professional_id=professional_id,
            specialty_id=specialty_id,
            appointment_date=day,
            appointment_time=slot,
            status="scheduled",
        )
        session.add(appointment)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            logger.info(
                "Slot %s %s for professional %d taken concurrently", day, slot, professional_id
            )
            raise BookingRefused(RefusalReason.SLOT_TAKEN) from None

        await session.refresh(appointment)
        logger.info(
            "Appointment %d booked: user=%d professional=%d %s %s",
            appointment.id,
            user.id,
            professional_id,
            day,
            slot,
        )
        return appointment

    async def cancel(
        self,
        session: AsyncSession,
        appointment: Appointment,
        actor_role: str,
        now: datetime,
        confirm_penalty: bool = False,
    ) -> CancellationResult:
        """Cancel a scheduled appointment.

        A user cancelling on the appointment day must confirm the penalty,
        which suspends the specialty for the configured number of days.

        Raises:
            ValueError: if the appointment is not scheduled.
            BookingRefused: if a same-day penalty was not confirmed.
        """
        if appointment.status != "scheduled":
            raise ValueError(f"Cannot cancel an appointment with status '{appointment.status}'")

        penalty = actor_role == "user" and evaluate_cancellation_penalty(
            appointment.appointment_date, now.date()
        )
        if penalty and not confirm_penalty:
            raise BookingRefused(RefusalReason.PENALTY_CONFIRMATION_REQUIRED)

        appointment.status = "cancelled"
        appointment.notes = (
            "Cancelled on the appointment day" if penalty else CANCELLATION_NOTES.get(actor_role)
        )

        blocked_until: datetime | None = None
        if penalty:
            blocked_until = now + timedelta(days=self._settings.same_day_penalty_days)
            await upsert_specialty_block(
                session,
                appointment.user_id,
                appointment.specialty_id,
                blocked_until,
                SAME_DAY_REASON,
            )

        await session.commit()
        await session.refresh(appointment)
        logger.info(
            "Appointment %d cancelled by %s (penalty=%s)", appointment.id, actor_role, penalty
        )
        return CancellationResult(appointment, penalty, blocked_until)

    async def set_status(
        self, session: AsyncSession, appointment: Appointment, status: str
    ) -> Appointment:
        """Move a scheduled appointment to completed or no_show.

        Raises:
            ValueError: for transitions other than scheduled -> completed/no_show.
        """
        allowed = STATUS_TRANSITIONS.get(appointment.status, set())
        if status not in allowed:
            raise ValueError(
                f"Cannot change status from '{appointment.status}' to '{status}'"
            )
        appointment.status = status
        await session.commit()
        await session.refresh(appointment)
        return appointment


async def upsert_specialty_block(
    session: AsyncSession,
    user_id: int,
    specialty_id: int,
    blocked_until: datetime | None,
    reason: str,
) -> SpecialtyBlock:
    """Create or replace the user's block for one specialty (not committed)."""
    result = await session.execute(
        select(SpecialtyBlock).where(
            SpecialtyBlock.user_id == user_id,
            SpecialtyBlock.specialty_id == specialty_id,
        )
    )
    block = result.scalar_one_or_none()
    if block is None:
        block = SpecialtyBlock(user_id=user_id, specialty_id=specialty_id)
        session.add(block)
    block.blocked_until = blocked_until
    block.reason = reason
    return block
