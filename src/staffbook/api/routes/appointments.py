"""Appointment API routes: availability lookup, booking, cancellation and status."""

from datetime import date, datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from staffbook.api.deps import get_booking_service, get_current_user, require_admin, require_role
from staffbook.database import get_db
from staffbook.models.appointment import Appointment
from staffbook.models.professional import Professional
from staffbook.models.user import User
from staffbook.scheduling.booking import BookingService
from staffbook.schemas.appointment import (
    AppointmentCreate,
    AppointmentRead,
    AppointmentStatusUpdate,
    AvailableDatesRead,
    AvailableSlotsRead,
    CancellationRead,
    CancellationRequest,
    RefusalRead,
)

router = APIRouter(prefix="/api/appointments", tags=["appointments"])

REFUSAL_RESPONSES: dict[int | str, dict[str, Any]] = {
    403: {"model": RefusalRead, "description": "Account or specialty suspended"},
    409: {"model": RefusalRead, "description": "Refused by a booking rule"},
}


async def _get_appointment_or_404(session: AsyncSession, appointment_id: int) -> Appointment:
    appointment = await session.get(Appointment, appointment_id)
    if appointment is None:
        raise HTTPException(status_code=404, detail="Appointment not found")
    return appointment


async def _own_professional_ids(session: AsyncSession, user: User) -> set[int]:
    result = await session.execute(select(Professional.id).where(Professional.user_id == user.id))
    return set(result.scalars().all())


async def _actor_role(session: AsyncSession, user: User, appointment: Appointment) -> str:
    """Role under which `user` acts on `appointment`; 403 if they may not.

    Owners always act as the user, so admins cancelling their own booking
    are subject to the same-day penalty.
    """
    if appointment.user_id == user.id:
        return "user"
    if user.role == "admin":
        return "admin"
    if user.role == "professional" and appointment.professional_id in await _own_professional_ids(
        session, user
    ):
        return "professional"
    raise HTTPException(status_code=403, detail="Not allowed to modify this appointment")


@router.get(
    "/available-dates", response_model=AvailableDatesRead, responses=REFUSAL_RESPONSES
)
async def get_available_dates(
    professional_id: int = Query(...),
    specialty_id: int = Query(...),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
) -> AvailableDatesRead:
    """Bookable dates in the rolling window.

    Account, specialty-suspension and monthly-limit refusals are reported
    before any date is offered.
    """
    now = datetime.now()
    await service.ensure_can_book(session, user, specialty_id, now)
    dates = await service.available_dates(session, professional_id, now.date())
    return AvailableDatesRead(professional_id=professional_id, dates=dates)


@router.get(
    "/available-slots", response_model=AvailableSlotsRead, responses=REFUSAL_RESPONSES
)
async def get_available_slots(
    professional_id: int = Query(...),
    day: date = Query(..., alias="date"),
    _user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
) -> AvailableSlotsRead:
    slots = await service.available_slots(session, professional_id, day, datetime.now())
    return AvailableSlotsRead(professional_id=professional_id, day=day, slots=slots)


@router.post(
    "", response_model=AppointmentRead, status_code=201, responses=REFUSAL_RESPONSES
)
async def book_appointment(
    body: AppointmentCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
) -> Appointment:
    """Book a slot for the current user."""
    try:
        return await service.book(
            session,
            user,
            body.professional_id,
            body.specialty_id,
            body.appointment_date,
            body.appointment_time,
            datetime.now(),
        )
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None


@router.get("/mine", response_model=list[AppointmentRead])
async def list_my_appointments(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> list[Appointment]:
    stmt = (
        select(Appointment)
        .where(Appointment.user_id == user.id)
        .order_by(Appointment.appointment_date.desc(), Appointment.appointment_time.desc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


@router.get("", response_model=list[AppointmentRead])
async def list_appointments(
    status: str | None = None,
    start: date | None = None,
    end: date | None = None,
    user: User = Depends(require_role("admin", "professional")),
    session: AsyncSession = Depends(get_db),
) -> list[Appointment]:
    """All appointments for admins; professionals see only their own agenda."""
    stmt = select(Appointment).order_by(
        Appointment.appointment_date, Appointment.appointment_time
    )
    if user.role == "professional":
        stmt = stmt.where(
            Appointment.professional_id.in_(await _own_professional_ids(session, user))
        )
    if status is not None:
        stmt = stmt.where(Appointment.status == status)
    if start is not None:
        stmt = stmt.where(Appointment.appointment_date >= start)
    if end is not None:
        stmt = stmt.where(Appointment.appointment_date <= end)
    result = await session.execute(stmt)
    return list(result.scalars().all())


@router.post(
    "/{appointment_id}/cancel", response_model=CancellationRead, responses=REFUSAL_RESPONSES
)
async def cancel_appointment(
    appointment_id: int,
    body: CancellationRequest | None = None,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
) -> CancellationRead:
    """Cancel an appointment.

    A user cancelling on the appointment day gets a 409 with reason
    PENALTY_CONFIRMATION_REQUIRED unless `confirm_penalty` is true.
    """
    appointment = await _get_appointment_or_404(session, appointment_id)
    actor = await _actor_role(session, user, appointment)
    confirm = body.confirm_penalty if body is not None else False
    try:
        result = await service.cancel(
            session, appointment, actor, datetime.now(), confirm_penalty=confirm
        )
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e)) from None
    return CancellationRead(
        appointment=AppointmentRead.model_validate(result.appointment),
        penalty_applied=result.penalty_applied,
        blocked_until=result.blocked_until,
    )


@router.patch(
    "/{appointment_id}/status", response_model=AppointmentRead, responses=REFUSAL_RESPONSES
)
async def update_status(
    appointment_id: int,
    body: AppointmentStatusUpdate,
    user: User = Depends(require_role("admin", "professional")),
    session: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
) -> Appointment:
    """Mark an appointment completed, no_show or cancelled (staff only)."""
    appointment = await _get_appointment_or_404(session, appointment_id)
    actor = await _actor_role(session, user, appointment)
    try:
        if body.status == "cancelled":
            result = await service.cancel(session, appointment, actor, datetime.now())
            return result.appointment
        return await service.set_status(session, appointment, body.status)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e)) from None


@router.delete("/{appointment_id}", status_code=204)
async def delete_appointment(
    appointment_id: int,
    session: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> None:
    appointment = await _get_appointment_or_404(session, appointment_id)
    await session.delete(appointment)
    await session.commit()
