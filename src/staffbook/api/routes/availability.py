"""Availability API routes: weekly patterns and one-off date overrides per professional."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from staffbook.api.deps import require_admin
from staffbook.database import get_db
from staffbook.models.availability import DateOverride, WeeklyAvailability
from staffbook.models.professional import Professional
from staffbook.models.user import User
from staffbook.scheduling.rules import find_overlap
from staffbook.scheduling.types import TimeRange
from staffbook.schemas.availability import (
    DateOverrideCreate,
    DateOverrideRead,
    WeeklyAvailabilityRead,
    WeeklyAvailabilitySet,
)

router = APIRouter(prefix="/api/availability", tags=["availability"])


async def _ensure_professional(session: AsyncSession, professional_id: int) -> None:
    if await session.get(Professional, professional_id) is None:
        raise HTTPException(status_code=404, detail="Professional not found")


@router.put("/{professional_id}/weekly", response_model=list[WeeklyAvailabilityRead])
async def set_weekly_availability(
    professional_id: int,
    body: WeeklyAvailabilitySet,
    session: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> list[WeeklyAvailability]:
    """Replace the professional's weekly pattern. An empty list clears it."""
    await _ensure_professional(session, professional_id)

    await session.execute(
        delete(WeeklyAvailability).where(WeeklyAvailability.professional_id == professional_id)
    )

    rows = []
    for slot in body.slots:
        row = WeeklyAvailability(
            professional_id=professional_id,
            day_of_week=slot.day_of_week,
            start_time=slot.start_time,
            end_time=slot.end_time,
        )
        session.add(row)
        rows.append(row)

    await session.commit()
    for row in rows:
        await session.refresh(row)
    return sorted(rows, key=lambda r: (r.day_of_week, r.start_time))


@router.get("/{professional_id}/weekly", response_model=list[WeeklyAvailabilityRead])
async def get_weekly_availability(
    professional_id: int,
    session: AsyncSession = Depends(get_db),
) -> list[WeeklyAvailability]:
    await _ensure_professional(session, professional_id)
    stmt = (
        select(WeeklyAvailability)
        .where(WeeklyAvailability.professional_id == professional_id)
        .order_by(WeeklyAvailability.day_of_week, WeeklyAvailability.start_time)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


@router.post("/{professional_id}/overrides", response_model=DateOverrideRead, status_code=201)
async def add_date_override(
    professional_id: int,
    body: DateOverrideCreate,
    session: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> DateOverride:
    """Add a one-off availability window. Overlapping windows on the same date return 409."""
    await _ensure_professional(session, professional_id)

    existing = await session.execute(
        select(DateOverride).where(
            DateOverride.professional_id == professional_id,
            DateOverride.override_date == body.override_date,
        )
    )
    window = TimeRange(body.start_time, body.end_time)
    clash = find_overlap(window, [TimeRange(o.start_time, o.end_time) for o in existing.scalars()])
    if clash is not None:
        raise HTTPException(
            status_code=409,
            detail=f"Time range {window} conflicts with {clash} on {body.override_date}",
        )

    row = DateOverride(
        professional_id=professional_id,
        override_date=body.override_date,
        start_time=body.start_time,
        end_time=body.end_time,
    )
    session.add(row)
    await session.commit()
    await session.refresh(row)
    return row


@router.get("/{professional_id}/overrides", response_model=list[DateOverrideRead])
async def list_date_overrides(
    professional_id: int,
    session: AsyncSession = Depends(get_db),
) -> list[DateOverride]:
    await _ensure_professional(session, professional_id)
    stmt = (
        select(DateOverride)
        .where(DateOverride.professional_id == professional_id)
        .order_by(DateOverride.override_date, DateOverride.start_time)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


@router.delete("/overrides/{override_id}", status_code=204)
async def delete_date_override(
    override_id: int,
    session: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> None:
    row = await session.get(DateOverride, override_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Override not found")
    await session.delete(row)
    await session.commit()
