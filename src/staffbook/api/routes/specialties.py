"""Specialty API routes: catalogue management and the bookable list."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from staffbook.api.deps import (
    get_booking_service,
    get_current_user,
    get_reference_cache,
    require_admin,
)
from staffbook.database import get_db
from staffbook.models.professional import Specialty
from staffbook.models.user import User
from staffbook.scheduling.booking import BookableSpecialty, BookingService
from staffbook.scheduling.cache import ReferenceDataCache
from staffbook.schemas.appointment import RefusalRead
from staffbook.schemas.professional import (
    BookableSpecialtyRead,
    SpecialtyCreate,
    SpecialtyRead,
    SpecialtyUpdate,
)

router = APIRouter(prefix="/api/specialties", tags=["specialties"])


async def _get_specialty_or_404(session: AsyncSession, specialty_id: int) -> Specialty:
    specialty = await session.get(Specialty, specialty_id)
    if specialty is None:
        raise HTTPException(status_code=404, detail="Specialty not found")
    return specialty


@router.get("", response_model=list[SpecialtyRead])
async def list_specialties(
    include_inactive: bool = False,
    session: AsyncSession = Depends(get_db),
) -> list[Specialty]:
    stmt = select(Specialty).order_by(Specialty.name)
    if not include_inactive:
        stmt = stmt.where(Specialty.active.is_(True))
    result = await session.execute(stmt)
    return list(result.scalars().all())


@router.get(
    "/bookable",
    response_model=list[BookableSpecialtyRead],
    responses={403: {"model": RefusalRead, "description": "Account blocked or suspended"}},
)
async def list_bookable_specialties(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
) -> list[BookableSpecialty]:
    """Specialties the current user can pick, with suspended ones flagged."""
    return await service.list_bookable_specialties(session, user, datetime.now())


@router.post("", response_model=SpecialtyRead, status_code=201)
async def create_specialty(
    body: SpecialtyCreate,
    session: AsyncSession = Depends(get_db),
    cache: ReferenceDataCache = Depends(get_reference_cache),
    _admin: User = Depends(require_admin),
) -> Specialty:
    specialty = Specialty(**body.model_dump())
    session.add(specialty)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise HTTPException(
            status_code=409, detail=f"Specialty '{body.name}' already exists"
        ) from None
    await session.refresh(specialty)
    cache.invalidate()
    return specialty


@router.patch("/{specialty_id}", response_model=SpecialtyRead)
async def update_specialty(
    specialty_id: int,
    body: SpecialtyUpdate,
    session: AsyncSession = Depends(get_db),
    cache: ReferenceDataCache = Depends(get_reference_cache),
    _admin: User = Depends(require_admin),
) -> Specialty:
    specialty = await _get_specialty_or_404(session, specialty_id)
    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(specialty, field, value)
    await session.commit()
    await session.refresh(specialty)
    cache.invalidate()
    return specialty


@router.delete("/{specialty_id}", status_code=204)
async def delete_specialty(
    specialty_id: int,
    session: AsyncSession = Depends(get_db),
    cache: ReferenceDataCache = Depends(get_reference_cache),
    _admin: User = Depends(require_admin),
) -> None:
    specialty = await _get_specialty_or_404(session, specialty_id)
    await session.delete(specialty)
    await session.commit()
    cache.invalidate()
