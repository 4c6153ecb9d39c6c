"""Professional API routes: manage professionals and the specialties they offer."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from staffbook.api.deps import get_reference_cache, require_admin
from staffbook.database import get_db
from staffbook.models.professional import Professional, ProfessionalSpecialty, Specialty
from staffbook.models.user import User
from staffbook.scheduling.cache import ReferenceDataCache
from staffbook.schemas.professional import (
    ProfessionalCreate,
    ProfessionalRead,
    ProfessionalUpdate,
)

router = APIRouter(prefix="/api/professionals", tags=["professionals"])


async def _get_professional_or_404(session: AsyncSession, professional_id: int) -> Professional:
    professional = await session.get(Professional, professional_id)
    if professional is None:
        raise HTTPException(status_code=404, detail="Professional not found")
    return professional


async def _specialty_ids(session: AsyncSession, professional_id: int) -> list[int]:
    result = await session.execute(
        select(ProfessionalSpecialty.specialty_id)
        .where(ProfessionalSpecialty.professional_id == professional_id)
        .order_by(ProfessionalSpecialty.specialty_id)
    )
    return list(result.scalars().all())


async def _set_specialties(
    session: AsyncSession, professional_id: int, specialty_ids: list[int]
) -> None:
    """Replace the professional's specialty links (not committed)."""
    wanted = set(specialty_ids)
    if wanted:
        found = await session.execute(select(Specialty.id).where(Specialty.id.in_(wanted)))
        missing = wanted - set(found.scalars().all())
        if missing:
            raise HTTPException(
                status_code=422, detail=f"Unknown specialty ids: {sorted(missing)}"
            )

    await session.execute(
        delete(ProfessionalSpecialty).where(
            ProfessionalSpecialty.professional_id == professional_id
        )
    )
    for specialty_id in sorted(wanted):
        session.add(
            ProfessionalSpecialty(professional_id=professional_id, specialty_id=specialty_id)
        )


async def _to_read(session: AsyncSession, professional: Professional) -> ProfessionalRead:
    return ProfessionalRead(
        id=professional.id,
        name=professional.name,
        email=professional.email,
        phone=professional.phone,
        active=professional.active,
        user_id=professional.user_id,
        specialty_ids=await _specialty_ids(session, professional.id),
        created_at=professional.created_at,
    )


@router.get("", response_model=list[ProfessionalRead])
async def list_professionals(
    include_inactive: bool = False,
    session: AsyncSession = Depends(get_db),
) -> list[ProfessionalRead]:
    stmt = select(Professional).order_by(Professional.name)
    if not include_inactive:
        stmt = stmt.where(Professional.active.is_(True))
    result = await session.execute(stmt)
    return [await _to_read(session, p) for p in result.scalars().all()]


@router.get("/{professional_id}", response_model=ProfessionalRead)
async def get_professional(
    professional_id: int,
    session: AsyncSession = Depends(get_db),
) -> ProfessionalRead:
    professional = await _get_professional_or_404(session, professional_id)
    return await _to_read(session, professional)


@router.post("", response_model=ProfessionalRead, status_code=201)
async def create_professional(
    body: ProfessionalCreate,
    session: AsyncSession = Depends(get_db),
    cache: ReferenceDataCache = Depends(get_reference_cache),
    _admin: User = Depends(require_admin),
) -> ProfessionalRead:
    """Create a professional and link the given specialties."""
    professional = Professional(**body.model_dump(exclude={"specialty_ids"}))
    session.add(professional)
    await session.flush()
    await _set_specialties(session, professional.id, body.specialty_ids)
    await session.commit()
    await session.refresh(professional)
    cache.invalidate()
    return await _to_read(session, professional)


@router.patch("/{professional_id}", response_model=ProfessionalRead)
async def update_professional(
    professional_id: int,
    body: ProfessionalUpdate,
    session: AsyncSession = Depends(get_db),
    cache: ReferenceDataCache = Depends(get_reference_cache),
    _admin: User = Depends(require_admin),
) -> ProfessionalRead:
    """Update a professional (partial). `specialty_ids`, when given, replaces the links."""
    professional = await _get_professional_or_404(session, professional_id)
    update_data = body.model_dump(exclude_unset=True)
    specialty_ids = update_data.pop("specialty_ids", None)
    for field, value in update_data.items():
        setattr(professional, field, value)
    if specialty_ids is not None:
        await _set_specialties(session, professional.id, specialty_ids)
    await session.commit()
    await session.refresh(professional)
    cache.invalidate()
    return await _to_read(session, professional)


@router.delete("/{professional_id}", status_code=204)
async def delete_professional(
    professional_id: int,
    session: AsyncSession = Depends(get_db),
    cache: ReferenceDataCache = Depends(get_reference_cache),
    _admin: User = Depends(require_admin),
) -> None:
    professional = await _get_professional_or_404(session, professional_id)
    await session.delete(professional)
    await session.commit()
    cache.invalidate()
