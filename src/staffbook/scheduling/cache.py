"""Short-lived cache of reference data (professionals, specialties, links)."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from staffbook.models.professional import Professional, ProfessionalSpecialty, Specialty

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300


@dataclass(frozen=True)
class ProfessionalInfo:
    id: int
    name: str
    email: str | None
    phone: str | None


@dataclass(frozen=True)
class SpecialtyInfo:
    id: int
    name: str
    description: str | None
    duration_minutes: int


@dataclass
class ReferenceData:
    professionals: dict[int, ProfessionalInfo] = field(default_factory=dict)
    specialties: dict[int, SpecialtyInfo] = field(default_factory=dict)
    links: set[tuple[int, int]] = field(default_factory=set)  # (professional_id, specialty_id)

    def professionals_for(self, specialty_id: int) -> list[ProfessionalInfo]:
        """Active professionals offering an active specialty, ordered by name."""
        if specialty_id not in self.specialties:
            return []
        found = [
            self.professionals[pid]
            for pid, sid in self.links
            if sid == specialty_id and pid in self.professionals
        ]
        return sorted(found, key=lambda p: (p.name, p.id))

    def specialties_for(self, professional_id: int) -> list[SpecialtyInfo]:
        found = [
            self.specialties[sid]
            for pid, sid in self.links
            if pid == professional_id and sid in self.specialties
        ]
        return sorted(found, key=lambda s: (s.name, s.id))

    def offers(self, professional_id: int, specialty_id: int) -> bool:
        return (
            (professional_id, specialty_id) in self.links
            and professional_id in self.professionals
            and specialty_id in self.specialties
        )


class ReferenceDataCache:
    """Reference data with an explicit expiry and refresh.

    One instance lives on the application state; writes to professionals or
    specialties call ``invalidate()`` so the next read reloads.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._data: ReferenceData | None = None
        self._expires_at = 0.0

    @property
    def expires_at(self) -> float:
        return self._expires_at

    def is_fresh(self) -> bool:
        return self._data is not None and self._clock() < self._expires_at

    async def get(self, session: AsyncSession) -> ReferenceData:
        if self._data is None or not self.is_fresh():
            return await self.refresh(session)
        return self._data

    async def refresh(self, session: AsyncSession) -> ReferenceData:
        professionals = await session.execute(
            select(Professional).where(Professional.active.is_(True))
        )
        specialties = await session.execute(select(Specialty).where(Specialty.active.is_(True)))
        links = await session.execute(
            select(ProfessionalSpecialty.professional_id, ProfessionalSpecialty.specialty_id)
        )

        data = ReferenceData(
            professionals={
                p.id: ProfessionalInfo(p.id, p.name, p.email, p.phone)
                for p in professionals.scalars().all()
            },
            specialties={
                s.id: SpecialtyInfo(s.id, s.name, s.description, s.duration_minutes)
                for s in specialties.scalars().all()
            },
            links={(pid, sid) for pid, sid in links.all()},
        )
        self._data = data
        self._expires_at = self._clock() + self._ttl
        logger.debug(
            "Reference data refreshed: %d professionals, %d specialties",
            len(data.professionals),
            len(data.specialties),
        )
        return data

    def invalidate(self) -> None:
        self._data = None
        self._expires_at = 0.0
