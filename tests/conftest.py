from collections.abc import AsyncGenerator
from dataclasses import dataclass
from datetime import time

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from staffbook.database import Base, build_engine, get_db
from staffbook.main import app
from staffbook.models.availability import WeeklyAvailability
from staffbook.models.professional import Professional, ProfessionalSpecialty, Specialty
from staffbook.models.user import User

test_engine = build_engine("sqlite+aiosqlite://")
test_session = async_sessionmaker(test_engine, expire_on_commit=False)


async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with test_session() as session:
        yield session


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
async def setup_db() -> AsyncGenerator[None, None]:
    app.state.reference_cache.invalidate()
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@dataclass
class Seed:
    admin_id: int
    user_id: int
    other_user_id: int
    professional_user_id: int
    professional_id: int
    specialty_id: int
    other_specialty_id: int


def headers(user_id: int) -> dict[str, str]:
    return {"X-User-Id": str(user_id)}


@pytest.fixture
async def seed(setup_db: None) -> Seed:
    """Admin, two staff users, one professional offering two specialties every day 09-17."""
    async with test_session() as session:
        admin = User(name="Admin", email="admin@example.com", role="admin")
        user = User(name="Ana", email="ana@example.com")
        other = User(name="Bruno", email="bruno@example.com")
        pro_user = User(name="Carla", email="carla@example.com", role="professional")
        massage = Specialty(name="Massage")
        nutrition = Specialty(name="Nutrition")
        session.add_all([admin, user, other, pro_user, massage, nutrition])
        await session.flush()

        professional = Professional(name="Carla", email="carla@example.com", user_id=pro_user.id)
        session.add(professional)
        await session.flush()

        session.add_all(
            [
                ProfessionalSpecialty(professional_id=professional.id, specialty_id=massage.id),
                ProfessionalSpecialty(professional_id=professional.id, specialty_id=nutrition.id),
            ]
        )
        session.add_all(
            [
                WeeklyAvailability(
                    professional_id=professional.id,
                    day_of_week=day,
                    start_time=time(9, 0),
                    end_time=time(17, 0),
                )
                for day in range(7)
            ]
        )
        await session.commit()

        return Seed(
            admin_id=admin.id,
            user_id=user.id,
            other_user_id=other.id,
            professional_user_id=pro_user.id,
            professional_id=professional.id,
            specialty_id=massage.id,
            other_specialty_id=nutrition.id,
        )
