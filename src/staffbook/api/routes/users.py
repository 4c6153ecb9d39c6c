"""User API routes: accounts, suspensions and blocks (admin tooling)."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from staffbook.api.deps import get_current_user, require_admin
from staffbook.config import get_settings
from staffbook.database import get_db
from staffbook.models.appointment import SpecialtyBlock
from staffbook.models.user import User
from staffbook.scheduling import suspensions
from staffbook.schemas.user import (
    SpecialtyBlockRead,
    SuspensionCreate,
    SuspensionRead,
    UserCreate,
    UserRead,
    UserUpdate,
)

router = APIRouter(prefix="/api/users", tags=["users"])


async def _get_user_or_404(session: AsyncSession, user_id: int) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.post("", response_model=UserRead, status_code=201)
async def create_user(
    body: UserCreate,
    session: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> User:
    """Create a user profile. Returns 409 if the email is already registered."""
    user = User(name=body.name, email=body.email, role=body.role)
    session.add(user)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise HTTPException(status_code=409, detail="Email already registered") from None
    await session.refresh(user)
    return user


@router.get("", response_model=list[UserRead])
async def list_users(
    session: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> list[User]:
    result = await session.execute(select(User).order_by(User.name))
    return list(result.scalars().all())


@router.get("/me", response_model=UserRead)
async def get_me(user: User = Depends(get_current_user)) -> User:
    return user


@router.get("/me/specialty-blocks", response_model=list[SpecialtyBlockRead])
async def get_my_specialty_blocks(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> list[SpecialtyBlock]:
    """Specialty suspensions of the current user (expired ones included)."""
    result = await session.execute(
        select(SpecialtyBlock)
        .where(SpecialtyBlock.user_id == user.id)
        .order_by(SpecialtyBlock.specialty_id)
    )
    return list(result.scalars().all())


@router.get("/{user_id}", response_model=UserRead)
async def get_user(
    user_id: int,
    session: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> User:
    return await _get_user_or_404(session, user_id)


@router.patch("/{user_id}", response_model=UserRead)
async def update_user(
    user_id: int,
    body: UserUpdate,
    session: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> User:
    """Update a user profile (partial update)."""
    user = await _get_user_or_404(session, user_id)
    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(user, field, value)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise HTTPException(status_code=409, detail="Email already registered") from None
    await session.refresh(user)
    return user


@router.get("/{user_id}/specialty-blocks", response_model=list[SpecialtyBlockRead])
async def list_specialty_blocks(
    user_id: int,
    session: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> list[SpecialtyBlock]:
    await _get_user_or_404(session, user_id)
    result = await session.execute(
        select(SpecialtyBlock)
        .where(SpecialtyBlock.user_id == user_id)
        .order_by(SpecialtyBlock.specialty_id)
    )
    return list(result.scalars().all())


@router.post("/{user_id}/suspend", response_model=SuspensionRead)
async def suspend_user(
    user_id: int,
    body: SuspensionCreate,
    session: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> SuspensionRead:
    """Suspend the account, or only the listed specialties, for a fixed period."""
    user = await _get_user_or_404(session, user_id)
    until = await suspensions.suspend(
        session,
        user,
        body.specialty_ids,
        datetime.now(),
        get_settings().admin_suspension_months,
    )
    return SuspensionRead(user_id=user.id, suspended_until=until, specialty_ids=body.specialty_ids)


@router.post("/{user_id}/lift-suspension", response_model=UserRead)
async def lift_suspension(
    user_id: int,
    session: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> User:
    """Clear the account suspension and all specialty blocks."""
    user = await _get_user_or_404(session, user_id)
    await suspensions.lift_suspension(session, user)
    await session.refresh(user)
    return user


@router.delete("/{user_id}/specialty-blocks/{specialty_id}", status_code=204)
async def remove_specialty_block(
    user_id: int,
    specialty_id: int,
    session: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> None:
    user = await _get_user_or_404(session, user_id)
    if not await suspensions.remove_specialty_block(session, user, specialty_id):
        raise HTTPException(status_code=404, detail="Specialty block not found")


@router.post("/{user_id}/block", response_model=UserRead)
async def block_user(
    user_id: int,
    session: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> User:
    user = await _get_user_or_404(session, user_id)
    await suspensions.set_blocked(session, user, True)
    await session.refresh(user)
    return user


@router.post("/{user_id}/unblock", response_model=UserRead)
async def unblock_user(
    user_id: int,
    session: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> User:
    user = await _get_user_or_404(session, user_id)
    await suspensions.set_blocked(session, user, False)
    await session.refresh(user)
    return user
