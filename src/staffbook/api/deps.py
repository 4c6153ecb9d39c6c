"""Request dependencies: current user, role checks and shared services.

Authentication happens upstream; the identity service forwards the
authenticated user id in the ``X-User-Id`` header.
"""

from collections.abc import Callable, Coroutine
from typing import Any

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from staffbook.database import get_db
from staffbook.models.user import User
from staffbook.scheduling.booking import BookingService
from staffbook.scheduling.cache import ReferenceDataCache


async def get_current_user(
    x_user_id: int | None = Header(default=None),
    session: AsyncSession = Depends(get_db),
) -> User:
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    user = await session.get(User, x_user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user


def require_role(*roles: str) -> Callable[..., Coroutine[Any, Any, User]]:
    async def _check(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return _check


require_admin = require_role("admin")


def get_reference_cache(request: Request) -> ReferenceDataCache:
    return request.app.state.reference_cache


def get_booking_service(request: Request) -> BookingService:
    return request.app.state.booking_service
