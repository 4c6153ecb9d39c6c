"""Administrative suspensions: whole accounts or individual specialties."""

import calendar
import logging
from datetime import datetime

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from staffbook.models.appointment import SpecialtyBlock
from staffbook.models.user import User
from staffbook.scheduling.booking import upsert_specialty_block

logger = logging.getLogger(__name__)

ADMIN_SUSPENSION_REASON = "Suspended by administration"


def add_months(moment: datetime, months: int) -> datetime:
    """Same day-of-month `months` later, clamped to the end of shorter months."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


async def suspend(
    session: AsyncSession,
    user: User,
    specialty_ids: list[int],
    now: datetime,
    months: int,
) -> datetime:
    """Suspend the account, or only the given specialties, for `months`.

    An empty `specialty_ids` suspends the whole account. Returns the
    suspension end.
    """
    until = add_months(now, months)
    if not specialty_ids:
        user.suspended_until = until
    else:
        for specialty_id in specialty_ids:
            await upsert_specialty_block(
                session, user.id, specialty_id, until, ADMIN_SUSPENSION_REASON
            )
    await session.commit()
    logger.info(
        "User %d suspended until %s (specialties=%s)", user.id, until, specialty_ids or "all"
    )
    return until


async def lift_suspension(session: AsyncSession, user: User) -> None:
    """Clear the account suspension and every specialty block."""
    user.suspended_until = None
    await session.execute(delete(SpecialtyBlock).where(SpecialtyBlock.user_id == user.id))
    await session.commit()
    logger.info("Suspensions lifted for user %d", user.id)


async def remove_specialty_block(session: AsyncSession, user: User, specialty_id: int) -> bool:
    """Delete one specialty block. Returns False when there was none."""
    result = await session.execute(
        delete(SpecialtyBlock).where(
            SpecialtyBlock.user_id == user.id,
            SpecialtyBlock.specialty_id == specialty_id,
        )
    )
    await session.commit()
    return bool(result.rowcount)


async def set_blocked(session: AsyncSession, user: User, blocked: bool) -> None:
    user.blocked = blocked
    await session.commit()
    logger.info("User %d %s", user.id, "blocked" if blocked else "unblocked")
