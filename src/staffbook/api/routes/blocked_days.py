"""Blocked-day API routes: global or per-professional closures, plus legacy import."""

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from staffbook.api.deps import require_admin
from staffbook.database import get_db
from staffbook.models.availability import BlockedDay, DateOverride
from staffbook.models.professional import Professional
from staffbook.models.user import User
from staffbook.scheduling.rules import (
    LEGACY_OVERRIDE_PREFIX,
    find_overlap,
    parse_legacy_override,
)
from staffbook.scheduling.types import TimeRange
from staffbook.schemas.availability import (
    BlockedDayCreate,
    BlockedDayRead,
    LegacyImportRequest,
    LegacyImportResponse,
)

router = APIRouter(prefix="/api/blocked-days", tags=["blocked-days"])
logger = logging.getLogger(__name__)


@router.post("", response_model=BlockedDayRead, status_code=201)
async def create_blocked_day(
    body: BlockedDayCreate,
    session: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> BlockedDay:
    """Block a date for one professional, or for all when `professional_id` is null."""
    if body.professional_id is not None and (
        await session.get(Professional, body.professional_id) is None
    ):
        raise HTTPException(status_code=404, detail="Professional not found")

    row = BlockedDay(
        professional_id=body.professional_id,
        blocked_date=body.blocked_date,
        reason=body.reason,
    )
    session.add(row)
    await session.commit()
    await session.refresh(row)
    return row


@router.get("", response_model=list[BlockedDayRead])
async def list_blocked_days(
    professional_id: int | None = None,
    start: date | None = None,
    end: date | None = None,
    session: AsyncSession = Depends(get_db),
) -> list[BlockedDay]:
    """List blocked days, newest first. Filtering by professional includes global blocks."""
    stmt = select(BlockedDay).order_by(BlockedDay.blocked_date.desc())
    if professional_id is not None:
        stmt = stmt.where(
            or_(
                BlockedDay.professional_id == professional_id,
                BlockedDay.professional_id.is_(None),
            )
        )
    if start is not None:
        stmt = stmt.where(BlockedDay.blocked_date >= start)
    if end is not None:
        stmt = stmt.where(BlockedDay.blocked_date <= end)
    result = await session.execute(stmt)
    return list(result.scalars().all())


@router.delete("/{blocked_day_id}", status_code=204)
async def delete_blocked_day(
    blocked_day_id: int,
    session: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> None:
    row = await session.get(BlockedDay, blocked_day_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Blocked day not found")
    await session.delete(row)
    await session.commit()


@router.post("/import-legacy", response_model=LegacyImportResponse)
async def import_legacy_blocked_days(
    body: LegacyImportRequest,
    session: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> LegacyImportResponse:
    """Import rows from the old blocked_days table.

    Rows whose reason starts with ``AVAILABLE:`` encode a one-off
    availability window and become date overrides; malformed ones are
    skipped. Every other row becomes a blocked day.
    """
    blocked_created = 0
    overrides_created = 0
    skipped = 0
    errors: list[str] = []
    windows: dict[tuple[int, date], list[TimeRange]] = {}

    for index, row in enumerate(body.rows):
        reason = row.reason or ""
        if not reason.startswith(LEGACY_OVERRIDE_PREFIX):
            session.add(
                BlockedDay(
                    professional_id=row.professional_id,
                    blocked_date=row.blocked_date,
                    reason=row.reason,
                )
            )
            blocked_created += 1
            continue

        window = parse_legacy_override(reason)
        if window is None or row.professional_id is None:
            skipped += 1
            errors.append(f"Row {index}: unusable availability entry {reason!r}")
            continue

        key = (row.professional_id, row.blocked_date)
        if key not in windows:
            existing = await session.execute(
                select(DateOverride).where(
                    DateOverride.professional_id == row.professional_id,
                    DateOverride.override_date == row.blocked_date,
                )
            )
            windows[key] = [TimeRange(o.start_time, o.end_time) for o in existing.scalars()]

        clash = find_overlap(window, windows[key])
        if clash is not None:
            skipped += 1
            errors.append(f"Row {index}: {window} overlaps {clash} on {row.blocked_date}")
            continue

        windows[key].append(window)
        session.add(
            DateOverride(
                professional_id=row.professional_id,
                override_date=row.blocked_date,
                start_time=window.start,
                end_time=window.end,
            )
        )
        overrides_created += 1

    await session.commit()
    logger.info(
        "Legacy import: %d blocked days, %d overrides, %d skipped",
        blocked_created,
        overrides_created,
        skipped,
    )
    return LegacyImportResponse(
        blocked_days_created=blocked_created,
        overrides_created=overrides_created,
        rows_skipped=skipped,
        errors=errors,
    )
