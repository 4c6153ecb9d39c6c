from datetime import date, datetime, time

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from staffbook.database import Base


class WeeklyAvailability(Base):
    __tablename__ = "weekly_availabilities"

    id: Mapped[int] = mapped_column(primary_key=True)
    professional_id: Mapped[int] = mapped_column(
        ForeignKey("professionals.id", ondelete="CASCADE")
    )
    day_of_week: Mapped[int]  # 0=Monday, 6=Sunday
    start_time: Mapped[time]
    end_time: Mapped[time]


class DateOverride(Base):
    """One-off availability window on a specific date."""

    __tablename__ = "date_overrides"

    id: Mapped[int] = mapped_column(primary_key=True)
    professional_id: Mapped[int] = mapped_column(
        ForeignKey("professionals.id", ondelete="CASCADE")
    )
    override_date: Mapped[date]
    start_time: Mapped[time]
    end_time: Mapped[time]


class BlockedDay(Base):
    __tablename__ = "blocked_days"

    id: Mapped[int] = mapped_column(primary_key=True)
    professional_id: Mapped[int | None] = mapped_column(
        ForeignKey("professionals.id", ondelete="CASCADE"), default=None
    )  # None blocks every professional
    blocked_date: Mapped[date]
    reason: Mapped[str | None] = mapped_column(String(255), default=None)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)
