from datetime import date, datetime, time

from sqlalchemy import ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from staffbook.database import Base

APPOINTMENT_STATUSES = ("scheduled", "completed", "cancelled", "no_show")


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        # One scheduled booking per professional slot; any other status frees it.
        Index(
            "uq_appointments_professional_slot",
            "professional_id",
            "appointment_date",
            "appointment_time",
            unique=True,
            sqlite_where=text("status = 'scheduled'"),
            postgresql_where=text("status = 'scheduled'"),
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    professional_id: Mapped[int] = mapped_column(
        ForeignKey("professionals.id", ondelete="CASCADE")
    )
    specialty_id: Mapped[int] = mapped_column(ForeignKey("specialties.id", ondelete="CASCADE"))
    appointment_date: Mapped[date]
    appointment_time: Mapped[time]
    status: Mapped[str] = mapped_column(
        String(20), default="scheduled"
    )  # scheduled, completed, cancelled, no_show
    notes: Mapped[str | None] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, onupdate=datetime.utcnow)


class SpecialtyBlock(Base):
    """Temporary ban on booking one specialty."""

    __tablename__ = "user_specialty_blocks"
    __table_args__ = (
        Index("uq_specialty_blocks_user_specialty", "user_id", "specialty_id", unique=True),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    specialty_id: Mapped[int] = mapped_column(ForeignKey("specialties.id", ondelete="CASCADE"))
    blocked_until: Mapped[datetime | None] = mapped_column(default=None)  # None = indefinite
    reason: Mapped[str | None] = mapped_column(String(255), default=None)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)
