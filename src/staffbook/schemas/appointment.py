from datetime import date, datetime, time

from pydantic import BaseModel, Field


class AppointmentCreate(BaseModel):
    professional_id: int
    specialty_id: int
    appointment_date: date
    appointment_time: time


class AppointmentRead(AppointmentCreate):
    id: int
    user_id: int
    status: str
    notes: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AppointmentStatusUpdate(BaseModel):
    status: str = Field(pattern=r"^(completed|cancelled|no_show)$")


class CancellationRequest(BaseModel):
    confirm_penalty: bool = False


class CancellationRead(BaseModel):
    appointment: AppointmentRead
    penalty_applied: bool
    blocked_until: datetime | None = None


class AvailableDatesRead(BaseModel):
    professional_id: int
    dates: list[date]


class AvailableSlotsRead(BaseModel):
    professional_id: int
    day: date
    slots: list[time]


class RefusalRead(BaseModel):
    reason: str
    message: str
    conflicting_date: date | None = None
