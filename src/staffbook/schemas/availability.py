from datetime import date, datetime, time

from pydantic import BaseModel, Field, model_validator


class TimeWindow(BaseModel):
    start_time: time
    end_time: time

    @model_validator(mode="after")
    def _end_after_start(self) -> "TimeWindow":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class WeeklySlot(TimeWindow):
    day_of_week: int = Field(ge=0, le=6)  # 0=Monday, 6=Sunday


class WeeklyAvailabilitySet(BaseModel):
    slots: list[WeeklySlot]


class WeeklyAvailabilityRead(WeeklySlot):
    id: int
    professional_id: int

    model_config = {"from_attributes": True}


class DateOverrideCreate(TimeWindow):
    override_date: date


class DateOverrideRead(DateOverrideCreate):
    id: int
    professional_id: int

    model_config = {"from_attributes": True}


class BlockedDayCreate(BaseModel):
    professional_id: int | None = None  # None blocks every professional
    blocked_date: date
    reason: str | None = Field(default=None, max_length=255)


class BlockedDayRead(BlockedDayCreate):
    id: int
    created_at: datetime

    model_config = {"from_attributes": True}


class LegacyBlockedDayRow(BaseModel):
    """A row exported from the old blocked_days table."""

    professional_id: int | None = None
    blocked_date: date
    reason: str | None = None


class LegacyImportRequest(BaseModel):
    rows: list[LegacyBlockedDayRow]


class LegacyImportResponse(BaseModel):
    blocked_days_created: int
    overrides_created: int
    rows_skipped: int
    errors: list[str]
