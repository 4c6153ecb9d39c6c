"""Typed refusals for expected business-rule outcomes."""

from datetime import date
from enum import Enum


class RefusalReason(str, Enum):
    OUT_OF_WINDOW = "OUT_OF_WINDOW"
    DATE_BLOCKED = "DATE_BLOCKED"
    HOLIDAY = "HOLIDAY"
    NO_WEEKLY_MATCH = "NO_WEEKLY_MATCH"
    SLOT_TAKEN = "SLOT_TAKEN"
    SLOT_UNAVAILABLE = "SLOT_UNAVAILABLE"
    MONTHLY_LIMIT = "MONTHLY_LIMIT"
    SPECIALTY_SUSPENDED = "SPECIALTY_SUSPENDED"
    ACCOUNT_SUSPENDED = "ACCOUNT_SUSPENDED"
    ACCOUNT_BLOCKED = "ACCOUNT_BLOCKED"
    PENALTY_CONFIRMATION_REQUIRED = "PENALTY_CONFIRMATION_REQUIRED"


MESSAGES: dict[RefusalReason, str] = {
    RefusalReason.OUT_OF_WINDOW: "This date is outside the booking window.",
    RefusalReason.DATE_BLOCKED: "This date is blocked for the selected professional.",
    RefusalReason.HOLIDAY: "This date is a national holiday.",
    RefusalReason.NO_WEEKLY_MATCH: "The professional does not work on this weekday.",
    RefusalReason.SLOT_TAKEN: "This time was just booked. Please choose another one.",
    RefusalReason.SLOT_UNAVAILABLE: "This time is not available on the selected date.",
    RefusalReason.MONTHLY_LIMIT: "You already have an appointment for this specialty this month.",
    RefusalReason.SPECIALTY_SUSPENDED: "You are suspended from booking this specialty.",
    RefusalReason.ACCOUNT_SUSPENDED: "Your account is suspended.",
    RefusalReason.ACCOUNT_BLOCKED: "Your account is blocked.",
    RefusalReason.PENALTY_CONFIRMATION_REQUIRED: (
        "Cancelling on the appointment day suspends this specialty for 60 days. "
        "Confirm the penalty to proceed."
    ),
}

# Refusals about who is booking rather than what is being booked.
FORBIDDEN_REASONS = frozenset(
    {
        RefusalReason.SPECIALTY_SUSPENDED,
        RefusalReason.ACCOUNT_SUSPENDED,
        RefusalReason.ACCOUNT_BLOCKED,
    }
)


class BookingRefused(Exception):
    """A booking or cancellation was refused by a business rule."""

    def __init__(
        self,
        reason: RefusalReason,
        message: str | None = None,
        conflicting_date: date | None = None,
    ) -> None:
        self.reason = reason
        self.message = message or MESSAGES[reason]
        self.conflicting_date = conflicting_date
        super().__init__(f"{reason.value}: {self.message}")

    @property
    def status_code(self) -> int:
        return 403 if self.reason in FORBIDDEN_REASONS else 409

    def to_dict(self) -> dict[str, str | None]:
        return {
            "reason": self.reason.value,
            "message": self.message,
            "conflicting_date": (
                self.conflicting_date.isoformat() if self.conflicting_date else None
            ),
        }
