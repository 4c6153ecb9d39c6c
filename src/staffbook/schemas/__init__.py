from staffbook.schemas.appointment import (
    AppointmentCreate,
    AppointmentRead,
    AppointmentStatusUpdate,
    AvailableDatesRead,
    AvailableSlotsRead,
    CancellationRead,
    CancellationRequest,
    RefusalRead,
)
from staffbook.schemas.availability import (
    BlockedDayCreate,
    BlockedDayRead,
    DateOverrideCreate,
    DateOverrideRead,
    LegacyBlockedDayRow,
    LegacyImportRequest,
    LegacyImportResponse,
    TimeWindow,
    WeeklyAvailabilityRead,
    WeeklyAvailabilitySet,
    WeeklySlot,
)
from staffbook.schemas.professional import (
    BookableSpecialtyRead,
    ProfessionalCreate,
    ProfessionalRead,
    ProfessionalSummary,
    ProfessionalUpdate,
    SpecialtyCreate,
    SpecialtyRead,
    SpecialtyUpdate,
)
from staffbook.schemas.system import StatusResponse
from staffbook.schemas.user import (
    SpecialtyBlockRead,
    SuspensionCreate,
    SuspensionRead,
    UserCreate,
    UserRead,
    UserUpdate,
)

__all__ = [
    "AppointmentCreate",
    "AppointmentRead",
    "AppointmentStatusUpdate",
    "AvailableDatesRead",
    "AvailableSlotsRead",
    "BlockedDayCreate",
    "BlockedDayRead",
    "BookableSpecialtyRead",
    "CancellationRead",
    "CancellationRequest",
    "DateOverrideCreate",
    "DateOverrideRead",
    "LegacyBlockedDayRow",
    "LegacyImportRequest",
    "LegacyImportResponse",
    "ProfessionalCreate",
    "ProfessionalRead",
    "ProfessionalSummary",
    "ProfessionalUpdate",
    "RefusalRead",
    "SpecialtyBlockRead",
    "SpecialtyCreate",
    "SpecialtyRead",
    "SpecialtyUpdate",
    "StatusResponse",
    "SuspensionCreate",
    "SuspensionRead",
    "TimeWindow",
    "UserCreate",
    "UserRead",
    "UserUpdate",
    "WeeklyAvailabilityRead",
    "WeeklyAvailabilitySet",
    "WeeklySlot",
]
