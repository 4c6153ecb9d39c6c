from staffbook.models.appointment import Appointment, SpecialtyBlock
from staffbook.models.availability import BlockedDay, DateOverride, WeeklyAvailability
from staffbook.models.professional import Professional, ProfessionalSpecialty, Specialty
from staffbook.models.user import User

__all__ = [
    "Appointment",
    "BlockedDay",
    "DateOverride",
    "Professional",
    "ProfessionalSpecialty",
    "Specialty",
    "SpecialtyBlock",
    "User",
    "WeeklyAvailability",
]
