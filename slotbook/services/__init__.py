"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability import AvailabilityReport, AvailabilityService
from .factory import Services, create_services
from .modification import BookingModificationService
from .protocols import CalendarClient, ScheduleSource

__all__ = [
    "AvailabilityReport",
    "AvailabilityService",
    "BookingModificationService",
    "CalendarClient",
    "ScheduleSource",
    "Services",
    "create_services",
]
