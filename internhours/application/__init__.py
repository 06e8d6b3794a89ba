"""Application services."""

from .bulk import BulkOutcome, BulkTransitionResult, BulkTransitionService
from .logbooks import LogbookService
from .timesheets import HoursProgress, TimesheetService
from .wiring import Services, build_services, configure_services, get_services, reset_state

__all__ = [
    "BulkOutcome",
    "BulkTransitionResult",
    "BulkTransitionService",
    "HoursProgress",
    "LogbookService",
    "Services",
    "TimesheetService",
    "build_services",
    "configure_services",
    "get_services",
    "reset_state",
]
