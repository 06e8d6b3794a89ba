"""Domain layer definitions."""

from .entries import Actor, Attachment, DateRange, LogbookEntry, TimesheetEntry, WeekGroup

__all__ = [
    "Actor",
    "Attachment",
    "DateRange",
    "LogbookEntry",
    "TimesheetEntry",
    "WeekGroup",
]
