"""Domain entities for the hours approval workflow."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

from internhours.core.transitions import EntryStatus, LogbookStatus, Role

if TYPE_CHECKING:
    from internhours.core.weeks import WeekState


@dataclass(frozen=True, slots=True)
class Actor:
    """Authenticated caller as supplied by the identity provider."""

    actor_id: str
    role: Role


@dataclass(frozen=True, slots=True)
class DateRange:
    """Half-open calendar window ``[start, end)``."""

    start: date
    end: date

    def __contains__(self, day: date) -> bool:
        return self.start <= day < self.end

    @classmethod
    def week_of(cls, monday: date) -> "DateRange":
        return cls(start=monday, end=monday + timedelta(days=7))


@dataclass(slots=True)
class TimesheetEntry:
    """One calendar day of logged hours for a student."""

    entry_id: str
    student_id: str
    company_id: str
    entry_date: date
    time_in: str
    time_out: str
    break_minutes: int = 0
    total_hours: Decimal = Decimal("0.00")
    status: EntryStatus = EntryStatus.PENDING
    company_notes: str = ""
    dean_notes: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class Attachment:
    file_url: str
    file_type: str | None = None
    original_name: str | None = None


@dataclass(slots=True)
class LogbookEntry:
    """Weekly narrative log reviewed once by the administrator."""

    logbook_id: str
    student_id: str
    week_start: date
    week_end: date
    duties_and_responsibilities: str
    new_things_learned: str
    problems_encountered: str
    solutions_implemented: str
    accomplishments_and_deliverables: str
    goals_for_next_week: str
    week_number: int | None = None
    attachments: list[Attachment] = field(default_factory=list)
    status: LogbookStatus = LogbookStatus.PENDING
    feedback: str = ""
    created_at: datetime | None = None


@dataclass(slots=True)
class WeekGroup:
    """Monday-aligned window of a student's entries with its derived state."""

    student_id: str
    start: date
    end: date
    state: WeekState
    entries: list[TimesheetEntry] = field(default_factory=list)
    number: int | None = None
    total_hours: Decimal = Decimal("0.00")
    approved_hours: Decimal = Decimal("0.00")
