from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from internhours.core.transitions import EntryStatus, LogbookStatus
from internhours.core.weeks import WeekState


class EntryCreate(BaseModel):
    entry_date: str | None = None
    time_in: str | None = None
    time_out: str | None = None
    break_minutes: int | None = 0


class EntryUpdate(BaseModel):
    time_in: str | None = None
    time_out: str | None = None
    break_minutes: int | None = None
    status: str | None = None
    notes: str | None = None


class ReviewRequest(BaseModel):
    decision: str
    notes: str | None = None


class SubmitWeekRequest(BaseModel):
    week_of: date | None = None
    week_index: int | None = Field(default=None, ge=0)


class SubmitToDeanRequest(BaseModel):
    week_of: date | None = None


class EntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    entry_id: str
    student_id: str
    company_id: str
    entry_date: date
    time_in: str
    time_out: str
    break_minutes: int
    total_hours: Decimal
    status: EntryStatus
    company_notes: str = ""
    dean_notes: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None


class WeekOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    student_id: str
    start: date
    end: date
    number: int | None = None
    state: WeekState
    total_hours: Decimal
    approved_hours: Decimal
    entries: list[EntryOut] = Field(default_factory=list)


class BulkResultOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    operation: str
    affected_count: int
    outcome: str


class ProgressOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    student_id: str
    total_required: Decimal
    total_rendered: Decimal
    remaining_hours: Decimal
    progress_percentage: Decimal


class AttachmentIn(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    file_url: str
    file_type: str | None = None
    original_name: str | None = None


class LogbookCreate(BaseModel):
    week_of: date | None = None
    week_number: int | None = None
    duties_and_responsibilities: str = ""
    new_things_learned: str = ""
    problems_encountered: str = ""
    solutions_implemented: str = ""
    accomplishments_and_deliverables: str = ""
    goals_for_next_week: str = ""
    attachments: list[AttachmentIn] = Field(default_factory=list)


class LogbookReview(BaseModel):
    decision: str
    feedback: str | None = None


class LogbookOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    logbook_id: str
    student_id: str
    week_number: int | None = None
    week_start: date
    week_end: date
    duties_and_responsibilities: str
    new_things_learned: str
    problems_encountered: str
    solutions_implemented: str
    accomplishments_and_deliverables: str
    goals_for_next_week: str
    attachments: list[AttachmentIn] = Field(default_factory=list)
    status: LogbookStatus
    feedback: str = ""
    created_at: datetime | None = None
