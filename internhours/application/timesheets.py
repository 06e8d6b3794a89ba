"""Application service for single timesheet entries and weekly views."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable

from internhours.core import permissions, transitions
from internhours.core.errors import (
    AuthorizationError,
    LimitError,
    NotFoundError,
    StaleEntryError,
    ValidationError,
)
from internhours.core.hours import compute_total_hours, format_clock, parse_clock, validate_break_minutes
from internhours.core.transitions import EntryStatus, Role
from internhours.core.weeks import MAX_ENTRIES_PER_WEEK, build_week, group_by_week, week_for_index, week_range
from internhours.domain import Actor, DateRange, TimesheetEntry, WeekGroup
from internhours.infrastructure import EntryFilter, EntryRepository, EntrySort, NoopResult, StudentDirectory

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class HoursProgress:
    student_id: str
    total_required: Decimal
    total_rendered: Decimal
    remaining_hours: Decimal
    progress_percentage: Decimal


def parse_date(value: date | str | None, *, field_name: str = "date") -> date | None:
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise ValidationError(f"{field_name} must be an ISO date (YYYY-MM-DD)", value=str(value)) from exc


def _normalise_clock(value: Any, field_name: str) -> str:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field_name} is required", field=field_name)
    return format_clock(parse_clock(value))


class TimesheetService:
    """Create, edit, review and read timesheet entries.

    Every single-record mutation runs the edit guard, then the transition
    graph, then one compare-and-set update against the status that was read.
    """

    def __init__(
        self,
        entries: EntryRepository,
        directory: StudentDirectory,
        *,
        today: Callable[[], date] = date.today,
        default_required_hours: Decimal = Decimal("500"),
    ) -> None:
        self._entries = entries
        self._directory = directory
        self._today = today
        self._default_required_hours = default_required_hours

    # ------------------------------------------------------------------
    # access helpers
    # ------------------------------------------------------------------
    def ensure_student_access(self, actor: Actor, student_id: str) -> None:
        """Raise unless ``actor`` may read or act on ``student_id``'s records."""

        if not self._directory.exists(student_id):
            raise NotFoundError("student not found", student_id=student_id)
        if actor.role is Role.ADMINISTRATOR:
            return
        if actor.role is Role.STUDENT and actor.actor_id == student_id:
            return
        if actor.role is Role.COMPANY and self._directory.assigned_company(student_id) == actor.actor_id:
            return
        raise AuthorizationError("actor has no standing on this student", role=actor.role, student_id=student_id)

    def _load(self, actor: Actor, entry_id: str) -> TimesheetEntry:
        entry = self._entries.find_one(EntryFilter(entry_id=entry_id))
        if entry is None:
            raise NotFoundError("entry not found", entry_id=entry_id)
        permissions.ensure_standing(actor, entry)
        return entry

    # ------------------------------------------------------------------
    # create / read
    # ------------------------------------------------------------------
    def create_entry(
        self,
        actor: Actor,
        *,
        entry_date: date | str | None = None,
        time_in: str,
        time_out: str,
        break_minutes: int | None = 0,
    ) -> TimesheetEntry:
        if actor.role is not Role.STUDENT:
            raise AuthorizationError("only students log hours", role=actor.role)
        student_id = actor.actor_id
        if not self._directory.exists(student_id):
            raise NotFoundError("student not found", student_id=student_id)

        today = self._today()
        day = parse_date(entry_date) or today
        permissions.ensure_not_future(day, today)

        clock_in = _normalise_clock(time_in, "time_in")
        clock_out = _normalise_clock(time_out, "time_out")
        minutes = validate_break_minutes(0 if break_minutes is None else break_minutes)

        company_id = self._directory.assigned_company(student_id)
        if not company_id:
            raise ValidationError("no company assigned yet", student_id=student_id)

        window = week_range(day)
        in_week = self._entries.find_many(EntryFilter(student_id=student_id, date_from=window.start, date_to=window.end))
        if len(in_week) >= MAX_ENTRIES_PER_WEEK:
            raise LimitError(
                f"maximum {MAX_ENTRIES_PER_WEEK} entries per week allowed",
                week_start=window.start.isoformat(),
            )

        entry = self._entries.insert_if_absent(
            student_id,
            day,
            {
                "company_id": company_id,
                "time_in": clock_in,
                "time_out": clock_out,
                "break_minutes": minutes,
                "total_hours": compute_total_hours(clock_in, clock_out, minutes),
                "status": EntryStatus.PENDING,
            },
        )
        logger.info("student %s logged %s hours for %s", student_id, entry.total_hours, day.isoformat())
        return entry

    def get_entry(self, actor: Actor, entry_id: str) -> TimesheetEntry:
        return self._load(actor, entry_id)

    def list_entries(
        self,
        actor: Actor,
        *,
        student_id: str | None = None,
        date_range: DateRange | None = None,
    ) -> list[TimesheetEntry]:
        """Entries visible to ``actor``, most recent first."""

        if student_id is not None:
            self.ensure_student_access(actor, student_id)
        elif actor.role is Role.STUDENT:
            student_id = actor.actor_id

        criteria = EntryFilter(
            student_id=student_id,
            company_id=actor.actor_id if actor.role is Role.COMPANY else None,
            date_from=date_range.start if date_range else None,
            date_to=date_range.end if date_range else None,
        )
        return self._entries.find_many(criteria, EntrySort.DATE_DESC)

    # ------------------------------------------------------------------
    # single-record mutation
    # ------------------------------------------------------------------
    def update_entry(self, actor: Actor, entry_id: str, changes: dict[str, Any]) -> TimesheetEntry:
        """Apply field edits and/or a status change to one entry."""

        changes = {key: value for key, value in changes.items() if value is not None}
        if not changes:
            raise ValidationError("no changes provided")

        entry = self._load(actor, entry_id)
        requested = transitions.parse_status(changes["status"]) if "status" in changes else None
        touched = set(changes)

        target = permissions.ensure_can_mutate(actor.role, entry.status, touched, requested_status=requested)

        patch: dict[str, Any] = {}
        if touched & permissions.TIME_FIELDS:
            if actor.role is Role.STUDENT:
                permissions.ensure_not_future(entry.entry_date, self._today())
            clock_in = _normalise_clock(changes.get("time_in", entry.time_in), "time_in")
            clock_out = _normalise_clock(changes.get("time_out", entry.time_out), "time_out")
            minutes = validate_break_minutes(changes.get("break_minutes", entry.break_minutes))
            patch.update(
                time_in=clock_in,
                time_out=clock_out,
                break_minutes=minutes,
                total_hours=compute_total_hours(clock_in, clock_out, minutes),
            )
        if "notes" in changes:
            notes_field = "dean_notes" if actor.role is Role.ADMINISTRATOR else "company_notes"
            patch[notes_field] = str(changes["notes"])
        if target != entry.status:
            patch["status"] = target

        result = self._entries.update_one_conditional(entry.entry_id, entry.status, patch)
        if isinstance(result, NoopResult):
            if result.missing:
                raise NotFoundError("entry not found", entry_id=entry_id)
            logger.warning(
                "entry %s changed from %s to %s before %s could update it",
                entry_id,
                entry.status.value,
                result.actual_status.value if result.actual_status else None,
                actor.actor_id,
            )
            raise StaleEntryError(
                "entry status changed since it was loaded; reload and retry",
                current=result.actual_status,
                requested=target,
                role=actor.role,
                entry_id=entry_id,
            )

        if target != entry.status:
            logger.info(
                "%s %s moved entry %s from %s to %s",
                actor.role.value,
                actor.actor_id,
                entry_id,
                entry.status.value,
                target.value,
            )
        return result

    def review_entry(
        self,
        actor: Actor,
        entry_id: str,
        decision: EntryStatus | str,
        notes: str | None = None,
    ) -> TimesheetEntry:
        """Approve or decline one entry (company or administrator)."""

        return self.update_entry(actor, entry_id, {"status": decision, "notes": notes})

    def review_queue(self, actor: Actor) -> list[TimesheetEntry]:
        """Entries waiting on the calling reviewer, oldest day first."""

        if actor.role is Role.STUDENT:
            raise AuthorizationError("students have no review queue", role=actor.role)
        waiting = transitions.sources_for(actor.role)
        criteria = EntryFilter(
            company_id=actor.actor_id if actor.role is Role.COMPANY else None,
            statuses=waiting,
        )
        return self._entries.find_many(criteria, EntrySort.DATE_ASC)

    # ------------------------------------------------------------------
    # weekly views and progress
    # ------------------------------------------------------------------
    def week_window(self, week_index: int = 0, week_of: date | str | None = None) -> DateRange:
        """Monday-to-Sunday window picked by a date inside it or by index (0 is this week)."""

        day = parse_date(week_of, field_name="week_of")
        if day is not None:
            return week_range(day)
        try:
            return week_for_index(self._today(), week_index)
        except ValueError as exc:
            raise ValidationError(str(exc), week_index=week_index) from exc

    def week_view(self, actor: Actor, student_id: str, week_index: int = 0) -> WeekGroup:
        self.ensure_student_access(actor, student_id)
        window = self.week_window(week_index)
        members = self._entries.find_many(
            EntryFilter(student_id=student_id, date_from=window.start, date_to=window.end),
            EntrySort.DATE_ASC,
        )
        return build_week(student_id, window, members)

    def list_weeks(self, actor: Actor, student_id: str) -> list[WeekGroup]:
        self.ensure_student_access(actor, student_id)
        return group_by_week(student_id, self._entries.find_many(EntryFilter(student_id=student_id)))

    def progress(self, actor: Actor, student_id: str) -> HoursProgress:
        """Dean-approved hours against the student's required total."""

        self.ensure_student_access(actor, student_id)
        approved = self._entries.find_many(
            EntryFilter(student_id=student_id, statuses=frozenset({EntryStatus.DEAN_APPROVED}))
        )
        rendered = sum((entry.total_hours for entry in approved), Decimal("0.00"))
        required = self._directory.required_hours(student_id) or self._default_required_hours
        remaining = max(Decimal("0.00"), required - rendered)
        percentage = (rendered / required * 100) if required else Decimal("0")
        return HoursProgress(
            student_id=student_id,
            total_required=required,
            total_rendered=rendered,
            remaining_hours=remaining,
            progress_percentage=percentage.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP),
        )
