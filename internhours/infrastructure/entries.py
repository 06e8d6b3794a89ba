"""Store adapter contract for timesheet entries and its in-memory implementation."""
from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Protocol

from internhours.core.errors import ConflictError
from internhours.core.transitions import EntryStatus
from internhours.domain import TimesheetEntry

PATCHABLE_FIELDS: frozenset[str] = frozenset(
    {"time_in", "time_out", "break_minutes", "total_hours", "status", "company_notes", "dean_notes"}
)


@dataclass(frozen=True, slots=True)
class EntryFilter:
    """Conjunction of optional criteria; ``date_to`` is exclusive."""

    entry_id: str | None = None
    student_id: str | None = None
    company_id: str | None = None
    statuses: frozenset[EntryStatus] | None = None
    date_from: date | None = None
    date_to: date | None = None

    def matches(self, entry: TimesheetEntry) -> bool:
        if self.entry_id is not None and entry.entry_id != self.entry_id:
            return False
        if self.student_id is not None and entry.student_id != self.student_id:
            return False
        if self.company_id is not None and entry.company_id != self.company_id:
            return False
        if self.statuses is not None and entry.status not in self.statuses:
            return False
        if self.date_from is not None and entry.entry_date < self.date_from:
            return False
        if self.date_to is not None and entry.entry_date >= self.date_to:
            return False
        return True


class EntrySort(str, Enum):
    DATE_DESC = "date_desc"
    DATE_ASC = "date_asc"


@dataclass(frozen=True, slots=True)
class NoopResult:
    """Returned when a conditional update matched nothing."""

    entry_id: str
    expected_status: EntryStatus
    actual_status: EntryStatus | None = None

    @property
    def missing(self) -> bool:
        return self.actual_status is None


class EntryRepository(Protocol):
    """Persistence contract for timesheet entries."""

    def insert_if_absent(self, student_id: str, entry_date: date, fields: dict[str, Any]) -> TimesheetEntry: ...

    def find_one(self, criteria: EntryFilter) -> TimesheetEntry | None: ...

    def find_many(self, criteria: EntryFilter, sort: EntrySort = EntrySort.DATE_DESC) -> list[TimesheetEntry]: ...

    def update_one_conditional(
        self,
        entry_id: str,
        expected_status: EntryStatus,
        patch: dict[str, Any],
    ) -> TimesheetEntry | NoopResult: ...

    def update_many_conditional(self, criteria: EntryFilter, patch: dict[str, Any]) -> int: ...

    def reset(self) -> None: ...


def check_patch(patch: dict[str, Any]) -> None:
    unknown = set(patch) - PATCHABLE_FIELDS
    if unknown:
        raise ValueError(f"fields cannot be patched: {sorted(unknown)}")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryEntryRepository:
    """Lock-guarded in-memory store for fast iteration and tests.

    Each operation holds the lock for its whole match-and-write, which gives
    the same atomicity a unique index and conditional update give in SQL.
    """

    def __init__(self) -> None:
        self._entries: dict[str, TimesheetEntry] = {}
        self._by_day: dict[tuple[str, date], str] = {}
        self._lock = threading.Lock()

    def insert_if_absent(self, student_id: str, entry_date: date, fields: dict[str, Any]) -> TimesheetEntry:
        key = (student_id, entry_date)
        with self._lock:
            if key in self._by_day:
                raise ConflictError(
                    "an entry for this day already exists",
                    student_id=student_id,
                    date=entry_date.isoformat(),
                    entry_id=self._by_day[key],
                )
            now = _now()
            entry = TimesheetEntry(
                entry_id=uuid.uuid4().hex,
                student_id=student_id,
                entry_date=entry_date,
                created_at=now,
                updated_at=now,
                **fields,
            )
            self._entries[entry.entry_id] = entry
            self._by_day[key] = entry.entry_id
            return replace(entry)

    def find_one(self, criteria: EntryFilter) -> TimesheetEntry | None:
        with self._lock:
            if criteria.entry_id is not None:
                candidate = self._entries.get(criteria.entry_id)
                return replace(candidate) if candidate and criteria.matches(candidate) else None
            for entry in self._entries.values():
                if criteria.matches(entry):
                    return replace(entry)
        return None

    def find_many(self, criteria: EntryFilter, sort: EntrySort = EntrySort.DATE_DESC) -> list[TimesheetEntry]:
        with self._lock:
            rows = [replace(entry) for entry in self._entries.values() if criteria.matches(entry)]
        rows.sort(key=lambda entry: entry.entry_date, reverse=sort is EntrySort.DATE_DESC)
        return rows

    def update_one_conditional(
        self,
        entry_id: str,
        expected_status: EntryStatus,
        patch: dict[str, Any],
    ) -> TimesheetEntry | NoopResult:
        check_patch(patch)
        with self._lock:
            entry = self._entries.get(entry_id)
            if entry is None:
                return NoopResult(entry_id=entry_id, expected_status=expected_status)
            if entry.status != expected_status:
                return NoopResult(entry_id=entry_id, expected_status=expected_status, actual_status=entry.status)
            for name, value in patch.items():
                setattr(entry, name, value)
            entry.updated_at = _now()
            return replace(entry)

    def update_many_conditional(self, criteria: EntryFilter, patch: dict[str, Any]) -> int:
        check_patch(patch)
        with self._lock:
            matched = [entry for entry in self._entries.values() if criteria.matches(entry)]
            now = _now()
            for entry in matched:
                for name, value in patch.items():
                    setattr(entry, name, value)
                entry.updated_at = now
            return len(matched)

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()
            self._by_day.clear()
