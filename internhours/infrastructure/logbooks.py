"""Store adapter for weekly logbooks."""
from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from typing import Any, Protocol

from internhours.core.errors import ConflictError
from internhours.core.transitions import LogbookStatus
from internhours.domain import LogbookEntry


@dataclass(frozen=True, slots=True)
class LogbookFilter:
    logbook_id: str | None = None
    student_id: str | None = None
    statuses: frozenset[LogbookStatus] | None = None

    def matches(self, logbook: LogbookEntry) -> bool:
        if self.logbook_id is not None and logbook.logbook_id != self.logbook_id:
            return False
        if self.student_id is not None and logbook.student_id != self.student_id:
            return False
        if self.statuses is not None and logbook.status not in self.statuses:
            return False
        return True


@dataclass(frozen=True, slots=True)
class LogbookNoop:
    logbook_id: str
    expected_status: LogbookStatus
    actual_status: LogbookStatus | None = None


class LogbookRepository(Protocol):
    """Persistence contract for logbooks."""

    def insert_if_absent(self, student_id: str, week_start: date, fields: dict[str, Any]) -> LogbookEntry: ...

    def find_one(self, criteria: LogbookFilter) -> LogbookEntry | None: ...

    def find_many(self, criteria: LogbookFilter) -> list[LogbookEntry]: ...

    def update_one_conditional(
        self,
        logbook_id: str,
        expected_status: LogbookStatus,
        patch: dict[str, Any],
    ) -> LogbookEntry | LogbookNoop: ...

    def reset(self) -> None: ...


class InMemoryLogbookRepository:
    """In-memory logbook store; ``find_many`` returns newest first."""

    def __init__(self) -> None:
        self._logbooks: dict[str, LogbookEntry] = {}
        self._by_week: dict[tuple[str, date], str] = {}
        self._lock = threading.Lock()

    def insert_if_absent(self, student_id: str, week_start: date, fields: dict[str, Any]) -> LogbookEntry:
        key = (student_id, week_start)
        with self._lock:
            if key in self._by_week:
                raise ConflictError(
                    "a logbook for this week already exists",
                    student_id=student_id,
                    week_start=week_start.isoformat(),
                )
            logbook = LogbookEntry(
                logbook_id=uuid.uuid4().hex,
                student_id=student_id,
                week_start=week_start,
                created_at=datetime.now(timezone.utc),
                **fields,
            )
            self._logbooks[logbook.logbook_id] = logbook
            self._by_week[key] = logbook.logbook_id
            return replace(logbook)

    def find_one(self, criteria: LogbookFilter) -> LogbookEntry | None:
        with self._lock:
            for logbook in self._logbooks.values():
                if criteria.matches(logbook):
                    return replace(logbook)
        return None

    def find_many(self, criteria: LogbookFilter) -> list[LogbookEntry]:
        with self._lock:
            rows = [replace(logbook) for logbook in self._logbooks.values() if criteria.matches(logbook)]
        rows.sort(key=lambda logbook: (logbook.week_start, logbook.created_at), reverse=True)
        return rows

    def update_one_conditional(
        self,
        logbook_id: str,
        expected_status: LogbookStatus,
        patch: dict[str, Any],
    ) -> LogbookEntry | LogbookNoop:
        with self._lock:
            logbook = self._logbooks.get(logbook_id)
            if logbook is None:
                return LogbookNoop(logbook_id=logbook_id, expected_status=expected_status)
            if logbook.status != expected_status:
                return LogbookNoop(logbook_id=logbook_id, expected_status=expected_status, actual_status=logbook.status)
            for name, value in patch.items():
                setattr(logbook, name, value)
            return replace(logbook)

    def reset(self) -> None:
        with self._lock:
            self._logbooks.clear()
            self._by_week.clear()
