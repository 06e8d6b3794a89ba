"""SQLAlchemy-backed store adapters.

Uniqueness of (student, day) and (student, week) is a table constraint, and
every transition is a single ``UPDATE ... WHERE status = :expected``, so
concurrent requests resolve inside the database.
"""
from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
    and_,
    create_engine,
    insert,
    select,
    true,
    update,
)
from sqlalchemy.engine import Engine, RowMapping
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from internhours.core.errors import ConflictError, StoreError
from internhours.core.transitions import EntryStatus, LogbookStatus
from internhours.domain import Attachment, LogbookEntry, TimesheetEntry
from internhours.infrastructure.entries import EntryFilter, EntrySort, NoopResult, check_patch
from internhours.infrastructure.logbooks import LogbookFilter, LogbookNoop

logger = logging.getLogger(__name__)

metadata = MetaData()

timesheet_entries = Table(
    "timesheet_entries",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("student_id", String(64), nullable=False, index=True),
    Column("company_id", String(64), nullable=False, index=True),
    Column("entry_date", Date, nullable=False),
    Column("time_in", String(5), nullable=False),
    Column("time_out", String(5), nullable=False),
    Column("break_minutes", Integer, nullable=False, default=0),
    Column("total_hours", Numeric(6, 2), nullable=False, default=Decimal("0.00")),
    Column("status", String(32), nullable=False, default=EntryStatus.PENDING.value, index=True),
    Column("company_notes", Text, nullable=False, default=""),
    Column("dean_notes", Text, nullable=False, default=""),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("student_id", "entry_date", name="uq_entry_student_day"),
)

logbooks = Table(
    "logbooks",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("student_id", String(64), nullable=False, index=True),
    Column("week_number", Integer, nullable=True),
    Column("week_start", Date, nullable=False),
    Column("week_end", Date, nullable=False),
    Column("duties_and_responsibilities", Text, nullable=False),
    Column("new_things_learned", Text, nullable=False),
    Column("problems_encountered", Text, nullable=False),
    Column("solutions_implemented", Text, nullable=False),
    Column("accomplishments_and_deliverables", Text, nullable=False),
    Column("goals_for_next_week", Text, nullable=False),
    Column("attachments", JSON, nullable=False, default=list),
    Column("status", String(16), nullable=False, default=LogbookStatus.PENDING.value, index=True),
    Column("feedback", Text, nullable=False, default=""),
    Column("created_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("student_id", "week_start", name="uq_logbook_student_week"),
)


def build_engine(url: str) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""

    if url.startswith("sqlite") and ":memory:" in url:
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    return create_engine(url, pool_pre_ping=True)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _serialise(patch: dict[str, Any]) -> dict[str, Any]:
    return {key: getattr(value, "value", value) if key == "status" else value for key, value in patch.items()}


def _to_entry(row: RowMapping) -> TimesheetEntry:
    return TimesheetEntry(
        entry_id=row["id"],
        student_id=row["student_id"],
        company_id=row["company_id"],
        entry_date=row["entry_date"],
        time_in=row["time_in"],
        time_out=row["time_out"],
        break_minutes=row["break_minutes"],
        total_hours=Decimal(str(row["total_hours"])).quantize(Decimal("0.01")),
        status=EntryStatus(row["status"]),
        company_notes=row["company_notes"],
        dean_notes=row["dean_notes"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _entry_clause(criteria: EntryFilter):
    table = timesheet_entries
    clauses = []
    if criteria.entry_id is not None:
        clauses.append(table.c.id == criteria.entry_id)
    if criteria.student_id is not None:
        clauses.append(table.c.student_id == criteria.student_id)
    if criteria.company_id is not None:
        clauses.append(table.c.company_id == criteria.company_id)
    if criteria.statuses is not None:
        clauses.append(table.c.status.in_(sorted(status.value for status in criteria.statuses)))
    if criteria.date_from is not None:
        clauses.append(table.c.entry_date >= criteria.date_from)
    if criteria.date_to is not None:
        clauses.append(table.c.entry_date < criteria.date_to)
    return and_(true(), *clauses)


class SqlEntryRepository:
    """Entry store adapter over any SQLAlchemy engine."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        metadata.create_all(engine, tables=[timesheet_entries])

    def _fail(self, operation: str, **context: Any) -> StoreError:
        logger.exception("timesheet store failure during %s: %s", operation, context)
        return StoreError(f"{operation} failed")

    def insert_if_absent(self, student_id: str, entry_date: date, fields: dict[str, Any]) -> TimesheetEntry:
        now = _now()
        values = {
            "id": uuid.uuid4().hex,
            "student_id": student_id,
            "entry_date": entry_date,
            "created_at": now,
            "updated_at": now,
            "company_notes": "",
            "dean_notes": "",
            **_serialise(fields),
        }
        try:
            with self._engine.begin() as conn:
                conn.execute(insert(timesheet_entries).values(**values))
                row = conn.execute(select(timesheet_entries).where(timesheet_entries.c.id == values["id"])).mappings().one()
        except IntegrityError as exc:
            raise ConflictError(
                "an entry for this day already exists",
                student_id=student_id,
                date=entry_date.isoformat(),
            ) from exc
        except SQLAlchemyError as exc:
            raise self._fail("insert", student_id=student_id, date=entry_date.isoformat()) from exc
        return _to_entry(row)

    def find_one(self, criteria: EntryFilter) -> TimesheetEntry | None:
        try:
            with self._engine.connect() as conn:
                row = conn.execute(select(timesheet_entries).where(_entry_clause(criteria)).limit(1)).mappings().first()
        except SQLAlchemyError as exc:
            raise self._fail("find_one", criteria=criteria) from exc
        return _to_entry(row) if row is not None else None

    def find_many(self, criteria: EntryFilter, sort: EntrySort = EntrySort.DATE_DESC) -> list[TimesheetEntry]:
        column = timesheet_entries.c.entry_date
        order = column.desc() if sort is EntrySort.DATE_DESC else column.asc()
        try:
            with self._engine.connect() as conn:
                rows = conn.execute(select(timesheet_entries).where(_entry_clause(criteria)).order_by(order)).mappings().all()
        except SQLAlchemyError as exc:
            raise self._fail("find_many", criteria=criteria) from exc
        return [_to_entry(row) for row in rows]

    def update_one_conditional(
        self,
        entry_id: str,
        expected_status: EntryStatus,
        patch: dict[str, Any],
    ) -> TimesheetEntry | NoopResult:
        check_patch(patch)
        table = timesheet_entries
        values = {**_serialise(patch), "updated_at": _now()}
        try:
            with self._engine.begin() as conn:
                result = conn.execute(
                    update(table)
                    .where(table.c.id == entry_id, table.c.status == expected_status.value)
                    .values(**values)
                )
                row = conn.execute(select(table).where(table.c.id == entry_id)).mappings().first()
        except SQLAlchemyError as exc:
            raise self._fail("update_one", entry_id=entry_id) from exc
        if row is None:
            return NoopResult(entry_id=entry_id, expected_status=expected_status)
        if result.rowcount == 0:
            return NoopResult(entry_id=entry_id, expected_status=expected_status, actual_status=EntryStatus(row["status"]))
        return _to_entry(row)

    def update_many_conditional(self, criteria: EntryFilter, patch: dict[str, Any]) -> int:
        check_patch(patch)
        values = {**_serialise(patch), "updated_at": _now()}
        try:
            with self._engine.begin() as conn:
                result = conn.execute(update(timesheet_entries).where(_entry_clause(criteria)).values(**values))
        except SQLAlchemyError as exc:
            raise self._fail("update_many", criteria=criteria) from exc
        return result.rowcount

    def reset(self) -> None:
        with self._engine.begin() as conn:
            conn.execute(timesheet_entries.delete())


def _to_logbook(row: RowMapping) -> LogbookEntry:
    return LogbookEntry(
        logbook_id=row["id"],
        student_id=row["student_id"],
        week_number=row["week_number"],
        week_start=row["week_start"],
        week_end=row["week_end"],
        duties_and_responsibilities=row["duties_and_responsibilities"],
        new_things_learned=row["new_things_learned"],
        problems_encountered=row["problems_encountered"],
        solutions_implemented=row["solutions_implemented"],
        accomplishments_and_deliverables=row["accomplishments_and_deliverables"],
        goals_for_next_week=row["goals_for_next_week"],
        attachments=[Attachment(**item) for item in row["attachments"] or []],
        status=LogbookStatus(row["status"]),
        feedback=row["feedback"],
        created_at=row["created_at"],
    )


def _logbook_clause(criteria: LogbookFilter):
    clauses = []
    if criteria.logbook_id is not None:
        clauses.append(logbooks.c.id == criteria.logbook_id)
    if criteria.student_id is not None:
        clauses.append(logbooks.c.student_id == criteria.student_id)
    if criteria.statuses is not None:
        clauses.append(logbooks.c.status.in_(sorted(status.value for status in criteria.statuses)))
    return and_(true(), *clauses)


class SqlLogbookRepository:
    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        metadata.create_all(engine, tables=[logbooks])

    def insert_if_absent(self, student_id: str, week_start: date, fields: dict[str, Any]) -> LogbookEntry:
        values = {
            "id": uuid.uuid4().hex,
            "student_id": student_id,
            "week_start": week_start,
            "created_at": _now(),
            "feedback": "",
            **_serialise(fields),
        }
        values["attachments"] = [
            {"file_url": item.file_url, "file_type": item.file_type, "original_name": item.original_name}
            for item in values.get("attachments", [])
        ]
        try:
            with self._engine.begin() as conn:
                conn.execute(insert(logbooks).values(**values))
                row = conn.execute(select(logbooks).where(logbooks.c.id == values["id"])).mappings().one()
        except IntegrityError as exc:
            raise ConflictError(
                "a logbook for this week already exists",
                student_id=student_id,
                week_start=week_start.isoformat(),
            ) from exc
        except SQLAlchemyError as exc:
            logger.exception("logbook insert failed for student %s week %s", student_id, week_start)
            raise StoreError("insert failed") from exc
        return _to_logbook(row)

    def find_one(self, criteria: LogbookFilter) -> LogbookEntry | None:
        try:
            with self._engine.connect() as conn:
                row = conn.execute(select(logbooks).where(_logbook_clause(criteria)).limit(1)).mappings().first()
        except SQLAlchemyError as exc:
            logger.exception("logbook lookup failed: %s", criteria)
            raise StoreError("find_one failed") from exc
        return _to_logbook(row) if row is not None else None

    def find_many(self, criteria: LogbookFilter) -> list[LogbookEntry]:
        try:
            with self._engine.connect() as conn:
                rows = conn.execute(
                    select(logbooks)
                    .where(_logbook_clause(criteria))
                    .order_by(logbooks.c.week_start.desc(), logbooks.c.created_at.desc())
                ).mappings().all()
        except SQLAlchemyError as exc:
            logger.exception("logbook listing failed: %s", criteria)
            raise StoreError("find_many failed") from exc
        return [_to_logbook(row) for row in rows]

    def update_one_conditional(
        self,
        logbook_id: str,
        expected_status: LogbookStatus,
        patch: dict[str, Any],
    ) -> LogbookEntry | LogbookNoop:
        try:
            with self._engine.begin() as conn:
                result = conn.execute(
                    update(logbooks)
                    .where(logbooks.c.id == logbook_id, logbooks.c.status == expected_status.value)
                    .values(**_serialise(patch))
                )
                row = conn.execute(select(logbooks).where(logbooks.c.id == logbook_id)).mappings().first()
        except SQLAlchemyError as exc:
            logger.exception("logbook update failed for %s", logbook_id)
            raise StoreError("update_one failed") from exc
        if row is None:
            return LogbookNoop(logbook_id=logbook_id, expected_status=expected_status)
        if result.rowcount == 0:
            return LogbookNoop(logbook_id=logbook_id, expected_status=expected_status, actual_status=LogbookStatus(row["status"]))
        return _to_logbook(row)

    def reset(self) -> None:
        with self._engine.begin() as conn:
            conn.execute(logbooks.delete())
