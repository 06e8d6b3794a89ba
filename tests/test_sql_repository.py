import sys
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from internhours.application import BulkOutcome, build_services
from internhours.core.errors import ConflictError, StateError, StoreError
from internhours.core.settings import Settings
from internhours.core.transitions import EntryStatus, LogbookStatus, Role
from internhours.core.weeks import week_range
from internhours.domain import Actor, Attachment
from internhours.infrastructure import EntryFilter, EntrySort, LogbookFilter, LogbookNoop, NoopResult
from internhours.infrastructure.sql import SqlEntryRepository, SqlLogbookRepository, build_engine

TODAY = date(2024, 5, 15)
MONDAY = date(2024, 5, 13)


def _fields(**overrides):
    values = {
        "company_id": "acme",
        "time_in": "09:00",
        "time_out": "17:00",
        "break_minutes": 60,
        "total_hours": Decimal("7.00"),
        "status": EntryStatus.PENDING,
    }
    values.update(overrides)
    return values


@pytest.fixture()
def engine():
    engine = build_engine("sqlite:///:memory:")
    yield engine
    engine.dispose()


@pytest.fixture()
def entries(engine):
    return SqlEntryRepository(engine)


def test_insert_and_find_round_trip(entries):
    created = entries.insert_if_absent("stu-1", MONDAY, _fields())
    found = entries.find_one(EntryFilter(entry_id=created.entry_id))
    assert found.entry_date == MONDAY
    assert found.total_hours == Decimal("7.00")
    assert found.status is EntryStatus.PENDING
    assert found.company_notes == ""


def test_unique_day_is_enforced_by_the_table(entries):
    entries.insert_if_absent("stu-1", MONDAY, _fields())
    with pytest.raises(ConflictError):
        entries.insert_if_absent("stu-1", MONDAY, _fields(time_in="10:00"))
    entries.insert_if_absent("stu-2", MONDAY, _fields())
    assert len(entries.find_many(EntryFilter())) == 2


def test_find_many_filters_and_sorts(entries):
    for offset in range(3):
        entries.insert_if_absent("stu-1", MONDAY + timedelta(days=offset), _fields())
    entries.insert_if_absent("stu-1", MONDAY - timedelta(days=1), _fields(status=EntryStatus.COMPANY_APPROVED))

    window = week_range(MONDAY)
    in_week = entries.find_many(EntryFilter(student_id="stu-1", date_from=window.start, date_to=window.end), EntrySort.DATE_ASC)
    assert [entry.entry_date for entry in in_week] == [MONDAY, MONDAY + timedelta(days=1), MONDAY + timedelta(days=2)]

    approved = entries.find_many(EntryFilter(statuses=frozenset({EntryStatus.COMPANY_APPROVED})))
    assert [entry.entry_date for entry in approved] == [MONDAY - timedelta(days=1)]


def test_conditional_update_compares_status(entries):
    created = entries.insert_if_absent("stu-1", MONDAY, _fields())

    moved = entries.update_one_conditional(
        created.entry_id, EntryStatus.PENDING, {"status": EntryStatus.SUBMITTED_TO_COMPANY}
    )
    assert moved.status is EntryStatus.SUBMITTED_TO_COMPANY

    noop = entries.update_one_conditional(created.entry_id, EntryStatus.PENDING, {"status": EntryStatus.SUBMITTED_TO_COMPANY})
    assert isinstance(noop, NoopResult)
    assert noop.actual_status is EntryStatus.SUBMITTED_TO_COMPANY

    missing = entries.update_one_conditional("nope", EntryStatus.PENDING, {"status": EntryStatus.SUBMITTED_TO_COMPANY})
    assert missing.missing


def test_bulk_update_counts_matches(entries):
    for offset in range(3):
        entries.insert_if_absent("stu-1", MONDAY + timedelta(days=offset), _fields())
    criteria = EntryFilter(student_id="stu-1", statuses=frozenset({EntryStatus.PENDING}))
    assert entries.update_many_conditional(criteria, {"status": EntryStatus.SUBMITTED_TO_COMPANY}) == 3
    assert entries.update_many_conditional(criteria, {"status": EntryStatus.SUBMITTED_TO_COMPANY}) == 0


def test_patch_rejects_unknown_columns(entries):
    created = entries.insert_if_absent("stu-1", MONDAY, _fields())
    with pytest.raises(ValueError):
        entries.update_one_conditional(created.entry_id, EntryStatus.PENDING, {"student_id": "stu-9"})


def test_logbook_store(engine):
    store = SqlLogbookRepository(engine)
    fields = {
        "week_end": MONDAY + timedelta(days=6),
        "week_number": 2,
        "duties_and_responsibilities": "a",
        "new_things_learned": "b",
        "problems_encountered": "c",
        "solutions_implemented": "d",
        "accomplishments_and_deliverables": "e",
        "goals_for_next_week": "f",
        "attachments": [Attachment(file_url="https://files.example/a.png", original_name="a.png")],
        "status": LogbookStatus.PENDING,
    }
    created = store.insert_if_absent("stu-1", MONDAY, fields)
    assert created.attachments == [Attachment(file_url="https://files.example/a.png", original_name="a.png")]
    with pytest.raises(ConflictError):
        store.insert_if_absent("stu-1", MONDAY, fields)

    reviewed = store.update_one_conditional(
        created.logbook_id, LogbookStatus.PENDING, {"status": LogbookStatus.APPROVED, "feedback": "ok"}
    )
    assert reviewed.status is LogbookStatus.APPROVED
    again = store.update_one_conditional(created.logbook_id, LogbookStatus.PENDING, {"status": LogbookStatus.DECLINED})
    assert isinstance(again, LogbookNoop)
    assert store.find_many(LogbookFilter(statuses=frozenset({LogbookStatus.PENDING}))) == []


def test_services_run_unchanged_on_sql():
    services = build_services(Settings(database_url="sqlite:///:memory:"), today=lambda: TODAY)
    services.directory.register("stu-1", company_id="acme")
    student = Actor("stu-1", Role.STUDENT)
    company = Actor("acme", Role.COMPANY)

    first = services.timesheets.create_entry(student, entry_date=MONDAY, time_in="09:00", time_out="17:00", break_minutes=60)
    services.timesheets.create_entry(student, entry_date=MONDAY + timedelta(days=1), time_in="09:00", time_out="13:00")

    assert services.bulk.submit_week(student, "stu-1", week_range(TODAY)).affected_count == 2
    assert services.bulk.approve_all(company, "stu-1").affected_count == 2
    assert services.bulk.submit_to_dean(student, "stu-1").outcome is BulkOutcome.APPLIED

    dean = Actor("dean", Role.ADMINISTRATOR)
    services.timesheets.review_entry(dean, first.entry_id, "dean_approved", "verified")
    with pytest.raises(StateError):
        services.timesheets.review_entry(dean, first.entry_id, "dean_declined")
    assert services.timesheets.progress(student, "stu-1").total_rendered == Decimal("7.00")


def test_concurrent_duplicate_insert_keeps_one_row(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'entries.db'}")
    store = SqlEntryRepository(engine)

    def attempt(_):
        # sqlite may report a busy file under contention; StoreError is retryable
        for _ in range(50):
            try:
                return store.insert_if_absent("stu-1", MONDAY, _fields())
            except ConflictError:
                return None
            except StoreError as exc:
                assert exc.retryable
                time.sleep(0.01)
        raise AssertionError("insert never completed")

    try:
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(attempt, range(8)))
        assert sum(1 for item in results if item is not None) == 1
        assert len(store.find_many(EntryFilter(student_id="stu-1"))) == 1
    finally:
        engine.dispose()
