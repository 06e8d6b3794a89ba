import sys
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from internhours.application import build_services
from internhours.core.errors import (
    AuthorizationError,
    ConflictError,
    LimitError,
    NotFoundError,
    StaleEntryError,
    StateError,
    ValidationError,
)
from internhours.core.settings import Settings
from internhours.core.transitions import EntryStatus, Role
from internhours.core.weeks import WeekState
from internhours.domain import Actor

TODAY = date(2024, 5, 15)
MONDAY = date(2024, 5, 13)

STUDENT = Actor("stu-1", Role.STUDENT)
OTHER_STUDENT = Actor("stu-2", Role.STUDENT)
COMPANY = Actor("acme", Role.COMPANY)
OTHER_COMPANY = Actor("globex", Role.COMPANY)
DEAN = Actor("dean", Role.ADMINISTRATOR)


@pytest.fixture()
def services():
    svc = build_services(Settings(), today=lambda: TODAY)
    svc.directory.register("stu-1", company_id="acme")
    svc.directory.register("stu-2", company_id="globex", required_hours=200)
    svc.directory.register("stu-3")
    return svc


def _log(svc, day, actor=STUDENT, time_in="09:00", time_out="17:00", break_minutes=60):
    return svc.timesheets.create_entry(
        actor, entry_date=day, time_in=time_in, time_out=time_out, break_minutes=break_minutes
    )


def test_create_entry_computes_hours_and_starts_pending(services):
    entry = _log(services, MONDAY)
    assert entry.status is EntryStatus.PENDING
    assert entry.total_hours == Decimal("7.00")
    assert entry.company_id == "acme"
    assert entry.time_in == "09:00"


def test_create_entry_defaults_to_today(services):
    entry = services.timesheets.create_entry(STUDENT, time_in="22:00", time_out="6:00", break_minutes=30)
    assert entry.entry_date == TODAY
    assert entry.total_hours == Decimal("7.50")
    assert entry.time_out == "06:00"


def test_second_entry_for_same_day_conflicts(services):
    _log(services, MONDAY)
    with pytest.raises(ConflictError):
        _log(services, MONDAY, time_in="10:00")


def test_concurrent_duplicate_creation_yields_exactly_one_entry(services):
    def attempt(_):
        try:
            return _log(services, MONDAY)
        except ConflictError:
            return None

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(attempt, range(16)))

    assert sum(1 for item in results if item is not None) == 1
    assert len(services.timesheets.list_entries(STUDENT)) == 1


def test_future_dates_and_unassigned_students_are_rejected(services):
    with pytest.raises(ValidationError):
        _log(services, TODAY + timedelta(days=1))
    with pytest.raises(ValidationError) as excinfo:
        _log(services, MONDAY, actor=Actor("stu-3", Role.STUDENT))
    assert excinfo.value.message == "no company assigned yet"


@pytest.mark.parametrize("value", ["2024-05-13garbage", "2024-5-13x", "13/05/2024"])
def test_malformed_entry_dates_are_rejected(services, value):
    with pytest.raises(ValidationError):
        _log(services, value)
    assert services.timesheets.list_entries(STUDENT) == []


def test_company_status_request_without_hour_edit_keeps_entry(services):
    entry = _log(services, MONDAY)
    services.timesheets.update_entry(STUDENT, entry.entry_id, {"status": "submitted_to_company"})
    with pytest.raises(StateError):
        services.timesheets.update_entry(COMPANY, entry.entry_id, {"status": "edited_by_company"})
    with pytest.raises(StateError):
        services.timesheets.update_entry(
            COMPANY, entry.entry_id, {"time_in": "10:00", "status": "company_approved"}
        )
    unchanged = services.timesheets.get_entry(COMPANY, entry.entry_id)
    assert unchanged.status is EntryStatus.SUBMITTED_TO_COMPANY
    assert unchanged.time_in == "09:00"
    assert unchanged.total_hours == Decimal("7.00")


def test_only_registered_students_create_entries(services):
    with pytest.raises(AuthorizationError):
        _log(services, MONDAY, actor=COMPANY)
    with pytest.raises(NotFoundError):
        _log(services, MONDAY, actor=Actor("ghost", Role.STUDENT))


def test_seven_logged_days_fill_a_week(services):
    last_monday = MONDAY - timedelta(weeks=1)
    for offset in range(7):
        _log(services, last_monday + timedelta(days=offset))
    week = services.timesheets.week_view(STUDENT, "stu-1", 1)
    assert len(week.entries) == 7
    assert week.total_hours == Decimal("49.00")


def test_week_limit_error(services, monkeypatch):
    monkeypatch.setattr("internhours.application.timesheets.MAX_ENTRIES_PER_WEEK", 2)
    _log(services, MONDAY)
    _log(services, MONDAY + timedelta(days=1))
    with pytest.raises(LimitError) as excinfo:
        _log(services, MONDAY + timedelta(days=2))
    assert excinfo.value.to_dict()["code"] == "week_full"


def test_student_edit_recomputes_hours(services):
    entry = _log(services, MONDAY)
    updated = services.timesheets.update_entry(STUDENT, entry.entry_id, {"time_out": "18:00"})
    assert updated.total_hours == Decimal("8.00")
    assert updated.status is EntryStatus.PENDING


def test_declined_entry_returns_to_pending_after_student_fix(services):
    entry = _log(services, MONDAY)
    services.timesheets.update_entry(STUDENT, entry.entry_id, {"status": "submitted_to_company"})
    services.timesheets.review_entry(COMPANY, entry.entry_id, "company_declined", "lunch was an hour")
    fixed = services.timesheets.update_entry(STUDENT, entry.entry_id, {"break_minutes": 90})
    assert fixed.status is EntryStatus.PENDING
    assert fixed.total_hours == Decimal("6.50")
    assert fixed.company_notes == "lunch was an hour"


def test_company_edit_marks_entry_and_can_then_approve(services):
    entry = _log(services, MONDAY)
    services.timesheets.update_entry(STUDENT, entry.entry_id, {"status": "submitted_to_company"})
    edited = services.timesheets.update_entry(COMPANY, entry.entry_id, {"time_in": "10:00", "notes": "arrived late"})
    assert edited.status is EntryStatus.EDITED_BY_COMPANY
    assert edited.total_hours == Decimal("6.00")
    assert edited.company_notes == "arrived late"
    approved = services.timesheets.review_entry(COMPANY, entry.entry_id, EntryStatus.COMPANY_APPROVED)
    assert approved.status is EntryStatus.COMPANY_APPROVED


def test_administrator_cannot_approve_pending_entry(services):
    entry = _log(services, MONDAY)
    with pytest.raises(StateError) as excinfo:
        services.timesheets.review_entry(DEAN, entry.entry_id, "dean_approved")
    assert not isinstance(excinfo.value, StaleEntryError)
    assert services.timesheets.get_entry(DEAN, entry.entry_id).status is EntryStatus.PENDING


def test_other_company_has_no_standing(services):
    entry = _log(services, MONDAY)
    services.timesheets.update_entry(STUDENT, entry.entry_id, {"status": "submitted_to_company"})
    with pytest.raises(AuthorizationError):
        services.timesheets.review_entry(OTHER_COMPANY, entry.entry_id, "company_approved")
    with pytest.raises(AuthorizationError):
        services.timesheets.get_entry(OTHER_STUDENT, entry.entry_id)


def test_stale_compare_and_set_is_reported(services):
    entry = _log(services, MONDAY)
    services.timesheets.update_entry(STUDENT, entry.entry_id, {"status": "submitted_to_company"})
    # another reviewer approves between our read and our write
    original_find_one = services.entries.find_one

    def stale_read(criteria):
        found = original_find_one(criteria)
        services.entries.update_one_conditional(
            entry.entry_id, EntryStatus.SUBMITTED_TO_COMPANY, {"status": EntryStatus.COMPANY_APPROVED}
        )
        return found

    services.entries.find_one = stale_read
    with pytest.raises(StaleEntryError) as excinfo:
        services.timesheets.review_entry(COMPANY, entry.entry_id, "company_declined")
    assert excinfo.value.current is EntryStatus.COMPANY_APPROVED
    assert excinfo.value.to_dict()["code"] == "stale_state"


def test_empty_update_and_unknown_entry(services):
    entry = _log(services, MONDAY)
    with pytest.raises(ValidationError):
        services.timesheets.update_entry(STUDENT, entry.entry_id, {"notes": None})
    with pytest.raises(NotFoundError):
        services.timesheets.update_entry(STUDENT, "missing", {"time_in": "08:00"})


def test_list_entries_scoped_and_most_recent_first(services):
    _log(services, MONDAY)
    _log(services, MONDAY + timedelta(days=1))
    _log(services, MONDAY, actor=OTHER_STUDENT)

    own = services.timesheets.list_entries(STUDENT)
    assert [entry.entry_date for entry in own] == [MONDAY + timedelta(days=1), MONDAY]
    assert {entry.student_id for entry in services.timesheets.list_entries(COMPANY)} == {"stu-1"}
    assert len(services.timesheets.list_entries(DEAN)) == 3
    with pytest.raises(AuthorizationError):
        services.timesheets.list_entries(OTHER_COMPANY, student_id="stu-1")


def test_review_queues_follow_role(services):
    first = _log(services, MONDAY)
    _log(services, MONDAY + timedelta(days=1))
    services.timesheets.update_entry(STUDENT, first.entry_id, {"status": "submitted_to_company"})

    queue = services.timesheets.review_queue(COMPANY)
    assert [entry.entry_id for entry in queue] == [first.entry_id]
    assert services.timesheets.review_queue(DEAN) == []
    with pytest.raises(AuthorizationError):
        services.timesheets.review_queue(STUDENT)


def test_week_view_and_listing(services):
    _log(services, MONDAY)
    _log(services, MONDAY - timedelta(weeks=1))

    current = services.timesheets.week_view(STUDENT, "stu-1", 0)
    assert current.start == MONDAY
    assert current.state is WeekState.DRAFT
    assert current.total_hours == Decimal("7.00")
    empty = services.timesheets.week_view(COMPANY, "stu-1", 5)
    assert empty.entries == [] and empty.state is WeekState.DRAFT
    with pytest.raises(ValidationError):
        services.timesheets.week_view(STUDENT, "stu-1", -1)

    weeks = services.timesheets.list_weeks(DEAN, "stu-1")
    assert [week.number for week in weeks] == [2, 1]


def test_progress_counts_only_dean_approved_hours(services):
    entry = _log(services, MONDAY)
    _log(services, MONDAY + timedelta(days=1))
    services.entries.update_one_conditional(entry.entry_id, EntryStatus.PENDING, {"status": EntryStatus.DEAN_APPROVED})

    progress = services.timesheets.progress(STUDENT, "stu-1")
    assert progress.total_required == Decimal("500")
    assert progress.total_rendered == Decimal("7.00")
    assert progress.remaining_hours == Decimal("493.00")
    assert progress.progress_percentage == Decimal("1.40")

    other = services.timesheets.progress(DEAN, "stu-2")
    assert other.total_required == Decimal("200")
    assert other.total_rendered == Decimal("0.00")
