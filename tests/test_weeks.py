import itertools
import sys
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from internhours.core.transitions import EntryStatus
from internhours.core.weeks import (
    WeekState,
    aggregate_week_state,
    build_week,
    group_by_week,
    week_for_index,
    week_range,
)
from internhours.domain import TimesheetEntry

S = EntryStatus


def _entry(day: date, status: EntryStatus = S.PENDING, hours: str = "8.00") -> TimesheetEntry:
    return TimesheetEntry(
        entry_id=f"e-{day.isoformat()}",
        student_id="stu-1",
        company_id="acme",
        entry_date=day,
        time_in="09:00",
        time_out="17:00",
        total_hours=Decimal(hours),
        status=status,
    )


@pytest.mark.parametrize(
    "statuses, expected",
    [
        ([], WeekState.DRAFT),
        ([S.COMPANY_APPROVED, S.COMPANY_APPROVED, S.COMPANY_DECLINED], WeekState.NEEDS_STUDENT),
        ([S.DEAN_APPROVED, S.COMPANY_DECLINED], WeekState.NEEDS_STUDENT),
        ([S.DEAN_APPROVED, S.DEAN_APPROVED], WeekState.LOCKED),
        ([S.DEAN_APPROVED, S.SUBMITTED_TO_DEAN], WeekState.DEAN_REVIEW),
        ([S.DEAN_DECLINED, S.COMPANY_APPROVED], WeekState.DEAN_REVIEW),
        ([S.COMPANY_APPROVED, S.COMPANY_APPROVED], WeekState.READY_FOR_DEAN),
        ([S.COMPANY_APPROVED, S.SUBMITTED_TO_COMPANY], WeekState.COMPANY_REVIEW),
        ([S.PENDING, S.EDITED_BY_COMPANY], WeekState.COMPANY_REVIEW),
        ([S.PENDING, S.COMPANY_APPROVED], WeekState.DRAFT),
        ([S.PENDING], WeekState.DRAFT),
    ],
)
def test_aggregate_precedence(statuses, expected):
    assert aggregate_week_state(statuses) is expected


def test_aggregate_ignores_entry_order():
    statuses = [S.COMPANY_APPROVED, S.SUBMITTED_TO_COMPANY, S.PENDING, S.DEAN_APPROVED]
    results = {aggregate_week_state(order) for order in itertools.permutations(statuses)}
    assert results == {WeekState.COMPANY_REVIEW}


def test_aggregate_accepts_raw_status_strings():
    assert aggregate_week_state(["dean_approved", "dean_approved"]) is WeekState.LOCKED


def test_week_range_runs_monday_to_sunday():
    window = week_range(date(2024, 5, 15))
    assert window.start == date(2024, 5, 13)
    assert window.end == date(2024, 5, 20)
    assert date(2024, 5, 19) in window
    assert date(2024, 5, 20) not in window


def test_week_for_index_counts_back_from_current_week():
    today = date(2024, 5, 15)
    assert week_for_index(today, 0).start == date(2024, 5, 13)
    assert week_for_index(today, 2).start == date(2024, 4, 29)
    with pytest.raises(ValueError):
        week_for_index(today, -1)


def test_build_week_totals_and_orders_entries():
    monday = date(2024, 5, 13)
    week = build_week(
        "stu-1",
        week_range(monday),
        [
            _entry(monday + timedelta(days=2), S.DEAN_APPROVED, "7.50"),
            _entry(monday, S.DEAN_APPROVED, "8.00"),
            _entry(monday + timedelta(days=7)),
        ],
    )
    assert [entry.entry_date for entry in week.entries] == [monday, monday + timedelta(days=2)]
    assert week.total_hours == Decimal("15.50")
    assert week.approved_hours == Decimal("15.50")
    assert week.state is WeekState.LOCKED


def test_group_by_week_newest_first_with_stable_numbers():
    first = date(2024, 4, 1)
    entries = [
        _entry(first),
        _entry(first + timedelta(days=1)),
        _entry(first + timedelta(weeks=3), S.SUBMITTED_TO_COMPANY),
    ]
    weeks = group_by_week("stu-1", entries)
    assert [week.start for week in weeks] == [date(2024, 4, 22), date(2024, 4, 1)]
    assert [week.number for week in weeks] == [4, 1]
    assert weeks[0].state is WeekState.COMPANY_REVIEW
    assert len(weeks[1].entries) == 2


def test_group_by_week_empty():
    assert group_by_week("stu-1", []) == []
