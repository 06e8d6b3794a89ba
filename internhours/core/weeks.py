"""Weekly grouping and the aggregate workflow state of a week.

``aggregate_week_state`` is the only place that turns a week's entry statuses
into a label; reporting, the API and bulk eligibility checks all call it.
"""
from __future__ import annotations

from collections import Counter
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Iterable

from internhours.core.transitions import EntryStatus
from internhours.domain import DateRange, TimesheetEntry, WeekGroup

DAYS_PER_WEEK = 7
MAX_ENTRIES_PER_WEEK = DAYS_PER_WEEK


class WeekState(str, Enum):
    DRAFT = "draft"
    NEEDS_STUDENT = "needs_student"
    LOCKED = "locked"
    DEAN_REVIEW = "dean_review"
    READY_FOR_DEAN = "ready_for_dean"
    COMPANY_REVIEW = "company_review"


def aggregate_week_state(statuses: Iterable[EntryStatus | str]) -> WeekState:
    """Collapse a multiset of entry statuses into one week label.

    Rules are evaluated top to bottom and the first match wins:

    1. no entries -> ``draft``
    2. any ``company_declined`` -> ``needs_student``
    3. all ``dean_approved`` -> ``locked``
    4. any ``submitted_to_dean`` or ``dean_declined`` -> ``dean_review``
    5. all ``company_approved`` -> ``ready_for_dean``
    6. any ``submitted_to_company`` or ``edited_by_company`` -> ``company_review``
    7. otherwise -> ``draft``
    """

    counts = Counter(EntryStatus(status) for status in statuses)
    total = sum(counts.values())

    if total == 0:
        return WeekState.DRAFT
    if counts[EntryStatus.COMPANY_DECLINED]:
        return WeekState.NEEDS_STUDENT
    if counts[EntryStatus.DEAN_APPROVED] == total:
        return WeekState.LOCKED
    if counts[EntryStatus.SUBMITTED_TO_DEAN] or counts[EntryStatus.DEAN_DECLINED]:
        return WeekState.DEAN_REVIEW
    if counts[EntryStatus.COMPANY_APPROVED] == total:
        return WeekState.READY_FOR_DEAN
    if counts[EntryStatus.SUBMITTED_TO_COMPANY] or counts[EntryStatus.EDITED_BY_COMPANY]:
        return WeekState.COMPANY_REVIEW
    return WeekState.DRAFT


def week_start(day: date) -> date:
    """Monday of the ISO week containing ``day``."""

    return day - timedelta(days=day.weekday())


def week_range(day: date) -> DateRange:
    return DateRange.week_of(week_start(day))


def week_for_index(today: date, index: int) -> DateRange:
    """Week ``index`` weeks before the one containing ``today`` (0 = current)."""

    if index < 0:
        raise ValueError("week index cannot be negative")
    return DateRange.week_of(week_start(today) - timedelta(weeks=index))


def build_week(student_id: str, window: DateRange, entries: Iterable[TimesheetEntry], *, number: int | None = None) -> WeekGroup:
    members = sorted((entry for entry in entries if entry.entry_date in window), key=lambda entry: entry.entry_date)
    total = sum((entry.total_hours for entry in members), Decimal("0.00"))
    approved = sum(
        (entry.total_hours for entry in members if entry.status == EntryStatus.DEAN_APPROVED),
        Decimal("0.00"),
    )
    return WeekGroup(
        student_id=student_id,
        start=window.start,
        end=window.end,
        state=aggregate_week_state(entry.status for entry in members),
        entries=members,
        number=number,
        total_hours=total,
        approved_hours=approved,
    )


def group_by_week(student_id: str, entries: Iterable[TimesheetEntry]) -> list[WeekGroup]:
    """Every week holding at least one entry, newest first.

    Weeks are numbered from 1 starting at the student's earliest week; gaps in
    the calendar keep their number so "Week 5" always means the same window.
    """

    buckets: dict[date, list[TimesheetEntry]] = {}
    for entry in entries:
        buckets.setdefault(week_start(entry.entry_date), []).append(entry)
    if not buckets:
        return []

    first = min(buckets)
    weeks = [
        build_week(student_id, DateRange.week_of(monday), members, number=(monday - first).days // DAYS_PER_WEEK + 1)
        for monday, members in buckets.items()
    ]
    weeks.sort(key=lambda week: week.start, reverse=True)
    return weeks
