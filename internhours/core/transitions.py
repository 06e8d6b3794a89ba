"""Canonical status transitions for timesheet entries and logbooks.

Every mutation path consults this table; no other module special-cases a
transition.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from internhours.core.errors import StateError, ValidationError


class Role(str, Enum):
    STUDENT = "student"
    COMPANY = "company"
    ADMINISTRATOR = "administrator"


class EntryStatus(str, Enum):
    PENDING = "pending"
    SUBMITTED_TO_COMPANY = "submitted_to_company"
    COMPANY_APPROVED = "company_approved"
    COMPANY_DECLINED = "company_declined"
    EDITED_BY_COMPANY = "edited_by_company"
    SUBMITTED_TO_DEAN = "submitted_to_dean"
    DEAN_APPROVED = "dean_approved"
    DEAN_DECLINED = "dean_declined"


class LogbookStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"


@dataclass(frozen=True, slots=True)
class TransitionRule:
    role: Role
    source: EntryStatus
    target: EntryStatus
    single: bool = True
    bulk: bool = False


TRANSITIONS: tuple[TransitionRule, ...] = (
    TransitionRule(Role.STUDENT, EntryStatus.PENDING, EntryStatus.SUBMITTED_TO_COMPANY, single=True, bulk=True),
    # implicit: a successful student edit of a declined entry puts it back in draft
    TransitionRule(Role.STUDENT, EntryStatus.COMPANY_DECLINED, EntryStatus.PENDING),
    TransitionRule(Role.COMPANY, EntryStatus.SUBMITTED_TO_COMPANY, EntryStatus.COMPANY_APPROVED, single=True, bulk=True),
    TransitionRule(Role.COMPANY, EntryStatus.SUBMITTED_TO_COMPANY, EntryStatus.COMPANY_DECLINED),
    TransitionRule(Role.COMPANY, EntryStatus.SUBMITTED_TO_COMPANY, EntryStatus.EDITED_BY_COMPANY),
    TransitionRule(Role.COMPANY, EntryStatus.EDITED_BY_COMPANY, EntryStatus.COMPANY_APPROVED),
    TransitionRule(Role.COMPANY, EntryStatus.EDITED_BY_COMPANY, EntryStatus.COMPANY_DECLINED),
    TransitionRule(Role.STUDENT, EntryStatus.COMPANY_APPROVED, EntryStatus.SUBMITTED_TO_DEAN, single=False, bulk=True),
    TransitionRule(Role.ADMINISTRATOR, EntryStatus.SUBMITTED_TO_DEAN, EntryStatus.DEAN_APPROVED),
    TransitionRule(Role.ADMINISTRATOR, EntryStatus.SUBMITTED_TO_DEAN, EntryStatus.DEAN_DECLINED),
)

TERMINAL_STATES: frozenset[EntryStatus] = frozenset({EntryStatus.DEAN_APPROVED, EntryStatus.DEAN_DECLINED})

LOGBOOK_TRANSITIONS: dict[Role, dict[LogbookStatus, frozenset[LogbookStatus]]] = {
    Role.ADMINISTRATOR: {
        LogbookStatus.PENDING: frozenset({LogbookStatus.APPROVED, LogbookStatus.DECLINED}),
    },
}


def _rules(role: Role, *, bulk: bool) -> list[TransitionRule]:
    return [rule for rule in TRANSITIONS if rule.role == role and (rule.bulk if bulk else rule.single)]


def allowed_targets(role: Role, status: EntryStatus, *, bulk: bool = False) -> frozenset[EntryStatus]:
    """Statuses ``role`` may move an entry to from ``status``."""

    return frozenset(rule.target for rule in _rules(role, bulk=bulk) if rule.source == status)


def sources_for(role: Role, target: EntryStatus | None = None, *, bulk: bool = False) -> frozenset[EntryStatus]:
    """Statuses from which ``role`` may act (optionally towards ``target``)."""

    return frozenset(
        rule.source for rule in _rules(role, bulk=bulk) if target is None or rule.target == target
    )


def is_terminal(status: EntryStatus) -> bool:
    return status in TERMINAL_STATES


def can_transition(role: Role, current: EntryStatus, requested: EntryStatus, *, bulk: bool = False) -> bool:
    if is_terminal(current):
        return False
    return requested in allowed_targets(role, current, bulk=bulk)


def ensure_transition(role: Role, current: EntryStatus, requested: EntryStatus, *, bulk: bool = False) -> None:
    if not can_transition(role, current, requested, bulk=bulk):
        raise StateError(
            f"{role.value} cannot move an entry from {current.value} to {requested.value}",
            current=current,
            requested=requested,
            role=role,
        )


def can_review_logbook(role: Role, current: LogbookStatus, requested: LogbookStatus) -> bool:
    return requested in LOGBOOK_TRANSITIONS.get(role, {}).get(current, frozenset())


def ensure_logbook_transition(role: Role, current: LogbookStatus, requested: LogbookStatus) -> None:
    if not can_review_logbook(role, current, requested):
        raise StateError(
            f"{role.value} cannot move a logbook from {current.value} to {requested.value}",
            current=current,
            requested=requested,
            role=role,
        )


def parse_status(value: str | EntryStatus) -> EntryStatus:
    try:
        return EntryStatus(value)
    except ValueError as exc:
        raise ValidationError("unknown entry status", value=str(value)) from exc
