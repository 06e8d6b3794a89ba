"""Who may change which fields of a timesheet entry, and when.

Two failure kinds stay distinct: ``AuthorizationError`` when the role can
never touch the record or field, ``StateError`` when it could but the entry's
current status forbids it.
"""
from __future__ import annotations

from datetime import date
from typing import Iterable

from internhours.core import transitions
from internhours.core.errors import AuthorizationError, StateError, ValidationError
from internhours.core.transitions import EntryStatus, Role
from internhours.domain import Actor, TimesheetEntry

TIME_FIELDS: frozenset[str] = frozenset({"time_in", "time_out", "break_minutes"})
STATUS_FIELD = "status"
NOTES_FIELD = "notes"
KNOWN_FIELDS: frozenset[str] = TIME_FIELDS | {STATUS_FIELD, NOTES_FIELD}

ROLE_FIELDS: dict[Role, frozenset[str]] = {
    Role.STUDENT: TIME_FIELDS | {STATUS_FIELD},
    Role.COMPANY: TIME_FIELDS | {STATUS_FIELD, NOTES_FIELD},
    Role.ADMINISTRATOR: frozenset({STATUS_FIELD, NOTES_FIELD}),
}

# statuses in which a role may rewrite the time fields
TIME_EDITABLE: dict[Role, frozenset[EntryStatus]] = {
    Role.STUDENT: frozenset({EntryStatus.PENDING, EntryStatus.COMPANY_DECLINED}),
    Role.COMPANY: frozenset({EntryStatus.SUBMITTED_TO_COMPANY}),
    Role.ADMINISTRATOR: frozenset(),
}


def _review_states(role: Role) -> frozenset[EntryStatus]:
    return transitions.sources_for(role)


def resolve_target(
    role: Role,
    status: EntryStatus,
    fields: Iterable[str],
    requested_status: EntryStatus | None = None,
) -> EntryStatus:
    """Status an entry lands in once the mutation is applied."""

    touched = set(fields)
    if requested_status is not None:
        return requested_status
    if touched & TIME_FIELDS:
        if role is Role.STUDENT and status == EntryStatus.COMPANY_DECLINED:
            return EntryStatus.PENDING
        if role is Role.COMPANY:
            return EntryStatus.EDITED_BY_COMPANY
    return status


def _check(
    role: Role,
    status: EntryStatus,
    fields: Iterable[str],
    requested_status: EntryStatus | None,
) -> None:
    touched = set(fields)
    unknown = touched - KNOWN_FIELDS
    if unknown:
        raise ValidationError("unknown fields", fields=sorted(unknown))

    forbidden = touched - ROLE_FIELDS[role]
    if forbidden:
        raise AuthorizationError(
            f"{role.value} may not change {', '.join(sorted(forbidden))}",
            role=role,
            fields=sorted(forbidden),
        )

    if requested_status is not None and STATUS_FIELD not in touched:
        touched.add(STATUS_FIELD)

    # edited_by_company only ever results from a company time edit, and such an
    # edit cannot be combined with an approve/decline decision
    if requested_status is EntryStatus.EDITED_BY_COMPANY and not touched & TIME_FIELDS:
        raise StateError(
            "edited_by_company is set by editing the hours, not requested directly",
            current=status,
            requested=requested_status,
            role=role,
        )
    if (
        role is Role.COMPANY
        and touched & TIME_FIELDS
        and requested_status not in (None, EntryStatus.EDITED_BY_COMPANY)
    ):
        raise StateError(
            "company must save its hour edits before approving or declining",
            current=status,
            requested=requested_status,
            role=role,
        )

    if touched & TIME_FIELDS and status not in TIME_EDITABLE[role]:
        raise StateError(
            f"{role.value} cannot edit hours while the entry is {status.value}",
            current=status,
            requested=requested_status or status,
            role=role,
        )

    if (NOTES_FIELD in touched or STATUS_FIELD in touched) and not touched & TIME_FIELDS:
        if status not in _review_states(role):
            raise StateError(
                f"{role.value} cannot act on an entry that is {status.value}",
                current=status,
                requested=requested_status or status,
                role=role,
            )

    target = resolve_target(role, status, touched, requested_status)
    if target != status or requested_status is not None:
        transitions.ensure_transition(role, status, target)


def can_mutate(
    role: Role,
    status: EntryStatus,
    fields: Iterable[str],
    *,
    requested_status: EntryStatus | None = None,
) -> bool:
    try:
        _check(role, status, fields, requested_status)
    except (AuthorizationError, StateError, ValidationError):
        return False
    return True


def ensure_can_mutate(
    role: Role,
    status: EntryStatus,
    fields: Iterable[str],
    *,
    requested_status: EntryStatus | None = None,
) -> EntryStatus:
    """Raise unless the mutation is allowed; return the resulting status."""

    touched = set(fields)
    _check(role, status, touched, requested_status)
    return resolve_target(role, status, touched, requested_status)


def ensure_standing(actor: Actor, entry: TimesheetEntry) -> None:
    """Raise ``AuthorizationError`` unless the actor may see this entry at all."""

    if actor.role is Role.ADMINISTRATOR:
        return
    if actor.role is Role.STUDENT and entry.student_id == actor.actor_id:
        return
    if actor.role is Role.COMPANY and entry.company_id == actor.actor_id:
        return
    raise AuthorizationError(
        "actor has no standing on this entry",
        role=actor.role,
        entry_id=entry.entry_id,
    )


def ensure_not_future(entry_date: date, today: date) -> None:
    if entry_date > today:
        raise ValidationError("hours cannot be logged for a future date", date=entry_date.isoformat())
