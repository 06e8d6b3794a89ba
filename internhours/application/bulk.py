"""Multi-record transitions expressed as one filtered update each."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from internhours.core import transitions
from internhours.core.errors import AuthorizationError, NotFoundError
from internhours.core.transitions import EntryStatus, Role
from internhours.domain import Actor, DateRange
from internhours.infrastructure import EntryFilter, EntryRepository, StudentDirectory

logger = logging.getLogger(__name__)


class BulkOutcome(str, Enum):
    APPLIED = "applied"
    NO_MATCH = "no_match"
    NOTHING_ELIGIBLE = "nothing_eligible"


@dataclass(frozen=True, slots=True)
class BulkTransitionResult:
    operation: str
    affected_count: int
    outcome: BulkOutcome

    @property
    def applied(self) -> bool:
        return self.outcome is BulkOutcome.APPLIED


class BulkTransitionService:
    """Submit-week, approve-all and submit-to-dean.

    The status filter of each update comes from the transition graph, and the
    match and the write happen in the store as one step, so a repeated or
    concurrent call simply matches nothing.
    """

    def __init__(self, entries: EntryRepository, directory: StudentDirectory) -> None:
        self._entries = entries
        self._directory = directory

    def _ensure_student(self, actor: Actor, student_id: str) -> None:
        if not self._directory.exists(student_id):
            raise NotFoundError("student not found", student_id=student_id)
        if actor.role is not Role.STUDENT or actor.actor_id != student_id:
            raise AuthorizationError("only the student may submit their own entries", role=actor.role, student_id=student_id)

    def _apply(
        self,
        operation: str,
        role: Role,
        target: EntryStatus,
        criteria: EntryFilter,
        *,
        empty: BulkOutcome,
    ) -> BulkTransitionResult:
        sources = transitions.sources_for(role, target, bulk=True)
        scoped = EntryFilter(
            student_id=criteria.student_id,
            company_id=criteria.company_id,
            statuses=sources,
            date_from=criteria.date_from,
            date_to=criteria.date_to,
        )
        count = self._entries.update_many_conditional(scoped, {"status": target})
        logger.info(
            "%s for student %s moved %d entries from %s to %s",
            operation,
            criteria.student_id,
            count,
            sorted(status.value for status in sources),
            target.value,
        )
        return BulkTransitionResult(
            operation=operation,
            affected_count=count,
            outcome=BulkOutcome.APPLIED if count else empty,
        )

    def submit_week(self, actor: Actor, student_id: str, date_range: DateRange) -> BulkTransitionResult:
        """Send every draft entry inside ``date_range`` to the company."""

        self._ensure_student(actor, student_id)
        return self._apply(
            "submit_week",
            Role.STUDENT,
            EntryStatus.SUBMITTED_TO_COMPANY,
            EntryFilter(student_id=student_id, date_from=date_range.start, date_to=date_range.end),
            empty=BulkOutcome.NO_MATCH,
        )

    def approve_all(self, actor: Actor, student_id: str) -> BulkTransitionResult:
        """Company approves everything the student has submitted to it."""

        if actor.role is not Role.COMPANY:
            raise AuthorizationError("only the assigned company may approve entries", role=actor.role)
        if not self._directory.exists(student_id):
            raise NotFoundError("student not found", student_id=student_id)
        if self._directory.assigned_company(student_id) != actor.actor_id:
            raise AuthorizationError(
                "company is not assigned to this student",
                role=actor.role,
                student_id=student_id,
            )
        return self._apply(
            "approve_all",
            Role.COMPANY,
            EntryStatus.COMPANY_APPROVED,
            EntryFilter(student_id=student_id, company_id=actor.actor_id),
            empty=BulkOutcome.NO_MATCH,
        )

    def submit_to_dean(
        self,
        actor: Actor,
        student_id: str,
        date_range: DateRange | None = None,
    ) -> BulkTransitionResult:
        """Forward company-approved entries to the administrator.

        Zero eligible entries is reported as ``nothing_eligible`` rather than
        as an empty success.
        """

        self._ensure_student(actor, student_id)
        return self._apply(
            "submit_to_dean",
            Role.STUDENT,
            EntryStatus.SUBMITTED_TO_DEAN,
            EntryFilter(
                student_id=student_id,
                date_from=date_range.start if date_range else None,
                date_to=date_range.end if date_range else None,
            ),
            empty=BulkOutcome.NOTHING_ELIGIBLE,
        )
