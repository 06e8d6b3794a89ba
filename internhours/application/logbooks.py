"""Weekly narrative logbooks: one per student per week, reviewed once."""
from __future__ import annotations

import logging
from collections import Counter
from datetime import date, timedelta
from typing import Any, Callable, Iterable

from internhours.core import transitions
from internhours.core.errors import AuthorizationError, NotFoundError, StaleEntryError, ValidationError
from internhours.core.transitions import LogbookStatus, Role
from internhours.core.weeks import week_start
from internhours.domain import Actor, Attachment, LogbookEntry
from internhours.infrastructure import LogbookFilter, LogbookNoop, LogbookRepository, StudentDirectory

logger = logging.getLogger(__name__)

NARRATIVE_FIELDS: tuple[str, ...] = (
    "duties_and_responsibilities",
    "new_things_learned",
    "problems_encountered",
    "solutions_implemented",
    "accomplishments_and_deliverables",
    "goals_for_next_week",
)


def _attachment(item: Attachment | dict[str, Any]) -> Attachment:
    if isinstance(item, Attachment):
        return item
    url = str(item.get("file_url") or "").strip()
    if not url:
        raise ValidationError("attachment file_url is required")
    return Attachment(file_url=url, file_type=item.get("file_type"), original_name=item.get("original_name"))


class LogbookService:
    def __init__(
        self,
        logbooks: LogbookRepository,
        directory: StudentDirectory,
        *,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._logbooks = logbooks
        self._directory = directory
        self._today = today

    def create_logbook(
        self,
        actor: Actor,
        narrative: dict[str, Any],
        *,
        week_of: date | None = None,
        week_number: int | None = None,
        attachments: Iterable[Attachment | dict[str, Any]] = (),
    ) -> LogbookEntry:
        """Record the student's log for the week containing ``week_of``."""

        if actor.role is not Role.STUDENT:
            raise AuthorizationError("only students write logbooks", role=actor.role)
        if not self._directory.exists(actor.actor_id):
            raise NotFoundError("student not found", student_id=actor.actor_id)

        missing = [name for name in NARRATIVE_FIELDS if not str(narrative.get(name) or "").strip()]
        if missing:
            raise ValidationError("all logbook questions must be answered", missing=missing)
        if week_number is not None and week_number < 1:
            raise ValidationError("week_number must be positive", week_number=week_number)

        monday = week_start(week_of or self._today())
        fields: dict[str, Any] = {name: str(narrative[name]).strip() for name in NARRATIVE_FIELDS}
        fields.update(
            week_end=monday + timedelta(days=6),
            week_number=week_number,
            attachments=[_attachment(item) for item in attachments],
            status=LogbookStatus.PENDING,
        )
        logbook = self._logbooks.insert_if_absent(actor.actor_id, monday, fields)
        logger.info("student %s submitted logbook for week of %s", actor.actor_id, monday.isoformat())
        return logbook

    def list_logbooks(self, actor: Actor) -> list[LogbookEntry]:
        if actor.role is not Role.STUDENT:
            raise AuthorizationError("only students list their own logbooks", role=actor.role)
        return self._logbooks.find_many(LogbookFilter(student_id=actor.actor_id))

    def stats(self, actor: Actor) -> dict[str, int]:
        counts = Counter(logbook.status for logbook in self.list_logbooks(actor))
        return {
            "total": sum(counts.values()),
            "approved": counts[LogbookStatus.APPROVED],
            "pending": counts[LogbookStatus.PENDING],
            "declined": counts[LogbookStatus.DECLINED],
        }

    def pending(self, actor: Actor) -> list[LogbookEntry]:
        if actor.role is not Role.ADMINISTRATOR:
            raise AuthorizationError("only the administrator reviews logbooks", role=actor.role)
        return self._logbooks.find_many(LogbookFilter(statuses=frozenset({LogbookStatus.PENDING})))

    def get_logbook(self, actor: Actor, logbook_id: str) -> LogbookEntry:
        logbook = self._logbooks.find_one(LogbookFilter(logbook_id=logbook_id))
        if logbook is None:
            raise NotFoundError("logbook not found", logbook_id=logbook_id)
        if actor.role is Role.ADMINISTRATOR or (actor.role is Role.STUDENT and logbook.student_id == actor.actor_id):
            return logbook
        raise AuthorizationError("actor has no standing on this logbook", role=actor.role, logbook_id=logbook_id)

    def review(
        self,
        actor: Actor,
        logbook_id: str,
        decision: LogbookStatus | str,
        feedback: str | None = None,
    ) -> LogbookEntry:
        """Approve or decline a pending logbook exactly once."""

        if actor.role is not Role.ADMINISTRATOR:
            raise AuthorizationError("only the administrator reviews logbooks", role=actor.role)
        try:
            requested = LogbookStatus(decision)
        except ValueError as exc:
            raise ValidationError("unknown logbook status", value=str(decision)) from exc

        logbook = self.get_logbook(actor, logbook_id)
        transitions.ensure_logbook_transition(actor.role, logbook.status, requested)

        result = self._logbooks.update_one_conditional(
            logbook_id,
            logbook.status,
            {"status": requested, "feedback": feedback or ""},
        )
        if isinstance(result, LogbookNoop):
            if result.actual_status is None:
                raise NotFoundError("logbook not found", logbook_id=logbook_id)
            raise StaleEntryError(
                "logbook was reviewed in the meantime",
                current=result.actual_status,
                requested=requested,
                role=actor.role,
                logbook_id=logbook_id,
            )
        logger.info("administrator %s marked logbook %s %s", actor.actor_id, logbook_id, requested.value)
        return result
