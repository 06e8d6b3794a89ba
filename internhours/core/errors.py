"""Error kinds raised by the approval workflow.

Every error carries a machine-readable ``code`` and a ``details`` mapping so
the HTTP layer can answer without parsing messages.  ``StoreError`` is the only
kind a caller may retry.
"""
from __future__ import annotations

from typing import Any


class WorkflowError(Exception):
    """Base class for caller-actionable workflow failures."""

    code = "workflow_error"
    status_code = 400
    retryable = False

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "detail": self.message}
        payload.update({key: _plain(value) for key, value in self.details.items()})
        return payload


def _plain(value: Any) -> Any:
    enum_value = getattr(value, "value", None)
    if isinstance(enum_value, str):
        return enum_value
    return value


class ValidationError(WorkflowError):
    """Malformed or missing input (time fields, dates, break minutes)."""

    code = "validation_error"
    status_code = 400


class ConflictError(WorkflowError):
    """A record already exists for the same natural key."""

    code = "conflict"
    status_code = 409


class LimitError(WorkflowError):
    """The student's week already holds the maximum number of entries."""

    code = "week_full"
    status_code = 409


class StateError(WorkflowError):
    """The requested transition is not allowed from the current status."""

    code = "invalid_transition"
    status_code = 409

    def __init__(self, message: str, *, current: Any = None, requested: Any = None, role: Any = None, **details: Any) -> None:
        super().__init__(message, current=current, requested=requested, role=role, **details)
        self.current = current
        self.requested = requested
        self.role = role


class StaleEntryError(StateError):
    """A compare-and-set update found the record in a different status."""

    code = "stale_state"


class AuthorizationError(WorkflowError):
    """The actor has no standing to touch the record at all."""

    code = "forbidden"
    status_code = 403


class NotFoundError(WorkflowError):
    """A referenced entry, logbook or student does not exist."""

    code = "not_found"
    status_code = 404


class StoreError(WorkflowError):
    """Persistence failure; internals are logged, never returned."""

    code = "store_error"
    status_code = 503
    retryable = True

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "detail": "storage temporarily unavailable", "retryable": True}
