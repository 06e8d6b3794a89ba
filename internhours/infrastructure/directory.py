"""Student directory and assignment lookup (external collaborator)."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol


class StudentDirectory(Protocol):
    def exists(self, student_id: str) -> bool: ...

    def assigned_company(self, student_id: str) -> str | None: ...

    def required_hours(self, student_id: str) -> Decimal | None: ...

    def reset(self) -> None: ...


@dataclass(slots=True)
class StudentRecord:
    student_id: str
    company_id: str | None = None
    required_hours: Decimal | None = None


class InMemoryStudentDirectory:
    """Directory fed by whatever manages enrolment; tests register students directly."""

    def __init__(self) -> None:
        self._students: dict[str, StudentRecord] = {}

    def register(
        self,
        student_id: str,
        *,
        company_id: str | None = None,
        required_hours: Decimal | int | None = None,
    ) -> StudentRecord:
        record = StudentRecord(
            student_id=student_id,
            company_id=company_id,
            required_hours=Decimal(str(required_hours)) if required_hours is not None else None,
        )
        self._students[student_id] = record
        return record

    def assign(self, student_id: str, company_id: str | None) -> None:
        record = self._students.setdefault(student_id, StudentRecord(student_id=student_id))
        record.company_id = company_id

    def exists(self, student_id: str) -> bool:
        return student_id in self._students

    def assigned_company(self, student_id: str) -> str | None:
        record = self._students.get(student_id)
        return record.company_id if record else None

    def required_hours(self, student_id: str) -> Decimal | None:
        record = self._students.get(student_id)
        return record.required_hours if record else None

    def reset(self) -> None:
        self._students.clear()
