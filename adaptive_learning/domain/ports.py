"""
Storage Ports.

Narrow interfaces the engine reads and writes through. The engine never
talks to a database directly, so every component can run against the
in-memory adapters in tests.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any, Protocol

from adaptive_learning.domain.models import (
    Answer,
    Assignment,
    AssignmentStatus,
    Question,
    SchedulingRecord,
    StudentAssignment,
    StudentAssignmentStatus,
)


class QuestionStore(Protocol):
    def find_by_id(self, question_id: str) -> Question | None: ...

    def find_by_tags(self, tags: list[str]) -> list[Question]:
        """Questions sharing at least one tag, in store order."""
        ...

    def find_all(self) -> list[Question]: ...

    def save(self, question: Question) -> Question: ...

    def delete(self, question_id: str) -> bool: ...


class AnswerStore(Protocol):
    def find_by_id(self, answer_id: str) -> Answer | None: ...

    def find_by_student_id(self, student_id: str) -> list[Answer]: ...

    def find_incorrect_by_student_id(self, student_id: str) -> list[Answer]: ...

    def find_by_student_assignment_id(self, student_assignment_id: str) -> list[Answer]: ...

    def save(self, answer: Answer) -> Answer: ...


class AssignmentStore(Protocol):
    def find_by_id(self, assignment_id: str) -> Assignment | None: ...

    def find_all(self) -> list[Assignment]: ...

    def save(self, assignment: Assignment) -> Assignment: ...

    def delete(self, assignment_id: str) -> bool: ...

    def update_status(self, assignment_id: str, status: AssignmentStatus) -> Assignment | None: ...


class StudentAssignmentStore(Protocol):
    def find_by_id(self, student_assignment_id: str) -> StudentAssignment | None: ...

    def find_by_student_id(self, student_id: str) -> list[StudentAssignment]: ...

    def save(self, student_assignment: StudentAssignment) -> StudentAssignment: ...

    def update_status(
        self,
        student_assignment_id: str,
        expected: StudentAssignmentStatus,
        status: StudentAssignmentStatus,
        **changes: Any,
    ) -> StudentAssignment | None:
        """
        Compare-and-set status transition.

        Returns the updated entity, or None when the current status is not
        ``expected`` (nothing is written in that case).
        """
        ...


class SchedulingRecordStore(Protocol):
    def get(self, student_id: str, question_id: str) -> SchedulingRecord | None: ...

    def save(self, record: SchedulingRecord) -> SchedulingRecord: ...

    def get_due(self, student_id: str, before: datetime, limit: int) -> list[SchedulingRecord]:
        """Records with next_review_date <= before, oldest first."""
        ...

    def get_student_question_ids(self, student_id: str) -> set[str]: ...

    def get_recently_lapsed(self, student_id: str, limit: int) -> list[str]:
        """Question ids with repetitions <= 1 that have been reviewed, newest first."""
        ...

    def locked(self, student_id: str, question_id: str) -> AbstractContextManager[None]:
        """Scope in which a read-modify-write of one record is atomic."""
        ...

    def delete_for_student(self, student_id: str) -> int: ...

    def delete_for_question(self, question_id: str) -> int: ...
