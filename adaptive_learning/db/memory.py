"""
In-Memory Stores.

Dict-backed implementations of the storage ports for tests and embedding.
Entities are copied on the way in and out so callers never share state
with the store.
"""

from __future__ import annotations

import copy
import threading
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Any

from adaptive_learning.db.locks import KeyedLocks
from adaptive_learning.domain.models import (
    Answer,
    Assignment,
    AssignmentStatus,
    Question,
    SchedulingRecord,
    StudentAssignment,
    StudentAssignmentStatus,
)


class _MemoryStore:
    def __init__(self):
        self._items: dict[Any, Any] = {}
        self._mutex = threading.RLock()

    def _get(self, key: Any) -> Any:
        with self._mutex:
            item = self._items.get(key)
            return copy.deepcopy(item) if item is not None else None

    def _put(self, key: Any, item: Any) -> Any:
        with self._mutex:
            self._items[key] = copy.deepcopy(item)
        return item

    def _values(self) -> list[Any]:
        with self._mutex:
            return [copy.deepcopy(item) for item in self._items.values()]

    def _remove(self, key: Any) -> bool:
        with self._mutex:
            return self._items.pop(key, None) is not None


class InMemoryQuestionStore(_MemoryStore):
    def find_by_id(self, question_id: str) -> Question | None:
        return self._get(question_id)

    def find_by_tags(self, tags: list[str]) -> list[Question]:
        wanted = set(tags)
        return [q for q in self._values() if wanted.intersection(q.tags)]

    def find_all(self) -> list[Question]:
        return self._values()

    def save(self, question: Question) -> Question:
        return self._put(question.id, question)

    def delete(self, question_id: str) -> bool:
        return self._remove(question_id)


class InMemoryAnswerStore(_MemoryStore):
    def find_by_id(self, answer_id: str) -> Answer | None:
        return self._get(answer_id)

    def find_by_student_id(self, student_id: str) -> list[Answer]:
        return [a for a in self._values() if a.student_id == student_id]

    def find_incorrect_by_student_id(self, student_id: str) -> list[Answer]:
        return [a for a in self._values() if a.student_id == student_id and a.is_correct is False]

    def find_by_student_assignment_id(self, student_assignment_id: str) -> list[Answer]:
        return [a for a in self._values() if a.student_assignment_id == student_assignment_id]

    def save(self, answer: Answer) -> Answer:
        return self._put(answer.id, answer)


class InMemoryAssignmentStore(_MemoryStore):
    def find_by_id(self, assignment_id: str) -> Assignment | None:
        return self._get(assignment_id)

    def find_all(self) -> list[Assignment]:
        return self._values()

    def save(self, assignment: Assignment) -> Assignment:
        return self._put(assignment.id, assignment)

    def delete(self, assignment_id: str) -> bool:
        return self._remove(assignment_id)

    def update_status(self, assignment_id: str, status: AssignmentStatus) -> Assignment | None:
        with self._mutex:
            current = self._items.get(assignment_id)
            if current is None:
                return None
            updated = replace(current, status=status)
            self._items[assignment_id] = updated
            return copy.deepcopy(updated)


class InMemoryStudentAssignmentStore(_MemoryStore):
    def find_by_id(self, student_assignment_id: str) -> StudentAssignment | None:
        return self._get(student_assignment_id)

    def find_by_student_id(self, student_id: str) -> list[StudentAssignment]:
        return [sa for sa in self._values() if sa.student_id == student_id]

    def save(self, student_assignment: StudentAssignment) -> StudentAssignment:
        return self._put(student_assignment.id, student_assignment)

    def update_status(
        self,
        student_assignment_id: str,
        expected: StudentAssignmentStatus,
        status: StudentAssignmentStatus,
        **changes: Any,
    ) -> StudentAssignment | None:
        with self._mutex:
            current = self._items.get(student_assignment_id)
            if current is None or current.status is not expected:
                return None
            updated = current.with_changes(status=status, **changes)
            self._items[student_assignment_id] = updated
            return copy.deepcopy(updated)


class InMemorySchedulingRecordStore(_MemoryStore):
    def __init__(self):
        super().__init__()
        self._key_locks = KeyedLocks()

    def get(self, student_id: str, question_id: str) -> SchedulingRecord | None:
        return self._get((student_id, question_id))

    def save(self, record: SchedulingRecord) -> SchedulingRecord:
        return self._put(record.key, record)

    def _for_student(self, student_id: str) -> list[SchedulingRecord]:
        return [r for r in self._values() if r.student_id == student_id]

    def get_due(self, student_id: str, before: datetime, limit: int) -> list[SchedulingRecord]:
        due = [
            r for r in self._for_student(student_id)
            if r.next_review_date is not None and r.next_review_date <= before
        ]
        due.sort(key=lambda r: (r.next_review_date, r.question_id))
        return due[:limit]

    def get_student_question_ids(self, student_id: str) -> set[str]:
        return {r.question_id for r in self._for_student(student_id)}

    def get_recently_lapsed(self, student_id: str, limit: int) -> list[str]:
        lapsed = [
            r for r in self._for_student(student_id)
            if r.repetitions <= 1 and r.last_review_date is not None
        ]
        lapsed.sort(key=lambda r: r.last_review_date, reverse=True)
        return [r.question_id for r in lapsed[:limit]]

    @contextmanager
    def locked(self, student_id: str, question_id: str) -> Generator[None, None, None]:
        with self._key_locks.hold((student_id, question_id)):
            yield

    def delete_for_student(self, student_id: str) -> int:
        with self._mutex:
            keys = [k for k in self._items if k[0] == student_id]
            for key in keys:
                del self._items[key]
            return len(keys)

    def delete_for_question(self, question_id: str) -> int:
        with self._mutex:
            keys = [k for k in self._items if k[1] == question_id]
            for key in keys:
                del self._items[key]
            return len(keys)
