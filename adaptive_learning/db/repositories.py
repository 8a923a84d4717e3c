"""
SQLAlchemy Stores.

Implements the storage ports over the ORM models. Each call runs in its
own transaction, except inside ``SqlSchedulingRecordStore.locked`` where
every call on that store (from the same thread) shares one transaction
holding the record's lock.
"""

from __future__ import annotations

import threading
from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session, sessionmaker

from adaptive_learning.db.database import session_scope
from adaptive_learning.db.locks import KeyedLocks
from adaptive_learning.db.models import (
    AnswerRow,
    AssignmentRow,
    QuestionRow,
    QuestionTagRow,
    SchedulingRecordRow,
    StudentAssignmentRow,
)
from adaptive_learning.domain.models import (
    Answer,
    Assignment,
    AssignmentSettings,
    AssignmentStatus,
    AssignmentType,
    DifficultyLevel,
    Question,
    QuestionType,
    SchedulingRecord,
    StudentAssignment,
    StudentAssignmentStatus,
)


class _SqlStore:
    def __init__(self, session_factory: sessionmaker[Session]):
        self._factory = session_factory
        self._local = threading.local()

    @contextmanager
    def _session(self) -> Generator[Session, None, None]:
        active = getattr(self._local, "session", None)
        if active is not None:
            yield active
            return
        with session_scope(self._factory) as session:
            yield session


# =============================================================================
# Row <-> entity conversion
# =============================================================================


def _question_from_row(row: QuestionRow) -> Question:
    return Question.from_payload(
        QuestionType(row.question_type),
        row.payload or {},
        id=row.id,
        prompt=row.prompt,
        tags=[t.tag for t in row.tags],
        difficulty=DifficultyLevel(row.difficulty),
        explanation=row.explanation,
        created_by=row.created_by,
        created_at=row.created_at,
    )


def _question_to_row(question: Question) -> QuestionRow:
    return QuestionRow(
        id=question.id,
        question_type=question.question_type.value,
        prompt=question.prompt,
        difficulty=question.difficulty.value,
        explanation=question.explanation,
        created_by=question.created_by,
        payload=question.payload(),
        created_at=question.created_at,
        tags=[
            QuestionTagRow(question_id=question.id, tag=tag, position=i)
            for i, tag in enumerate(dict.fromkeys(question.tags))
        ],
    )


def _answer_from_row(row: AnswerRow) -> Answer:
    return Answer(
        id=row.id,
        student_id=row.student_id,
        question_id=row.question_id,
        student_assignment_id=row.student_assignment_id,
        question_type=QuestionType(row.question_type),
        attempt_number=row.attempt_number,
        is_correct=row.is_correct,
        selected_option_id=row.selected_option_id,
        boolean_answer=row.boolean_answer,
        text_answer=row.text_answer,
        matches=[(left, right) for left, right in (row.matches or [])],
        response_ms=row.response_ms,
        feedback=row.feedback,
        essay_score=row.essay_score,
        created_at=row.created_at,
    )


def _answer_to_row(answer: Answer) -> AnswerRow:
    return AnswerRow(
        id=answer.id,
        student_id=answer.student_id,
        question_id=answer.question_id,
        student_assignment_id=answer.student_assignment_id,
        question_type=answer.question_type.value,
        attempt_number=answer.attempt_number,
        is_correct=answer.is_correct,
        selected_option_id=answer.selected_option_id,
        boolean_answer=answer.boolean_answer,
        text_answer=answer.text_answer,
        matches=[list(m) for m in answer.matches],
        response_ms=answer.response_ms,
        feedback=answer.feedback,
        essay_score=answer.essay_score,
        created_at=answer.created_at,
    )


def _assignment_from_row(row: AssignmentRow) -> Assignment:
    return Assignment(
        id=row.id,
        title=row.title,
        description=row.description,
        assignment_type=AssignmentType(row.assignment_type),
        question_ids=list(row.question_ids or []),
        settings=AssignmentSettings.parse(row.settings),
        created_by=row.created_by,
        status=AssignmentStatus(row.status),
        due_date=row.due_date,
        created_at=row.created_at,
    )


def _assignment_to_row(assignment: Assignment) -> AssignmentRow:
    return AssignmentRow(
        id=assignment.id,
        title=assignment.title,
        description=assignment.description,
        assignment_type=assignment.assignment_type.value,
        question_ids=list(assignment.question_ids),
        settings=assignment.settings.model_dump(),
        created_by=assignment.created_by,
        status=assignment.status.value,
        due_date=assignment.due_date,
        created_at=assignment.created_at,
    )


def _student_assignment_from_row(row: StudentAssignmentRow) -> StudentAssignment:
    return StudentAssignment(
        id=row.id,
        student_id=row.student_id,
        assignment_id=row.assignment_id,
        status=StudentAssignmentStatus(row.status),
        score=row.score,
        attempts=row.attempts,
        is_adaptive=row.is_adaptive,
        original_assignment_id=row.original_assignment_id,
        feedback=row.feedback,
        due_date=row.due_date,
        started_at=row.started_at,
        submitted_at=row.submitted_at,
        graded_at=row.graded_at,
        created_at=row.created_at,
    )


def _student_assignment_to_row(sa: StudentAssignment) -> StudentAssignmentRow:
    return StudentAssignmentRow(
        id=sa.id,
        student_id=sa.student_id,
        assignment_id=sa.assignment_id,
        status=sa.status.value,
        score=sa.score,
        attempts=sa.attempts,
        is_adaptive=sa.is_adaptive,
        original_assignment_id=sa.original_assignment_id,
        feedback=sa.feedback,
        due_date=sa.due_date,
        started_at=sa.started_at,
        submitted_at=sa.submitted_at,
        graded_at=sa.graded_at,
        created_at=sa.created_at,
    )


def _record_from_row(row: SchedulingRecordRow) -> SchedulingRecord:
    return SchedulingRecord(
        student_id=row.student_id,
        question_id=row.question_id,
        ease_factor=row.ease_factor,
        interval_days=row.interval_days,
        repetitions=row.repetitions,
        next_review_date=row.next_review_date,
        last_review_date=row.last_review_date,
    )


def _record_to_row(record: SchedulingRecord) -> SchedulingRecordRow:
    return SchedulingRecordRow(
        student_id=record.student_id,
        question_id=record.question_id,
        ease_factor=record.ease_factor,
        interval_days=record.interval_days,
        repetitions=record.repetitions,
        next_review_date=record.next_review_date,
        last_review_date=record.last_review_date,
    )


# =============================================================================
# Stores
# =============================================================================


class SqlQuestionStore(_SqlStore):
    def find_by_id(self, question_id: str) -> Question | None:
        with self._session() as session:
            row = session.get(QuestionRow, question_id)
            return _question_from_row(row) if row else None

    def find_by_tags(self, tags: list[str]) -> list[Question]:
        if not tags:
            return []
        tagged = select(QuestionTagRow.question_id).where(QuestionTagRow.tag.in_(tags))
        stmt = (
            select(QuestionRow)
            .where(QuestionRow.id.in_(tagged))
            .order_by(QuestionRow.created_at, QuestionRow.id)
        )
        with self._session() as session:
            return [_question_from_row(row) for row in session.scalars(stmt)]

    def find_all(self) -> list[Question]:
        stmt = select(QuestionRow).order_by(QuestionRow.created_at, QuestionRow.id)
        with self._session() as session:
            return [_question_from_row(row) for row in session.scalars(stmt)]

    def save(self, question: Question) -> Question:
        with self._session() as session:
            session.merge(_question_to_row(question))
        return question

    def delete(self, question_id: str) -> bool:
        with self._session() as session:
            row = session.get(QuestionRow, question_id)
            if row is None:
                return False
            session.delete(row)
            return True


class SqlAnswerStore(_SqlStore):
    def find_by_id(self, answer_id: str) -> Answer | None:
        with self._session() as session:
            row = session.get(AnswerRow, answer_id)
            return _answer_from_row(row) if row else None

    def _find(self, *criteria: Any) -> list[Answer]:
        stmt = select(AnswerRow).where(*criteria).order_by(AnswerRow.created_at, AnswerRow.id)
        with self._session() as session:
            return [_answer_from_row(row) for row in session.scalars(stmt)]

    def find_by_student_id(self, student_id: str) -> list[Answer]:
        return self._find(AnswerRow.student_id == student_id)

    def find_incorrect_by_student_id(self, student_id: str) -> list[Answer]:
        return self._find(AnswerRow.student_id == student_id, AnswerRow.is_correct.is_(False))

    def find_by_student_assignment_id(self, student_assignment_id: str) -> list[Answer]:
        return self._find(AnswerRow.student_assignment_id == student_assignment_id)

    def save(self, answer: Answer) -> Answer:
        with self._session() as session:
            session.merge(_answer_to_row(answer))
        return answer


class SqlAssignmentStore(_SqlStore):
    def find_by_id(self, assignment_id: str) -> Assignment | None:
        with self._session() as session:
            row = session.get(AssignmentRow, assignment_id)
            return _assignment_from_row(row) if row else None

    def find_all(self) -> list[Assignment]:
        stmt = select(AssignmentRow).order_by(AssignmentRow.created_at, AssignmentRow.id)
        with self._session() as session:
            return [_assignment_from_row(row) for row in session.scalars(stmt)]

    def save(self, assignment: Assignment) -> Assignment:
        with self._session() as session:
            session.merge(_assignment_to_row(assignment))
        return assignment

    def delete(self, assignment_id: str) -> bool:
        stmt = delete(AssignmentRow).where(AssignmentRow.id == assignment_id)
        with self._session() as session:
            return session.execute(stmt).rowcount > 0

    def update_status(self, assignment_id: str, status: AssignmentStatus) -> Assignment | None:
        with self._session() as session:
            row = session.get(AssignmentRow, assignment_id)
            if row is None:
                return None
            row.status = status.value
            session.flush()
            return _assignment_from_row(row)


class SqlStudentAssignmentStore(_SqlStore):
    def find_by_id(self, student_assignment_id: str) -> StudentAssignment | None:
        with self._session() as session:
            row = session.get(StudentAssignmentRow, student_assignment_id)
            return _student_assignment_from_row(row) if row else None

    def find_by_student_id(self, student_id: str) -> list[StudentAssignment]:
        stmt = (
            select(StudentAssignmentRow)
            .where(StudentAssignmentRow.student_id == student_id)
            .order_by(StudentAssignmentRow.created_at, StudentAssignmentRow.id)
        )
        with self._session() as session:
            return [_student_assignment_from_row(row) for row in session.scalars(stmt)]

    def save(self, student_assignment: StudentAssignment) -> StudentAssignment:
        with self._session() as session:
            session.merge(_student_assignment_to_row(student_assignment))
        return student_assignment

    def update_status(
        self,
        student_assignment_id: str,
        expected: StudentAssignmentStatus,
        status: StudentAssignmentStatus,
        **changes: Any,
    ) -> StudentAssignment | None:
        stmt = (
            update(StudentAssignmentRow)
            .where(
                StudentAssignmentRow.id == student_assignment_id,
                StudentAssignmentRow.status == expected.value,
            )
            .values(status=status.value, **changes)
            .execution_options(synchronize_session=False)
        )
        with self._session() as session:
            if session.execute(stmt).rowcount == 0:
                return None
            row = session.get(StudentAssignmentRow, student_assignment_id, populate_existing=True)
            return _student_assignment_from_row(row)


class SqlSchedulingRecordStore(_SqlStore):
    def __init__(self, session_factory: sessionmaker[Session]):
        super().__init__(session_factory)
        self._key_locks = KeyedLocks()

    def get(self, student_id: str, question_id: str) -> SchedulingRecord | None:
        with self._session() as session:
            row = session.get(SchedulingRecordRow, (student_id, question_id))
            return _record_from_row(row) if row else None

    def save(self, record: SchedulingRecord) -> SchedulingRecord:
        with self._session() as session:
            session.merge(_record_to_row(record))
        return record

    def get_due(self, student_id: str, before: datetime, limit: int) -> list[SchedulingRecord]:
        stmt = (
            select(SchedulingRecordRow)
            .where(
                SchedulingRecordRow.student_id == student_id,
                SchedulingRecordRow.next_review_date <= before,
            )
            .order_by(SchedulingRecordRow.next_review_date, SchedulingRecordRow.question_id)
            .limit(limit)
        )
        with self._session() as session:
            return [_record_from_row(row) for row in session.scalars(stmt)]

    def get_student_question_ids(self, student_id: str) -> set[str]:
        stmt = select(SchedulingRecordRow.question_id).where(SchedulingRecordRow.student_id == student_id)
        with self._session() as session:
            return set(session.scalars(stmt))

    def get_recently_lapsed(self, student_id: str, limit: int) -> list[str]:
        stmt = (
            select(SchedulingRecordRow.question_id)
            .where(
                SchedulingRecordRow.student_id == student_id,
                SchedulingRecordRow.repetitions <= 1,
                SchedulingRecordRow.last_review_date.is_not(None),
            )
            .order_by(SchedulingRecordRow.last_review_date.desc())
            .limit(limit)
        )
        with self._session() as session:
            return list(session.scalars(stmt))

    @contextmanager
    def locked(self, student_id: str, question_id: str) -> Generator[None, None, None]:
        """
        Hold the record's lock for the duration of the block.

        Calls on this store from the same thread join the locked
        transaction. Threads of this process queue on a per-pair lock;
        across processes PostgreSQL holds the row lock (FOR UPDATE) and
        file-backed SQLite the database write lock (BEGIN IMMEDIATE).
        """
        if getattr(self._local, "session", None) is not None:
            yield
            return

        with self._key_locks.hold((student_id, question_id)), session_scope(self._factory) as session:
            session.execute(
                select(SchedulingRecordRow)
                .where(
                    SchedulingRecordRow.student_id == student_id,
                    SchedulingRecordRow.question_id == question_id,
                )
                .with_for_update()
            )
            self._local.session = session
            try:
                yield
            finally:
                self._local.session = None

    def delete_for_student(self, student_id: str) -> int:
        stmt = delete(SchedulingRecordRow).where(SchedulingRecordRow.student_id == student_id)
        with self._session() as session:
            return session.execute(stmt).rowcount

    def delete_for_question(self, question_id: str) -> int:
        stmt = delete(SchedulingRecordRow).where(SchedulingRecordRow.question_id == question_id)
        with self._session() as session:
            return session.execute(stmt).rowcount
