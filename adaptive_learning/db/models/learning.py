"""
Adaptive Learning ORM Models.

Portable SQLAlchemy models (SQLite and PostgreSQL) for:
- Questions and their tags
- Answers
- Assignments and per-student assignments
- SM-2 scheduling records

Type-specific question data and answer payloads are stored as JSON so a
single table serves every question type.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class QuestionRow(Base):
    """
    A question with its type-specific correctness payload.

    Payload JSON by question_type:
        multiple_choice: {"options": [{"id", "text", "is_correct"}, ...]}
        true_false:      {"correct_answer": bool}
        short_answer:    {"accepted_answers": [...], "case_sensitive": bool}
        essay:           {"rubric": str, "word_limit": int}
        matching:        {"pairs": [{"id", "left", "right"}, ...]}
    """

    __tablename__ = "questions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    question_type: Mapped[str] = mapped_column(String(32), nullable=False)
    prompt: Mapped[str] = mapped_column(Text, default="")
    difficulty: Mapped[str] = mapped_column(String(16), default="medium")
    explanation: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[str | None] = mapped_column(String(36))
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)

    tags: Mapped[list[QuestionTagRow]] = relationship(
        back_populates="question",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="QuestionTagRow.position",
    )

    __table_args__ = (Index("idx_questions_created", "created_at", "id"),)

    def __repr__(self) -> str:
        return f"<QuestionRow {self.id} type={self.question_type}>"


class QuestionTagRow(Base):
    __tablename__ = "question_tags"

    question_id: Mapped[str] = mapped_column(
        ForeignKey("questions.id", ondelete="CASCADE"), primary_key=True
    )
    tag: Mapped[str] = mapped_column(String(255), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, default=0)

    question: Mapped[QuestionRow] = relationship(back_populates="tags")

    __table_args__ = (Index("idx_question_tags_tag", "tag"),)


class AnswerRow(Base):
    __tablename__ = "answers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    student_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    question_id: Mapped[str] = mapped_column(String(36), nullable=False)
    student_assignment_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    question_type: Mapped[str] = mapped_column(String(32), nullable=False)
    attempt_number: Mapped[int] = mapped_column(Integer, default=1)
    is_correct: Mapped[bool | None] = mapped_column(Boolean)

    selected_option_id: Mapped[str | None] = mapped_column(String(36))
    boolean_answer: Mapped[bool | None] = mapped_column(Boolean)
    text_answer: Mapped[str | None] = mapped_column(Text)
    matches: Mapped[list[list[str]]] = mapped_column(JSON, default=list)

    response_ms: Mapped[int | None] = mapped_column(Integer)
    feedback: Mapped[str | None] = mapped_column(Text)
    essay_score: Mapped[float | None] = mapped_column(Float)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)

    __table_args__ = (Index("idx_answers_student_correct", "student_id", "is_correct"),)

    def __repr__(self) -> str:
        return f"<AnswerRow {self.id} student={self.student_id} question={self.question_id} correct={self.is_correct}>"


class AssignmentRow(Base):
    __tablename__ = "assignments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    assignment_type: Mapped[str] = mapped_column(String(16), nullable=False)
    question_ids: Mapped[list[str]] = mapped_column(JSON, default=list)
    settings: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    created_by: Mapped[str | None] = mapped_column(String(36))
    status: Mapped[str] = mapped_column(String(16), default="draft")
    due_date: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)

    def __repr__(self) -> str:
        return f"<AssignmentRow {self.id} '{self.title}' status={self.status}>"


class StudentAssignmentRow(Base):
    __tablename__ = "student_assignments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    student_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    assignment_id: Mapped[str] = mapped_column(String(36), nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="assigned")
    score: Mapped[float | None] = mapped_column(Float)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    is_adaptive: Mapped[bool] = mapped_column(Boolean, default=False)
    original_assignment_id: Mapped[str | None] = mapped_column(String(36))
    feedback: Mapped[str | None] = mapped_column(Text)
    due_date: Mapped[datetime | None] = mapped_column(DateTime)
    started_at: Mapped[datetime | None] = mapped_column(DateTime)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime)
    graded_at: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)

    def __repr__(self) -> str:
        return f"<StudentAssignmentRow {self.id} student={self.student_id} status={self.status}>"


class SchedulingRecordRow(Base):
    """
    SM-2 state per (student, question).

    Removed with its question through the foreign key cascade.
    """

    __tablename__ = "scheduling_records"

    student_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    question_id: Mapped[str] = mapped_column(
        ForeignKey("questions.id", ondelete="CASCADE"), primary_key=True
    )
    ease_factor: Mapped[float] = mapped_column(Float, default=2.5)
    interval_days: Mapped[int] = mapped_column(Integer, default=1)
    repetitions: Mapped[int] = mapped_column(Integer, default=0)
    next_review_date: Mapped[datetime | None] = mapped_column(DateTime)
    last_review_date: Mapped[datetime | None] = mapped_column(DateTime)

    __table_args__ = (
        Index("idx_scheduling_due", "student_id", "next_review_date"),
        Index("idx_scheduling_lapsed", "student_id", "repetitions", "last_review_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<SchedulingRecordRow student={self.student_id} question={self.question_id} "
            f"ease={self.ease_factor:.2f} interval={self.interval_days}>"
        )
