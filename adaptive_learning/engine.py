"""
Learning Engine.

Wires the stores, grading, scheduling, practice generation, adaptive
reassignment and the assignment service together, and exposes them
through a plain command table:

    engine = LearningEngine.in_memory()
    commands = build_command_table(engine)
    dispatch(commands, "review", student_id="s1", question_id="q1", quality=4)

There is no global registry. Each table is built from one engine, so
tests and callers can run several engines side by side.
"""

from __future__ import annotations

import random
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from loguru import logger

from adaptive_learning.adaptive.reassignment import AdaptiveReassignmentPolicy
from adaptive_learning.assignments.service import AssignmentService
from adaptive_learning.core.exceptions import InvalidInputError, NotFoundError
from adaptive_learning.db.memory import (
    InMemoryAnswerStore,
    InMemoryAssignmentStore,
    InMemoryQuestionStore,
    InMemorySchedulingRecordStore,
    InMemoryStudentAssignmentStore,
)
from adaptive_learning.domain.models import Answer, Question
from adaptive_learning.domain.ports import (
    AnswerStore,
    AssignmentStore,
    QuestionStore,
    SchedulingRecordStore,
    StudentAssignmentStore,
)
from adaptive_learning.grading.engine import GradingEngine
from adaptive_learning.practice.generator import PracticeConfig, PracticeSessionGenerator
from adaptive_learning.scheduling.scheduler import SpacedRepetitionScheduler
from adaptive_learning.scheduling.sm2 import SM2Config, SM2Scheduler
from config import Settings, get_settings

CommandTable = dict[str, Callable[..., Any]]


@dataclass
class Stores:
    """The full set of storage ports an engine runs on."""
    questions: QuestionStore
    answers: AnswerStore
    assignments: AssignmentStore
    student_assignments: StudentAssignmentStore
    records: SchedulingRecordStore


class LearningEngine:
    """
    All engine components over one set of stores.
    """

    def __init__(
        self,
        stores: Stores,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
        rng: random.Random | None = None,
    ):
        self.settings = settings or get_settings()
        self.stores = stores
        self.clock = clock or datetime.now
        self.rng = rng or random.Random()

        self.grading = GradingEngine()
        self.scheduler = SpacedRepetitionScheduler(
            stores.records,
            stores.questions,
            sm2=SM2Scheduler(SM2Config.from_settings(self.settings), rng=self.rng),
            clock=self.clock,
            rng=self.rng,
            due_ratio=self.settings.review_due_ratio,
        )
        self.practice = PracticeSessionGenerator(
            stores.questions,
            stores.answers,
            config=PracticeConfig(
                question_count=self.settings.practice_question_count,
                mastery_threshold=self.settings.practice_mastery_threshold,
            ),
            rng=self.rng,
        )
        self.policy = AdaptiveReassignmentPolicy(
            stores.questions,
            stores.assignments,
            stores.student_assignments,
            similar_limit=self.settings.adaptive_similar_limit,
            due_days=self.settings.adaptive_due_days,
            clock=self.clock,
        )
        self.assignments = AssignmentService(
            stores.questions,
            stores.answers,
            stores.assignments,
            stores.student_assignments,
            grading=self.grading,
            policy=self.policy,
            scheduler=self.scheduler,
            clock=self.clock,
        )

    @classmethod
    def in_memory(cls, settings: Settings | None = None, **kwargs: Any) -> LearningEngine:
        """Engine over fresh in-memory stores."""
        stores = Stores(
            questions=InMemoryQuestionStore(),
            answers=InMemoryAnswerStore(),
            assignments=InMemoryAssignmentStore(),
            student_assignments=InMemoryStudentAssignmentStore(),
            records=InMemorySchedulingRecordStore(),
        )
        return cls(stores, settings=settings, **kwargs)

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **kwargs: Any) -> LearningEngine:
        """Engine over the SQL database named by ``database_url``."""
        from adaptive_learning.db.database import create_engine_for, get_session_factory
        from adaptive_learning.db.repositories import (
            SqlAnswerStore,
            SqlAssignmentStore,
            SqlQuestionStore,
            SqlSchedulingRecordStore,
            SqlStudentAssignmentStore,
        )

        settings = settings or get_settings()
        factory = get_session_factory(
            create_engine_for(settings.database_url, echo=settings.log_level == "DEBUG")
        )
        stores = Stores(
            questions=SqlQuestionStore(factory),
            answers=SqlAnswerStore(factory),
            assignments=SqlAssignmentStore(factory),
            student_assignments=SqlStudentAssignmentStore(factory),
            records=SqlSchedulingRecordStore(factory),
        )
        return cls(stores, settings=settings, **kwargs)

    # =========================================================================
    # Cross-component operations
    # =========================================================================

    def grade_answers(self, answers: Iterable[Answer]) -> tuple[float, int]:
        """Grade answers against their stored questions."""
        answers = list(answers)
        questions: dict[str, Question] = {}
        for answer in answers:
            question = self.stores.questions.find_by_id(answer.question_id)
            if question is None:
                raise NotFoundError("Question", answer.question_id)
            questions[question.id] = question
        return self.grading.grade(answers, questions)

    def remove_question(self, question_id: str) -> bool:
        """Delete a question and its scheduling records."""
        self.scheduler.remove_question(question_id)
        removed = self.stores.questions.delete(question_id)
        if removed:
            logger.info(f"Removed question {question_id}")
        return removed

    def remove_student(self, student_id: str) -> int:
        return self.scheduler.remove_student(student_id)


# =============================================================================
# Command table
# =============================================================================


def validate_quality(quality: Any) -> int:
    """Reject SM-2 quality ratings outside 0-5."""
    if isinstance(quality, bool) or not isinstance(quality, int) or not 0 <= quality <= 5:
        raise InvalidInputError(f"Quality must be an integer from 0 to 5, got {quality!r}")
    return quality


def validate_positive(name: str, value: int) -> int:
    if value <= 0:
        raise InvalidInputError(f"{name} must be positive, got {value}")
    return value


def build_command_table(engine: LearningEngine) -> CommandTable:
    """
    Map command names to handlers bound to ``engine``.

    Handlers validate their input before any write.
    """
    settings = engine.settings

    def review(student_id: str, question_id: str, quality: int):
        return engine.scheduler.review(student_id, question_id, validate_quality(quality))

    def due_questions(student_id: str, limit: int | None = None, include_new: bool = True):
        limit = validate_positive("limit", settings.due_questions_limit if limit is None else limit)
        return engine.scheduler.due_questions(student_id, limit=limit, include_new=include_new)

    def review_session(student_id: str, session_size: int | None = None):
        size = settings.review_session_size if session_size is None else session_size
        return engine.scheduler.review_session(student_id, validate_positive("session_size", size))

    def practice_quiz(student_id: str, question_count: int | None = None):
        if question_count is not None:
            validate_positive("question_count", question_count)
        return engine.practice.generate_practice_quiz(student_id, question_count)

    def weak_areas(student_id: str, limit: int | None = None):
        if limit is not None:
            validate_positive("limit", limit)
        return engine.practice.weak_areas(student_id, limit)

    return {
        "initialize_schedule": engine.scheduler.initialize,
        "review": review,
        "review_answer": engine.scheduler.review_answer,
        "due_questions": due_questions,
        "review_session": review_session,
        "practice_quiz": practice_quiz,
        "frequently_missed": engine.practice.frequently_missed_questions,
        "weak_areas": weak_areas,
        "grade_answers": engine.grade_answers,
        "create_assignment": engine.assignments.create_assignment,
        "assign": engine.assignments.assign_to_student,
        "start_assignment": engine.assignments.start,
        "submit_assignment": engine.assignments.submit,
        "grade_assignment": engine.assignments.grade,
        "complete_grading": engine.assignments.complete_grading,
        "record_essay_grade": engine.assignments.record_essay_grade,
        "can_retake": engine.assignments.can_retake,
        "reset_for_retake": engine.assignments.reset_for_retake,
        "mark_for_reassignment": engine.assignments.mark_for_reassignment,
        "progress_over_time": engine.assignments.progress_over_time,
        "remove_student": engine.remove_student,
        "remove_question": engine.remove_question,
    }


def dispatch(table: CommandTable, name: str, **kwargs: Any) -> Any:
    """Run one command by name."""
    handler = table.get(name)
    if handler is None:
        raise NotFoundError("Command", name)
    logger.debug(f"Dispatching {name}")
    return handler(**kwargs)
