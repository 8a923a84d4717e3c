"""
Spaced Repetition Scheduler.

Owns one SchedulingRecord per (student, question) pair and drives it
through SM-2 reviews. Also selects due/new questions and assembles
review sessions mixing due questions with recent lapses.
"""

from __future__ import annotations

import math
import random
from collections.abc import Callable
from datetime import datetime

from loguru import logger

from adaptive_learning.core.exceptions import InvalidInputError, NotFoundError
from adaptive_learning.domain.models import SchedulingRecord
from adaptive_learning.domain.ports import QuestionStore, SchedulingRecordStore
from adaptive_learning.scheduling.sm2 import SM2Scheduler


class SpacedRepetitionScheduler:
    """
    Per-question review scheduling for students.

    Key behaviours:
    1. The first review of a pair only initializes it (its quality is discarded)
    2. Every later review is one SM-2 update, atomic per pair
    3. Due questions come first, oldest due date first
    4. New questions back-fill a due list in random order
    """

    def __init__(
        self,
        records: SchedulingRecordStore,
        questions: QuestionStore,
        sm2: SM2Scheduler | None = None,
        clock: Callable[[], datetime] | None = None,
        rng: random.Random | None = None,
        due_ratio: float = 0.7,
    ):
        """
        Initialize the scheduler.

        Args:
            records: Scheduling record store
            questions: Question store (for new-question back-fill)
            sm2: SM2Scheduler (creates default if None)
            clock: Returns the current time (datetime.now if None)
            rng: Random source for sampling and shuffling
            due_ratio: Share of a review session given to due/new questions
        """
        self.records = records
        self.questions = questions
        self.sm2 = sm2 or SM2Scheduler(rng=rng)
        self.clock = clock or datetime.now
        self.rng = rng or random.Random()
        self.due_ratio = due_ratio

    # =========================================================================
    # Reviews
    # =========================================================================

    def initialize(self, student_id: str, question_id: str) -> SchedulingRecord:
        """
        Create the scheduling record for a pair.

        Overwrites any existing state; callers must not use this to reset a
        record that is already being reviewed.
        """
        self._require_question(question_id)
        return self._save_initial(student_id, question_id)

    def review(self, student_id: str, question_id: str, quality: int) -> SchedulingRecord:
        """
        Record a review and update scheduling state.

        Args:
            student_id: Reviewing student
            question_id: Reviewed question
            quality: SM-2 quality (0-5); not clamped here

        Raises:
            NotFoundError: If the question does not exist

        Returns:
            The persisted SchedulingRecord
        """
        self._require_question(question_id)

        with self.records.locked(student_id, question_id):
            current = self.records.get(student_id, question_id)

            if current is None:
                return self._save_initial(student_id, question_id)

            updated = self.sm2.calculate_next_review(current, quality, self.clock())
            self.records.save(updated)

        logger.debug(
            f"Recorded review for student={student_id} question={question_id}: "
            f"quality={quality}, ease={updated.ease_factor:.2f}, "
            f"interval={updated.interval_days}d, next_review={updated.next_review_date}"
        )
        return updated

    def _require_question(self, question_id: str) -> None:
        if self.questions.find_by_id(question_id) is None:
            raise NotFoundError("Question", question_id)

    def _save_initial(self, student_id: str, question_id: str) -> SchedulingRecord:
        record = self.sm2.initial_record(student_id, question_id, self.clock())
        self.records.save(record)
        logger.debug(f"Initialized schedule for student={student_id} question={question_id}")
        return record

    def review_answer(
        self,
        student_id: str,
        question_id: str,
        is_correct: bool,
        response_ms: int | None = None,
    ) -> SchedulingRecord:
        """Review a question from a graded answer."""
        quality = self.sm2.quality_from_answer(is_correct, response_ms)
        return self.review(student_id, question_id, quality)

    # =========================================================================
    # Selection
    # =========================================================================

    def due_questions(
        self,
        student_id: str,
        limit: int = 20,
        include_new: bool = True,
    ) -> list[str]:
        """
        Get question IDs due for review.

        Args:
            student_id: The student
            limit: Maximum questions to return
            include_new: Back-fill with never-scheduled questions

        Returns:
            Due ids (oldest due first) followed by sampled new ids
        """
        if limit < 0:
            raise InvalidInputError(f"limit must be >= 0, got {limit}")

        due = self.records.get_due(student_id, self.clock(), limit)
        question_ids = [record.question_id for record in due]

        if include_new and len(question_ids) < limit:
            scheduled = self.records.get_student_question_ids(student_id)
            new_ids = [q.id for q in self.questions.find_all() if q.id not in scheduled]
            slots = min(limit - len(question_ids), len(new_ids))
            question_ids.extend(self.rng.sample(new_ids, slots))

        return question_ids

    def review_session(self, student_id: str, session_size: int = 20) -> list[str]:
        """
        Build a shuffled review session.

        Mixes due/new questions with recently lapsed ones, de-duplicated and
        interleaved rather than blocked.
        """
        if session_size < 0:
            raise InvalidInputError(f"session_size must be >= 0, got {session_size}")

        due_ids = self.due_questions(student_id, math.ceil(session_size * self.due_ratio))
        lapsed_ids = self.records.get_recently_lapsed(
            student_id, math.ceil(session_size * (1 - self.due_ratio))
        )

        unique_ids = list(dict.fromkeys(due_ids + lapsed_ids))
        self.rng.shuffle(unique_ids)
        session = unique_ids[:session_size]

        logger.info(
            f"Review session for {student_id}: {len(due_ids)} due/new, "
            f"{len(lapsed_ids)} lapsed, {len(session)} total"
        )
        return session

    # =========================================================================
    # Cascade removal
    # =========================================================================

    def remove_student(self, student_id: str) -> int:
        removed = self.records.delete_for_student(student_id)
        logger.info(f"Removed {removed} scheduling records for student {student_id}")
        return removed

    def remove_question(self, question_id: str) -> int:
        removed = self.records.delete_for_question(question_id)
        logger.info(f"Removed {removed} scheduling records for question {question_id}")
        return removed
