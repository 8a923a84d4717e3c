"""
Practice Session Generator.

Builds interleaved practice quizzes from a student's answer history:
- Frequently missed questions (always included)
- Tag-related questions the student has not yet mastered

Missed questions are never removed by the mastery filter. The final list
is shuffled so topics are mixed rather than blocked.
"""
from __future__ import annotations

import random
from collections import Counter
from dataclasses import dataclass, field

from loguru import logger

from adaptive_learning.core.exceptions import InvalidInputError
from adaptive_learning.domain.models import Question
from adaptive_learning.domain.ports import AnswerStore, QuestionStore


@dataclass
class PracticeConfig:
    """Configuration for practice quiz generation."""
    question_count: int = 10
    mastery_threshold: int = 3  # Correct answers before a related question is skipped


@dataclass
class PracticePool:
    """Candidate questions for one practice quiz."""
    missed_ids: list[str] = field(default_factory=list)
    related_ids: list[str] = field(default_factory=list)
    mastered_ids: list[str] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.missed_ids) + len(self.related_ids)


class PracticeSessionGenerator:
    """
    Generates practice quizzes with interleaving.

    The algorithm:
    1. Rank questions by how often the student missed them
    2. Pull in questions sharing any tag with those
    3. Drop related questions the student has mastered
    4. Keep every missed question, fill the rest at random
    5. Shuffle, then truncate to the requested size
    """

    def __init__(
        self,
        questions: QuestionStore,
        answers: AnswerStore,
        config: PracticeConfig | None = None,
        rng: random.Random | None = None,
    ):
        self.questions = questions
        self.answers = answers
        self.config = config or PracticeConfig()
        self.rng = rng or random.Random()

    def frequently_missed_questions(self, student_id: str) -> list[Question]:
        """
        Questions the student answered incorrectly, most-missed first.

        Ties keep the order in which the questions were first missed.
        """
        miss_counts = Counter(a.question_id for a in self.answers.find_incorrect_by_student_id(student_id))

        missed = []
        for question_id, _count in miss_counts.most_common():
            question = self.questions.find_by_id(question_id)
            if question is None:
                logger.warning(f"Missed question {question_id} no longer exists - skipping")
                continue
            missed.append(question)
        return missed

    def build_pool(self, student_id: str) -> PracticePool:
        """Collect missed and unmastered related question ids."""
        missed = self.frequently_missed_questions(student_id)
        pool = PracticePool(missed_ids=[q.id for q in missed])

        tags = sorted({tag for q in missed for tag in q.tags})
        if not tags:
            return pool

        correct_counts = Counter(
            a.question_id for a in self.answers.find_by_student_id(student_id) if a.is_correct
        )
        seen = set(pool.missed_ids)

        for question in self.questions.find_by_tags(tags):
            if question.id in seen:
                continue
            seen.add(question.id)
            if correct_counts[question.id] >= self.config.mastery_threshold:
                pool.mastered_ids.append(question.id)
            else:
                pool.related_ids.append(question.id)

        return pool

    def generate_practice_quiz(self, student_id: str, question_count: int | None = None) -> list[str]:
        """
        Generate a practice quiz.

        Args:
            student_id: The student
            question_count: Maximum quiz length (config default if None)

        Returns:
            Shuffled question ids, length min(question_count, pool size)
        """
        count = self.config.question_count if question_count is None else question_count
        if count < 0:
            raise InvalidInputError(f"question_count must be >= 0, got {count}")

        pool = self.build_pool(student_id)

        selected = list(pool.missed_ids)
        remaining = list(pool.related_ids)
        while len(selected) < count and remaining:
            selected.append(remaining.pop(self.rng.randrange(len(remaining))))

        self.rng.shuffle(selected)
        quiz = selected[:count]

        logger.info(
            f"Practice quiz for {student_id}: {len(pool.missed_ids)} missed, "
            f"{len(pool.related_ids)} related, {len(pool.mastered_ids)} mastered skipped "
            f"-> {len(quiz)} questions"
        )
        return quiz

    def weak_areas(self, student_id: str, limit: int | None = None) -> list[tuple[str, int]]:
        """
        Tags the student misses most.

        Returns:
            (tag, incorrect answer count) pairs, highest count first
        """
        miss_counts = Counter(a.question_id for a in self.answers.find_incorrect_by_student_id(student_id))
        tag_counts: Counter[str] = Counter()

        for question_id, count in miss_counts.items():
            question = self.questions.find_by_id(question_id)
            if question is None:
                continue
            for tag in question.tags:
                tag_counts[tag] += count

        return tag_counts.most_common(limit)
