"""
Grading Engine.

Computes per-answer correctness and an assignment-level percentage score.
Pure over its inputs: correctness is returned, never persisted here.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from loguru import logger

from adaptive_learning.core.exceptions import NotFoundError
from adaptive_learning.domain.models import Answer, Question, QuestionType
from adaptive_learning.grading.base import GradingResult, GradingStrategy
from adaptive_learning.grading.strategies import DEFAULT_STRATEGIES


class GradingEngine:
    """
    Grades batches of submitted answers.

    Strategies are looked up per question type in an explicit mapping so
    callers can swap one out without touching global state.
    """

    def __init__(self, strategies: Mapping[QuestionType, GradingStrategy] | None = None):
        self.strategies: dict[QuestionType, GradingStrategy] = {
            qtype: cls() for qtype, cls in DEFAULT_STRATEGIES.items()
        }
        if strategies:
            self.strategies.update(strategies)

    def evaluate(
        self,
        answers: Iterable[Answer],
        questions: Mapping[str, Question],
    ) -> list[GradingResult]:
        """
        Grade each answer individually.

        Args:
            answers: Submitted answers
            questions: Question lookup by id

        Returns:
            One GradingResult per answer, in input order

        Raises:
            NotFoundError: If an answer references an unknown question
        """
        results = []
        for answer in answers:
            question = questions.get(answer.question_id)
            if question is None:
                raise NotFoundError("Question", answer.question_id)
            strategy = self.strategies[question.question_type]
            results.append(strategy.grade(answer, question))
        return results

    def grade(
        self,
        answers: Iterable[Answer],
        questions: Mapping[str, Question],
    ) -> tuple[float, int]:
        """
        Grade a submission.

        Essays without a human verdict are left out of the denominator; when
        nothing is gradable the score is 0.

        Returns:
            (score 0-100, gradable answer count)
        """
        results = self.evaluate(answers, questions)
        return self.score(results)

    @staticmethod
    def score(results: Iterable[GradingResult]) -> tuple[float, int]:
        """Percentage score over the gradable results."""
        gradable = [r for r in results if r.gradable]
        if not gradable:
            return 0.0, 0

        correct = sum(1 for r in gradable if r.is_correct)
        score = 100.0 * correct / len(gradable)

        logger.debug(f"Scored {correct}/{len(gradable)} gradable answers ({score:.1f}%)")
        return score, len(gradable)
