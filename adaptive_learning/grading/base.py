"""
Base Grading Strategy.

Provides the abstract base for per-question-type grading strategies and
the result record they produce.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar

from adaptive_learning.domain.models import Answer, Question, QuestionType


# =============================================================================
# Grading Result
# =============================================================================


@dataclass
class GradingResult:
    """
    Result of grading one submitted answer.

    ``is_correct`` is None when the answer awaits manual grading.
    """

    answer_id: str
    question_id: str
    is_correct: bool | None
    feedback_message: str = ""

    expected: Any = None
    actual: Any = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def gradable(self) -> bool:
        return self.is_correct is not None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "answer_id": self.answer_id,
            "question_id": self.question_id,
            "is_correct": self.is_correct,
            "feedback_message": self.feedback_message,
            "expected": self.expected,
            "actual": self.actual,
            "details": self.details,
        }


# =============================================================================
# Base Grading Strategy
# =============================================================================


class GradingStrategy(ABC):
    """
    Abstract base class for grading strategies.

    Each strategy knows how to check one question type:
    1. Validate the response payload
    2. Compare against the question's correctness data

    Subclasses must implement ``check()``.
    """

    question_type: ClassVar[QuestionType]
    name: ClassVar[str] = "base_strategy"

    def grade(self, answer: Answer, question: Question) -> GradingResult:
        """
        Grade an answer against its question.

        Args:
            answer: The submitted answer
            question: The question it answers

        Returns:
            GradingResult with correctness and feedback
        """
        is_valid, error = self._validate_response(answer)
        if not is_valid:
            return GradingResult(
                answer_id=answer.id,
                question_id=question.id,
                is_correct=False,
                feedback_message=error or "Invalid response",
            )
        return self.check(answer, question)

    @abstractmethod
    def check(self, answer: Answer, question: Question) -> GradingResult:
        ...

    def _validate_response(self, answer: Answer) -> tuple[bool, str | None]:
        """
        Validate the response format.

        Returns:
            (is_valid, error_message)
        """
        return True, None

    def _normalize(self, text: str, case_sensitive: bool = False) -> str:
        """Normalize text for comparison."""
        text = str(text).strip()
        return text if case_sensitive else text.casefold()

    def _result(self, answer: Answer, question: Question, is_correct: bool, **kwargs: Any) -> GradingResult:
        return GradingResult(
            answer_id=answer.id,
            question_id=question.id,
            is_correct=is_correct,
            feedback_message=self._generate_feedback(is_correct, question),
            **kwargs,
        )

    def _generate_feedback(self, is_correct: bool, question: Question) -> str:
        """Generate appropriate feedback message."""
        if is_correct:
            return "Correct!"
        if question.explanation:
            return f"Incorrect. {question.explanation}"
        return "Incorrect."
