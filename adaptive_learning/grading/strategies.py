"""
Grading Strategy Implementations.

One concrete strategy per question type.
"""

from __future__ import annotations

from adaptive_learning.domain.models import Answer, Question, QuestionType
from adaptive_learning.grading.base import GradingResult, GradingStrategy


class MultipleChoiceStrategy(GradingStrategy):
    """Correct iff the selected option is flagged correct."""

    question_type = QuestionType.MULTIPLE_CHOICE
    name = "multiple_choice"

    def _validate_response(self, answer: Answer) -> tuple[bool, str | None]:
        if not answer.selected_option_id:
            return False, "No option selected"
        return True, None

    def check(self, answer: Answer, question: Question) -> GradingResult:
        option = question.option(answer.selected_option_id)
        is_correct = option is not None and option.is_correct
        return self._result(
            answer,
            question,
            is_correct,
            expected=[o.id for o in question.options if o.is_correct],
            actual=answer.selected_option_id,
            details={"unknown_option": option is None},
        )


class TrueFalseStrategy(GradingStrategy):
    """Exact boolean equality."""

    question_type = QuestionType.TRUE_FALSE
    name = "true_false"

    def _validate_response(self, answer: Answer) -> tuple[bool, str | None]:
        if answer.boolean_answer is None:
            return False, "No answer provided"
        return True, None

    def check(self, answer: Answer, question: Question) -> GradingResult:
        is_correct = (
            question.correct_answer is not None
            and bool(answer.boolean_answer) == bool(question.correct_answer)
        )
        return self._result(
            answer,
            question,
            is_correct,
            expected=question.correct_answer,
            actual=answer.boolean_answer,
        )


class ShortAnswerStrategy(GradingStrategy):
    """
    Grade by membership in the accepted-answer set.

    Surrounding whitespace is ignored; comparison is case-insensitive
    unless the question is case sensitive.
    """

    question_type = QuestionType.SHORT_ANSWER
    name = "short_answer"

    def _validate_response(self, answer: Answer) -> tuple[bool, str | None]:
        if answer.text_answer is None:
            return False, "No response provided"
        return True, None

    def check(self, answer: Answer, question: Question) -> GradingResult:
        case_sensitive = question.case_sensitive
        response = self._normalize(answer.text_answer, case_sensitive)
        accepted = {self._normalize(a, case_sensitive) for a in question.accepted_answers}
        is_correct = response in accepted
        return self._result(
            answer,
            question,
            is_correct,
            expected=list(question.accepted_answers),
            actual=answer.text_answer,
            details={"case_sensitive": case_sensitive},
        )


class MatchingStrategy(GradingStrategy):
    """
    All-or-nothing pair matching.

    The submitted left->right mapping must equal the canonical one: every
    pair present and every pair correct.
    """

    question_type = QuestionType.MATCHING
    name = "matching"

    def _validate_response(self, answer: Answer) -> tuple[bool, str | None]:
        if not answer.matches:
            return False, "No matches submitted"
        lefts = [left for left, _ in answer.matches]
        if len(lefts) != len(set(lefts)):
            return False, "Each item may only be matched once"
        return True, None

    def check(self, answer: Answer, question: Question) -> GradingResult:
        canonical = {p.left: p.right for p in question.pairs}
        submitted = dict(answer.matches)
        wrong = sorted(left for left, right in submitted.items() if canonical.get(left) != right)
        missing = sorted(set(canonical) - set(submitted))
        is_correct = not wrong and not missing
        return self._result(
            answer,
            question,
            is_correct,
            expected=canonical,
            actual=submitted,
            details={"mismatched": wrong, "missing": missing},
        )


class EssayStrategy(GradingStrategy):
    """
    Essays are never graded automatically.

    The result carries whatever a human grader has recorded, or None while
    the essay is pending review.
    """

    question_type = QuestionType.ESSAY
    name = "essay"

    def check(self, answer: Answer, question: Question) -> GradingResult:
        pending = answer.is_correct is None
        return GradingResult(
            answer_id=answer.id,
            question_id=question.id,
            is_correct=answer.is_correct,
            feedback_message="Pending manual review" if pending else (answer.feedback or ""),
            actual=answer.text_answer,
            details={"essay_score": answer.essay_score, "pending": pending},
        )


DEFAULT_STRATEGIES: dict[QuestionType, type[GradingStrategy]] = {
    QuestionType.MULTIPLE_CHOICE: MultipleChoiceStrategy,
    QuestionType.TRUE_FALSE: TrueFalseStrategy,
    QuestionType.SHORT_ANSWER: ShortAnswerStrategy,
    QuestionType.MATCHING: MatchingStrategy,
    QuestionType.ESSAY: EssayStrategy,
}
