"""
Assignment Service.

Drives a StudentAssignment through its lifecycle and runs the grading
pipeline:

    ASSIGNED -> IN_PROGRESS -> SUBMITTED -> GRADED -> (ASSIGNED | REASSIGNED)

Grading fans out to the adaptive reassignment policy (once per graded
assignment) and the spaced repetition scheduler (once per gradable answer).
Every transition is a compare-and-set in the store, so a transition
attempted twice succeeds once and raises InvalidStateError the second time.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from loguru import logger

from adaptive_learning.adaptive.reassignment import AdaptiveReassignmentPolicy
from adaptive_learning.core.exceptions import (
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from adaptive_learning.domain.models import (
    Answer,
    Assignment,
    AssignmentSettings,
    AssignmentStatus,
    AssignmentType,
    Question,
    QuestionType,
    SchedulingRecord,
    StudentAssignment,
    StudentAssignmentStatus,
    new_id,
)
from adaptive_learning.domain.ports import (
    AnswerStore,
    AssignmentStore,
    QuestionStore,
    StudentAssignmentStore,
)
from adaptive_learning.grading.base import GradingResult
from adaptive_learning.grading.engine import GradingEngine
from adaptive_learning.scheduling.scheduler import SpacedRepetitionScheduler


@dataclass
class GradeOutcome:
    """Everything one grading event produced."""
    student_assignment: StudentAssignment
    score: float
    gradable_count: int
    results: list[GradingResult] = field(default_factory=list)
    adaptive: tuple[Assignment, StudentAssignment] | None = None
    reviews: list[SchedulingRecord] = field(default_factory=list)
    adaptive_failed: bool = False
    failed_reviews: list[str] = field(default_factory=list)  # Question ids

    @property
    def reassigned(self) -> bool:
        return self.adaptive is not None

    @property
    def complete(self) -> bool:
        """False when a follow-up step failed; see AssignmentService.complete_grading."""
        return not self.adaptive_failed and not self.failed_reviews


class AssignmentService:
    """
    StudentAssignment state machine and grading pipeline.
    """

    def __init__(
        self,
        questions: QuestionStore,
        answers: AnswerStore,
        assignments: AssignmentStore,
        student_assignments: StudentAssignmentStore,
        grading: GradingEngine,
        policy: AdaptiveReassignmentPolicy,
        scheduler: SpacedRepetitionScheduler,
        clock: Callable[[], datetime] | None = None,
    ):
        self.questions = questions
        self.answers = answers
        self.assignments = assignments
        self.student_assignments = student_assignments
        self.grading = grading
        self.policy = policy
        self.scheduler = scheduler
        self.clock = clock or datetime.now

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_assignment(self, assignment_id: str) -> Assignment:
        assignment = self.assignments.find_by_id(assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment", assignment_id)
        return assignment

    def get_student_assignment(self, student_assignment_id: str) -> StudentAssignment:
        student_assignment = self.student_assignments.find_by_id(student_assignment_id)
        if student_assignment is None:
            raise NotFoundError("StudentAssignment", student_assignment_id)
        return student_assignment

    # =========================================================================
    # Authoring
    # =========================================================================

    def create_assignment(
        self,
        title: str,
        assignment_type: AssignmentType | str,
        question_ids: Iterable[str],
        settings: AssignmentSettings | dict[str, Any] | None = None,
        created_by: str | None = None,
        description: str | None = None,
        due_date: datetime | None = None,
    ) -> Assignment:
        """
        Create a draft assignment.

        Raises:
            InvalidInputError: Malformed settings or assignment type
            NotFoundError: A listed question does not exist
        """
        if not isinstance(settings, AssignmentSettings):
            settings = AssignmentSettings.parse(settings)
        try:
            assignment_type = AssignmentType(assignment_type)
        except ValueError as e:
            raise InvalidInputError(f"Unknown assignment type: {assignment_type}") from e

        question_ids = list(question_ids)
        for question_id in question_ids:
            if self.questions.find_by_id(question_id) is None:
                raise NotFoundError("Question", question_id)

        assignment = Assignment(
            id=new_id(),
            title=title,
            assignment_type=assignment_type,
            question_ids=question_ids,
            settings=settings,
            created_by=created_by,
            description=description,
            due_date=due_date,
            created_at=self.clock(),
        )
        return self.assignments.save(assignment)

    def assign_to_student(
        self,
        assignment_id: str,
        student_id: str,
        due_date: datetime | None = None,
    ) -> StudentAssignment:
        """Issue an assignment to a student, publishing it if still a draft."""
        assignment = self.get_assignment(assignment_id)
        if assignment.status is AssignmentStatus.DRAFT:
            assignment = self.assignments.update_status(assignment.id, AssignmentStatus.ASSIGNED) or assignment

        student_assignment = StudentAssignment(
            id=new_id(),
            student_id=student_id,
            assignment_id=assignment.id,
            due_date=due_date or assignment.due_date,
            created_at=self.clock(),
        )
        return self.student_assignments.save(student_assignment)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self, student_assignment_id: str) -> StudentAssignment:
        return self._transition(
            student_assignment_id,
            StudentAssignmentStatus.ASSIGNED,
            StudentAssignmentStatus.IN_PROGRESS,
            started_at=self.clock(),
        )

    def submit(self, student_assignment_id: str) -> StudentAssignment:
        current = self.get_student_assignment(student_assignment_id)
        return self._transition(
            student_assignment_id,
            StudentAssignmentStatus.IN_PROGRESS,
            StudentAssignmentStatus.SUBMITTED,
            current=current,
            attempts=current.attempts + 1,
            submitted_at=self.clock(),
        )

    def grade(self, student_assignment_id: str) -> GradeOutcome:
        """
        Grade a submitted assignment.

        Steps:
        1. Grade the current attempt's answers
        2. Persist per-answer correctness
        3. SUBMITTED -> GRADED (compare-and-set)
        4. Adaptive reassignment policy
        5. One scheduler review per gradable answer

        A failure in step 4 or 5 leaves the assignment GRADED and is
        reported on the outcome (complete is False) for complete_grading.

        Raises:
            NotFoundError: Unknown student assignment, assignment or question
            InvalidStateError: Not in SUBMITTED status (e.g. already graded)
            InvalidInputError: Score outside 0-100
        """
        student_assignment = self.get_student_assignment(student_assignment_id)
        self._require_status(student_assignment, StudentAssignmentStatus.SUBMITTED)
        assignment = self.get_assignment(student_assignment.assignment_id)

        answers = self._current_attempt(
            self.answers.find_by_student_assignment_id(student_assignment.id)
        )
        questions = self._question_lookup(answers)

        results = self.grading.evaluate(answers, questions)
        score, gradable_count = self.grading.score(results)
        if not 0 <= score <= 100:
            raise InvalidInputError(f"Score must be between 0 and 100, got {score}")

        graded_answers = []
        for answer, result in zip(answers, results):
            if result.is_correct is not None and answer.is_correct != result.is_correct:
                answer = self.answers.save(replace(answer, is_correct=result.is_correct))
            graded_answers.append(answer)

        graded = self._transition(
            student_assignment.id,
            StudentAssignmentStatus.SUBMITTED,
            StudentAssignmentStatus.GRADED,
            current=student_assignment,
            score=score,
            graded_at=self.clock(),
        )

        logger.info(
            f"Graded {graded.id} for student {graded.student_id}: "
            f"{score:.1f}% over {gradable_count} gradable answers"
        )

        outcome = GradeOutcome(
            student_assignment=graded,
            score=score,
            gradable_count=gradable_count,
            results=results,
        )
        self._follow_up(
            outcome,
            assignment,
            graded_answers,
            [(a, bool(r.is_correct)) for a, r in zip(graded_answers, results) if r.gradable],
        )
        return outcome

    def complete_grading(
        self,
        student_assignment_id: str,
        review_question_ids: Iterable[str] = (),
    ) -> GradeOutcome:
        """
        Re-run the follow-up steps of a grading event that did not complete.

        The adaptive policy runs again unless this grading already produced
        an adaptive assignment. Scheduler reviews run only for the given
        question ids (an incomplete outcome's failed_reviews); other answers
        are not reviewed again.

        Raises:
            NotFoundError: Unknown student assignment or assignment
            InvalidStateError: Not in GRADED status
        """
        student_assignment = self.get_student_assignment(student_assignment_id)
        self._require_status(student_assignment, StudentAssignmentStatus.GRADED)
        assignment = self.get_assignment(student_assignment.assignment_id)

        answers = self._current_attempt(
            self.answers.find_by_student_assignment_id(student_assignment.id)
        )
        gradable = [a for a in answers if a.is_correct is not None]
        outcome = GradeOutcome(
            student_assignment=student_assignment,
            score=student_assignment.score or 0.0,
            gradable_count=len(gradable),
        )

        pending = set(review_question_ids)
        reviewed = [(a, bool(a.is_correct)) for a in gradable if a.question_id in pending]

        outcome.adaptive = self._adaptive_child(assignment, student_assignment)
        self._follow_up(outcome, assignment, answers, reviewed, run_policy=outcome.adaptive is None)
        return outcome

    def record_essay_grade(
        self,
        answer_id: str,
        is_correct: bool,
        essay_score: float | None = None,
        feedback: str | None = None,
    ) -> Answer:
        """Store a human verdict on an essay answer."""
        answer = self.answers.find_by_id(answer_id)
        if answer is None:
            raise NotFoundError("Answer", answer_id)
        if answer.question_type is not QuestionType.ESSAY:
            raise InvalidInputError(f"Answer {answer_id} is not an essay answer")
        if essay_score is not None and not 0 <= essay_score <= 100:
            raise InvalidInputError(f"Essay score must be between 0 and 100, got {essay_score}")

        graded = replace(answer, is_correct=is_correct, essay_score=essay_score, feedback=feedback)
        logger.info(f"Recorded essay grade for answer {answer_id}: correct={is_correct}")
        return self.answers.save(graded)

    def can_retake(self, student_assignment_id: str, max_attempts: int | None = None) -> bool:
        student_assignment = self.get_student_assignment(student_assignment_id)
        if student_assignment.status not in (
            StudentAssignmentStatus.GRADED,
            StudentAssignmentStatus.COMPLETED,
        ):
            return False
        assignment = self.get_assignment(student_assignment.assignment_id)
        if not assignment.settings.allow_retake:
            return False
        return max_attempts is None or student_assignment.attempts < max_attempts

    def reset_for_retake(self, student_assignment_id: str) -> StudentAssignment:
        """GRADED -> ASSIGNED, clearing the previous attempt's timestamps and score."""
        student_assignment = self.get_student_assignment(student_assignment_id)
        assignment = self.get_assignment(student_assignment.assignment_id)
        if not assignment.settings.allow_retake:
            raise InvalidStateError(f"Assignment {assignment.id} does not allow retakes")

        return self._transition(
            student_assignment.id,
            StudentAssignmentStatus.GRADED,
            StudentAssignmentStatus.ASSIGNED,
            current=student_assignment,
            score=None,
            started_at=None,
            submitted_at=None,
            graded_at=None,
        )

    def mark_for_reassignment(self, student_assignment_id: str) -> StudentAssignment:
        return self._transition(
            student_assignment_id,
            StudentAssignmentStatus.GRADED,
            StudentAssignmentStatus.REASSIGNED,
        )

    # =========================================================================
    # Reporting
    # =========================================================================

    def progress_over_time(self, student_id: str) -> tuple[list[datetime], list[float]]:
        """Graded scores for a student, ordered by grading time."""
        graded = sorted(
            (
                sa
                for sa in self.student_assignments.find_by_student_id(student_id)
                if sa.graded_at is not None and sa.score is not None
            ),
            key=lambda sa: sa.graded_at,
        )
        return [sa.graded_at for sa in graded], [sa.score for sa in graded]

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _require_status(
        student_assignment: StudentAssignment,
        expected: StudentAssignmentStatus,
    ) -> None:
        if student_assignment.status is not expected:
            raise InvalidStateError(
                f"StudentAssignment {student_assignment.id} is {student_assignment.status.value}, "
                f"expected {expected.value}",
                current=student_assignment.status.value,
                expected=expected.value,
            )

    def _transition(
        self,
        student_assignment_id: str,
        expected: StudentAssignmentStatus,
        status: StudentAssignmentStatus,
        current: StudentAssignment | None = None,
        **changes: Any,
    ) -> StudentAssignment:
        current = current or self.get_student_assignment(student_assignment_id)
        self._require_status(current, expected)

        updated = self.student_assignments.update_status(
            student_assignment_id, expected, status, **changes
        )
        if updated is None:
            latest = self.get_student_assignment(student_assignment_id)
            raise InvalidStateError(
                f"StudentAssignment {student_assignment_id} changed concurrently "
                f"(now {latest.status.value}, expected {expected.value})",
                current=latest.status.value,
                expected=expected.value,
            )

        logger.debug(f"StudentAssignment {student_assignment_id}: {expected.value} -> {status.value}")
        return updated

    def _follow_up(
        self,
        outcome: GradeOutcome,
        assignment: Assignment,
        answers: list[Answer],
        reviewed: list[tuple[Answer, bool]],
        run_policy: bool = True,
    ) -> None:
        """Adaptive policy, then one review per answer; failures are recorded on the outcome."""
        graded = outcome.student_assignment

        if run_policy:
            try:
                outcome.adaptive = self.policy.apply(outcome.score, assignment, graded, answers)
            except Exception:  # Intentionally broad - the grade is committed, complete_grading retries
                logger.exception(f"Adaptive follow-up failed for {graded.id}")
                outcome.adaptive_failed = True

        for answer, is_correct in reviewed:
            try:
                outcome.reviews.append(
                    self.scheduler.review_answer(
                        answer.student_id, answer.question_id, is_correct, answer.response_ms
                    )
                )
            except Exception:  # Intentionally broad - remaining reviews still run
                logger.exception(f"Scheduler review failed for {graded.id} question {answer.question_id}")
                outcome.failed_reviews.append(answer.question_id)

        if not outcome.complete:
            logger.warning(
                f"Grading follow-up for {graded.id} incomplete: "
                f"adaptive_failed={outcome.adaptive_failed}, failed_reviews={outcome.failed_reviews}"
            )

    def _adaptive_child(
        self,
        assignment: Assignment,
        graded: StudentAssignment,
    ) -> tuple[Assignment, StudentAssignment] | None:
        """The adaptive assignment created by this grading event, if any."""
        for candidate in self.student_assignments.find_by_student_id(graded.student_id):
            if (
                candidate.is_adaptive
                and candidate.original_assignment_id == assignment.id
                and graded.graded_at is not None
                and candidate.created_at >= graded.graded_at
            ):
                child = self.assignments.find_by_id(candidate.assignment_id)
                if child is not None:
                    return child, candidate
        return None

    @staticmethod
    def _current_attempt(answers: list[Answer]) -> list[Answer]:
        if not answers:
            return []
        latest = max(a.attempt_number for a in answers)
        return [a for a in answers if a.attempt_number == latest]

    def _question_lookup(self, answers: list[Answer]) -> dict[str, Question]:
        lookup: dict[str, Question] = {}
        for question_id in dict.fromkeys(a.question_id for a in answers):
            question = self.questions.find_by_id(question_id)
            if question is not None:
                lookup[question_id] = question
        return lookup
