"""
Adaptive Reassignment Policy.

Decides, once per grading event, whether a student needs a follow-up
assignment, and assembles it from:
1. The questions they answered incorrectly
2. Up to N questions sharing a tag with those, not in the original assignment

Follow-ups are issued only for original (non-adaptive) student
assignments. The ``is_adaptive`` flag is the only thing preventing chains,
so an adaptive follow-up never produces another.
"""
from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime, timedelta

from loguru import logger

from adaptive_learning.core.exceptions import LearningEngineError
from adaptive_learning.domain.models import (
    Answer,
    Assignment,
    AssignmentStatus,
    StudentAssignment,
    StudentAssignmentStatus,
    new_id,
)
from adaptive_learning.domain.ports import (
    AssignmentStore,
    QuestionStore,
    StudentAssignmentStore,
)

ADAPTIVE_TITLE_PREFIX = "Adaptive: "


class AdaptiveReassignmentPolicy:
    """
    Issue adaptive follow-up assignments after low scores.

    Lookups that fail while collecting tags are skipped, so partial tag
    data still yields a (smaller) follow-up.
    """

    def __init__(
        self,
        questions: QuestionStore,
        assignments: AssignmentStore,
        student_assignments: StudentAssignmentStore,
        similar_limit: int = 5,
        due_days: int = 7,
        clock: Callable[[], datetime] | None = None,
    ):
        self.questions = questions
        self.assignments = assignments
        self.student_assignments = student_assignments
        self.similar_limit = similar_limit
        self.due_days = due_days
        self.clock = clock or datetime.now

    @staticmethod
    def should_reassign(
        score: float,
        assignment: Assignment,
        student_assignment: StudentAssignment,
    ) -> bool:
        """True iff the score is under the threshold and the attempt is not itself adaptive."""
        return (
            score < assignment.settings.adaptive_reassign_threshold
            and not student_assignment.is_adaptive
        )

    def build_adaptive_assignment(
        self,
        original_assignment: Assignment,
        original_student_assignment: StudentAssignment,
        answers: Iterable[Answer],
    ) -> tuple[Assignment, StudentAssignment] | None:
        """
        Create and save the follow-up assignment for one student.

        Args:
            original_assignment: The graded assignment
            original_student_assignment: The student's graded attempt
            answers: Answers from that attempt

        Returns:
            (assignment, student_assignment), or None when no answer is
            marked incorrect
        """
        incorrect_ids = list(
            dict.fromkeys(a.question_id for a in answers if a.is_correct is False)
        )
        if not incorrect_ids:
            logger.warning(
                f"No incorrect answers on {original_student_assignment.id} - "
                "skipping adaptive follow-up"
            )
            return None

        tags = self._collect_tags(incorrect_ids)
        similar_ids = self._similar_question_ids(tags, original_assignment, incorrect_ids)
        now = self.clock()

        assignment = Assignment(
            id=new_id(),
            title=f"{ADAPTIVE_TITLE_PREFIX}{original_assignment.title}",
            description=(
                f"This assignment focuses on areas you need to improve from "
                f"{original_assignment.title}"
            ),
            assignment_type=original_assignment.assignment_type,
            question_ids=incorrect_ids + similar_ids,
            settings=original_assignment.settings.model_copy(),
            created_by=original_assignment.created_by,
            status=AssignmentStatus.ASSIGNED,
            due_date=now + timedelta(days=self.due_days),
            created_at=now,
        )
        assignment = self.assignments.save(assignment)

        student_assignment = StudentAssignment(
            id=new_id(),
            student_id=original_student_assignment.student_id,
            assignment_id=assignment.id,
            status=StudentAssignmentStatus.ASSIGNED,
            is_adaptive=True,
            original_assignment_id=original_assignment.id,
            due_date=assignment.due_date,
            created_at=now,
        )
        student_assignment = self.student_assignments.save(student_assignment)

        logger.info(
            f"Created adaptive assignment {assignment.id} for student "
            f"{student_assignment.student_id}: {len(incorrect_ids)} incorrect + "
            f"{len(similar_ids)} similar questions"
        )

        return assignment, student_assignment

    def apply(
        self,
        score: float,
        assignment: Assignment,
        student_assignment: StudentAssignment,
        answers: Iterable[Answer],
    ) -> tuple[Assignment, StudentAssignment] | None:
        """Run the policy for one grading event."""
        if not self.should_reassign(score, assignment, student_assignment):
            return None
        return self.build_adaptive_assignment(assignment, student_assignment, answers)

    def _collect_tags(self, question_ids: list[str]) -> list[str]:
        tags: list[str] = []
        for question_id in question_ids:
            try:
                question = self.questions.find_by_id(question_id)
            except LearningEngineError as e:
                logger.warning(f"Tag lookup failed for question {question_id}: {e}")
                continue
            if question is None:
                logger.warning(f"Question {question_id} not found - contributes no tags")
                continue
            tags.extend(question.tags)
        return list(dict.fromkeys(tags))

    def _similar_question_ids(
        self,
        tags: list[str],
        original_assignment: Assignment,
        exclude: list[str],
    ) -> list[str]:
        if not tags or self.similar_limit <= 0:
            return []

        skip = set(original_assignment.question_ids) | set(exclude)
        similar: list[str] = []
        for question in self.questions.find_by_tags(tags):
            if question.id in skip:
                continue
            skip.add(question.id)
            similar.append(question.id)
            if len(similar) >= self.similar_limit:
                break
        return similar
