"""
Domain Models for the Adaptive Learning Engine.

Plain dataclasses for the entities flowing between the engine and its
stores, plus the validated assignment settings record.

Question Types:
- multiple_choice: one selected option, correctness from the option flag
- true_false: boolean answer
- short_answer: free text checked against accepted answers
- essay: free text, graded manually
- matching: left/right pairs
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from adaptive_learning.core.exceptions import InvalidInputError


def new_id() -> str:
    """Generate a new entity identifier."""
    return str(uuid4())


# =============================================================================
# Enums
# =============================================================================


class QuestionType(str, Enum):
    """Supported question types."""
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"
    ESSAY = "essay"
    MATCHING = "matching"

    @property
    def auto_gradable(self) -> bool:
        """Whether the type has a deterministic correctness check."""
        return self is not QuestionType.ESSAY


class DifficultyLevel(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class AssignmentType(str, Enum):
    HOMEWORK = "homework"
    QUIZ = "quiz"
    TEST = "test"


class AssignmentStatus(str, Enum):
    DRAFT = "draft"
    ASSIGNED = "assigned"
    COMPLETED = "completed"
    GRADED = "graded"


class StudentAssignmentStatus(str, Enum):
    """Lifecycle of an assignment issued to one student."""
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    GRADED = "graded"
    REASSIGNED = "reassigned"  # Follow-up issued
    COMPLETED = "completed"
    OVERDUE = "overdue"


# =============================================================================
# Questions
# =============================================================================


@dataclass
class ChoiceOption:
    """A multiple-choice option."""
    id: str
    text: str
    is_correct: bool = False


@dataclass
class MatchPair:
    """A canonical left/right pairing for a matching question."""
    id: str
    left: str
    right: str


@dataclass
class Question:
    """
    A question with type-specific correctness data.

    Only the fields relevant to ``question_type`` are populated.
    """
    id: str
    question_type: QuestionType
    prompt: str = ""
    tags: list[str] = field(default_factory=list)
    difficulty: DifficultyLevel = DifficultyLevel.MEDIUM
    explanation: str | None = None
    created_by: str | None = None

    # multiple_choice
    options: list[ChoiceOption] = field(default_factory=list)
    # true_false
    correct_answer: bool | None = None
    # short_answer
    accepted_answers: list[str] = field(default_factory=list)
    case_sensitive: bool = False
    # essay
    rubric: str | None = None
    word_limit: int | None = None
    # matching
    pairs: list[MatchPair] = field(default_factory=list)

    created_at: datetime = field(default_factory=datetime.now)

    def option(self, option_id: str) -> ChoiceOption | None:
        for opt in self.options:
            if opt.id == option_id:
                return opt
        return None

    def payload(self) -> dict[str, Any]:
        """Type-specific correctness data as a JSON-ready dict."""
        if self.question_type is QuestionType.MULTIPLE_CHOICE:
            return {
                "options": [
                    {"id": o.id, "text": o.text, "is_correct": o.is_correct} for o in self.options
                ]
            }
        if self.question_type is QuestionType.TRUE_FALSE:
            return {"correct_answer": self.correct_answer}
        if self.question_type is QuestionType.SHORT_ANSWER:
            return {
                "accepted_answers": list(self.accepted_answers),
                "case_sensitive": self.case_sensitive,
            }
        if self.question_type is QuestionType.ESSAY:
            return {"rubric": self.rubric, "word_limit": self.word_limit}
        return {"pairs": [{"id": p.id, "left": p.left, "right": p.right} for p in self.pairs]}

    @classmethod
    def from_payload(cls, question_type: QuestionType, payload: dict[str, Any], **base: Any) -> Question:
        """Rebuild a question from base fields and its type-specific payload."""
        return cls(
            question_type=question_type,
            options=[ChoiceOption(**o) for o in payload.get("options", [])],
            correct_answer=payload.get("correct_answer"),
            accepted_answers=list(payload.get("accepted_answers", [])),
            case_sensitive=payload.get("case_sensitive", False),
            rubric=payload.get("rubric"),
            word_limit=payload.get("word_limit"),
            pairs=[MatchPair(**p) for p in payload.get("pairs", [])],
            **base,
        )


# =============================================================================
# Answers
# =============================================================================


@dataclass
class Answer:
    """
    A submitted answer.

    Immutable after creation except ``is_correct``, ``feedback`` and
    ``essay_score`` on essays pending manual grading.
    """
    id: str
    student_id: str
    question_id: str
    student_assignment_id: str
    question_type: QuestionType
    attempt_number: int = 1
    is_correct: bool | None = None

    selected_option_id: str | None = None
    boolean_answer: bool | None = None
    text_answer: str | None = None
    matches: list[tuple[str, str]] = field(default_factory=list)  # (left, right)

    response_ms: int | None = None
    feedback: str | None = None
    essay_score: float | None = None
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        if self.attempt_number < 1:
            raise InvalidInputError(f"attempt_number must be >= 1, got {self.attempt_number}")

    def payload(self) -> dict[str, Any]:
        return {
            "selected_option_id": self.selected_option_id,
            "boolean_answer": self.boolean_answer,
            "text_answer": self.text_answer,
            "matches": [list(m) for m in self.matches],
        }


# =============================================================================
# Assignments
# =============================================================================


class AssignmentSettings(BaseModel):
    """Per-assignment settings; copied by value into adaptive follow-ups."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    allow_retake: bool = False
    allow_question_retry: bool = False
    confetti_threshold: float = Field(default=80, ge=0, le=100)
    confetti_on_correct_answer: bool = False
    adaptive_reassign_threshold: float = Field(default=80, ge=0, le=100)
    adaptive_learning_enabled: bool = False

    @classmethod
    def parse(cls, data: dict[str, Any] | None = None) -> AssignmentSettings:
        """Validate raw settings, raising InvalidInputError when malformed."""
        try:
            return cls.model_validate(data or {})
        except ValidationError as e:
            raise InvalidInputError(f"Malformed assignment settings: {e}") from e


@dataclass
class Assignment:
    id: str
    title: str
    assignment_type: AssignmentType
    question_ids: list[str] = field(default_factory=list)
    settings: AssignmentSettings = field(default_factory=AssignmentSettings)
    created_by: str | None = None
    description: str | None = None
    status: AssignmentStatus = AssignmentStatus.DRAFT
    due_date: datetime | None = None
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class StudentAssignment:
    """An assignment issued to one student."""
    id: str
    student_id: str
    assignment_id: str
    status: StudentAssignmentStatus = StudentAssignmentStatus.ASSIGNED
    score: float | None = None
    attempts: int = 0
    is_adaptive: bool = False
    original_assignment_id: str | None = None  # Original *Assignment* id
    feedback: str | None = None
    due_date: datetime | None = None
    started_at: datetime | None = None
    submitted_at: datetime | None = None
    graded_at: datetime | None = None
    created_at: datetime = field(default_factory=datetime.now)

    def with_changes(self, **changes: Any) -> StudentAssignment:
        return replace(self, **changes)


# =============================================================================
# Scheduling
# =============================================================================


@dataclass
class SchedulingRecord:
    """SM-2 state for one (student, question) pair."""

    student_id: str
    question_id: str
    ease_factor: float = 2.5
    interval_days: int = 1
    repetitions: int = 0
    next_review_date: datetime | None = None
    last_review_date: datetime | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.student_id, self.question_id)

    def is_due(self, now: datetime | None = None) -> bool:
        """Check if this question is due for review."""
        if self.next_review_date is None:
            return True
        return self.next_review_date <= (now or datetime.now())

    def days_overdue(self, now: datetime | None = None) -> int:
        """Days past the scheduled review date."""
        if self.next_review_date is None:
            return 0
        delta = (now or datetime.now()) - self.next_review_date
        return max(0, delta.days)
