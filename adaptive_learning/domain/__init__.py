"""
Domain entities and storage ports.
"""

from adaptive_learning.domain.models import (
    Answer,
    Assignment,
    AssignmentSettings,
    AssignmentStatus,
    AssignmentType,
    ChoiceOption,
    DifficultyLevel,
    MatchPair,
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
    SchedulingRecordStore,
    StudentAssignmentStore,
)

__all__ = [
    # Entities
    "Answer",
    "Assignment",
    "AssignmentSettings",
    "AssignmentStatus",
    "AssignmentType",
    "ChoiceOption",
    "DifficultyLevel",
    "MatchPair",
    "Question",
    "QuestionType",
    "SchedulingRecord",
    "StudentAssignment",
    "StudentAssignmentStatus",
    "new_id",
    # Ports
    "QuestionStore",
    "AnswerStore",
    "AssignmentStore",
    "StudentAssignmentStore",
    "SchedulingRecordStore",
]
