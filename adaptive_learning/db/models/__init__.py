# SQLAlchemy models
from .base import Base
from .learning import (
    AnswerRow,
    AssignmentRow,
    QuestionRow,
    QuestionTagRow,
    SchedulingRecordRow,
    StudentAssignmentRow,
)

__all__ = [
    "AnswerRow",
    "AssignmentRow",
    "Base",
    "QuestionRow",
    "QuestionTagRow",
    "SchedulingRecordRow",
    "StudentAssignmentRow",
]
