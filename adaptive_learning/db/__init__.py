"""
Storage adapters: in-memory and SQLAlchemy.
"""

from adaptive_learning.db.memory import (
    InMemoryAnswerStore,
    InMemoryAssignmentStore,
    InMemoryQuestionStore,
    InMemorySchedulingRecordStore,
    InMemoryStudentAssignmentStore,
)

__all__ = [
    "InMemoryAnswerStore",
    "InMemoryAssignmentStore",
    "InMemoryQuestionStore",
    "InMemorySchedulingRecordStore",
    "InMemoryStudentAssignmentStore",
]
