"""
Student assignment lifecycle and grading pipeline.
"""

from adaptive_learning.assignments.service import AssignmentService, GradeOutcome

__all__ = ["AssignmentService", "GradeOutcome"]
