"""
Core utilities shared by every engine component.
"""

from adaptive_learning.core.exceptions import (
    InvalidInputError,
    InvalidStateError,
    LearningEngineError,
    NotFoundError,
)

__all__ = [
    "LearningEngineError",
    "NotFoundError",
    "InvalidStateError",
    "InvalidInputError",
]
