"""
Adaptive follow-up assignments for low scores.
"""
from adaptive_learning.adaptive.reassignment import (
    ADAPTIVE_TITLE_PREFIX,
    AdaptiveReassignmentPolicy,
)

__all__ = [
    "ADAPTIVE_TITLE_PREFIX",
    "AdaptiveReassignmentPolicy",
]
