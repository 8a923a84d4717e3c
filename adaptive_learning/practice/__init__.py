"""
Practice quiz generation from answer history.
"""

from adaptive_learning.practice.generator import (
    PracticeConfig,
    PracticePool,
    PracticeSessionGenerator,
)

__all__ = [
    "PracticeConfig",
    "PracticePool",
    "PracticeSessionGenerator",
]
