"""
Spaced repetition scheduling (SM-2).
"""

from adaptive_learning.scheduling.scheduler import SpacedRepetitionScheduler
from adaptive_learning.scheduling.sm2 import SM2Config, SM2Scheduler, round_half_up

__all__ = [
    "SM2Config",
    "SM2Scheduler",
    "SpacedRepetitionScheduler",
    "round_half_up",
]
