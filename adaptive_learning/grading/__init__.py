"""
Grading Strategies.

Strategy Pattern implementation for answer grading, one strategy per
question type, composed by the GradingEngine.
"""

from .base import GradingResult, GradingStrategy
from .engine import GradingEngine
from .strategies import (
    DEFAULT_STRATEGIES,
    EssayStrategy,
    MatchingStrategy,
    MultipleChoiceStrategy,
    ShortAnswerStrategy,
    TrueFalseStrategy,
)

__all__ = [
    # Base classes
    "GradingStrategy",
    "GradingResult",
    "GradingEngine",
    # Strategies
    "DEFAULT_STRATEGIES",
    "MultipleChoiceStrategy",
    "TrueFalseStrategy",
    "ShortAnswerStrategy",
    "MatchingStrategy",
    "EssayStrategy",
]
