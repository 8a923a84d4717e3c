"""
SM-2 Spaced Repetition Algorithm.

Implements:
- SM-2 ease/interval update for one review
- Interval jitter to decorrelate review clustering across questions
- Conversion of graded answers to SM-2 quality ratings

SM-2 Quality Scale:
0 - Complete blackout, wrong response
1 - Incorrect, but upon seeing answer remembered
2 - Incorrect, but answer seemed easy to recall
3 - Correct, but with significant difficulty
4 - Correct, with some hesitation
5 - Correct, with perfect recall

The ease factor has a lower bound only. Ease can grow past its initial
value of 2.5 on sustained perfect recall. Intervals are capped at
maximum_interval days.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from adaptive_learning.domain.models import SchedulingRecord

PASSING_QUALITY = 3


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return math.floor(value + 0.5)


@dataclass
class SM2Config:
    """Configuration for SM-2 algorithm."""

    initial_easiness: float = 2.5
    minimum_easiness: float = 1.3
    first_interval: int = 1  # Days for first review
    second_interval: int = 6  # Days for second review
    jitter_low: float = 0.95
    jitter_high: float = 1.05
    maximum_interval: int = 36500  # Upper bound in days

    @classmethod
    def from_settings(cls, settings) -> SM2Config:
        return cls(
            initial_easiness=settings.sm2_initial_ease,
            minimum_easiness=settings.sm2_minimum_ease,
            first_interval=settings.sm2_first_interval,
            second_interval=settings.sm2_second_interval,
            jitter_low=settings.sm2_jitter_low,
            jitter_high=settings.sm2_jitter_high,
            maximum_interval=settings.sm2_maximum_interval,
        )


class SM2Scheduler:
    """
    Implements the SM-2 spaced repetition algorithm.

    Each (student, question) record has:
    - Easiness Factor (EF): How easy the item is (2.5 default, min 1.3)
    - Interval: Days until next review
    - Repetitions: Consecutive successful recalls
    """

    def __init__(self, config: SM2Config | None = None, rng: random.Random | None = None):
        """
        Initialize SM-2 scheduler.

        Args:
            config: Custom configuration (uses defaults if None)
            rng: Random source for jitter (unseeded if None)
        """
        self.config = config or SM2Config()
        self.rng = rng or random.Random()

    def initial_record(self, student_id: str, question_id: str, now: datetime) -> SchedulingRecord:
        """Fresh record due one first-interval from now."""
        return SchedulingRecord(
            student_id=student_id,
            question_id=question_id,
            ease_factor=self.config.initial_easiness,
            interval_days=self.config.first_interval,
            repetitions=0,
            next_review_date=now + timedelta(days=self.config.first_interval),
            last_review_date=None,
        )

    def next_ease(self, ease_factor: float, quality: int) -> float:
        # EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02))
        ef_delta = 0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02)
        return max(self.config.minimum_easiness, ease_factor + ef_delta)

    def calculate_next_review(
        self,
        record: SchedulingRecord,
        quality: int,
        now: datetime,
        jitter: bool = True,
    ) -> SchedulingRecord:
        """
        Calculate the next review state for a quality rating.

        Args:
            record: Current state for the pair
            quality: Recall quality (0-5), validated by the caller
            now: Review timestamp
            jitter: Apply the interval jitter (disable for deterministic curves)

        Returns:
            Updated SchedulingRecord (the input is not modified)
        """
        repetitions = record.repetitions + 1
        ease_factor = self.next_ease(record.ease_factor, quality)

        if quality < PASSING_QUALITY:
            # Lapse - spacing restarts, ease is kept
            repetitions = 0
            interval = self.config.first_interval
        elif repetitions == 1:
            interval = self.config.first_interval
        elif repetitions == 2:
            interval = self.config.second_interval
        else:
            interval = round_half_up(record.interval_days * ease_factor)

        if jitter:
            interval = self.apply_jitter(interval)

        interval = min(max(1, interval), self.config.maximum_interval)

        return replace(
            record,
            ease_factor=ease_factor,
            interval_days=interval,
            repetitions=repetitions,
            next_review_date=now + timedelta(days=interval),
            last_review_date=now,
        )

    def apply_jitter(self, interval: int) -> int:
        """Scale an interval by a uniform factor in [jitter_low, jitter_high]."""
        factor = self.rng.uniform(self.config.jitter_low, self.config.jitter_high)
        return round_half_up(interval * factor)

    @staticmethod
    def quality_from_answer(
        is_correct: bool,
        response_ms: int | None = None,
        expected_ms: int = 10000,
    ) -> int:
        """
        Convert a graded answer to an SM-2 quality.

        Args:
            is_correct: Whether the answer was correct
            response_ms: Time taken to respond, if known
            expected_ms: Expected response time

        Returns:
            Quality 0-5
        """
        if response_ms is None:
            return 4 if is_correct else 1

        if not is_correct:
            # Incorrect responses: 0-2
            if response_ms < expected_ms * 0.5:
                return 2  # Quick wrong = almost knew it
            elif response_ms < expected_ms:
                return 1  # Wrong but remembered when shown
            else:
                return 0  # Complete blackout

        # Correct responses: 3-5
        if response_ms < expected_ms * 0.5:
            return 5  # Quick and correct = perfect recall
        elif response_ms < expected_ms:
            return 4  # Correct with some hesitation
        else:
            return 3  # Correct but struggled
