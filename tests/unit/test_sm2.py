"""
Unit tests for the SM-2 calculation.

Jitter is disabled (or pinned) so interval curves are deterministic.
"""

import random
from datetime import datetime, timedelta

import pytest

from adaptive_learning.domain.models import SchedulingRecord
from adaptive_learning.scheduling.sm2 import SM2Config, SM2Scheduler, round_half_up

NOW = datetime(2024, 3, 1, 9, 0, 0)


def fresh(sm2: SM2Scheduler) -> SchedulingRecord:
    return sm2.initial_record("s1", "q1", NOW)


class TestRoundHalfUp:
    def test_halves_round_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(14.5) == 15
        assert round_half_up(0.5) == 1

    def test_below_half_rounds_down(self):
        assert round_half_up(2.49) == 2
        assert round_half_up(15.0) == 15


class TestInitialRecord:
    def test_defaults(self):
        record = fresh(SM2Scheduler())
        assert record.ease_factor == 2.5
        assert record.interval_days == 1
        assert record.repetitions == 0
        assert record.next_review_date == NOW + timedelta(days=1)
        assert record.last_review_date is None


class TestIntervalCurve:
    def test_first_and_second_intervals(self):
        sm2 = SM2Scheduler()
        first = sm2.calculate_next_review(fresh(sm2), 4, NOW, jitter=False)
        second = sm2.calculate_next_review(first, 4, NOW, jitter=False)

        assert (first.repetitions, first.interval_days) == (1, 1)
        assert (second.repetitions, second.interval_days) == (2, 6)

    def test_third_interval_multiplies_by_ease(self):
        sm2 = SM2Scheduler()
        record = fresh(sm2)
        for _ in range(3):
            record = sm2.calculate_next_review(record, 4, NOW, jitter=False)

        # q=4 leaves ease at 2.5: round(6 * 2.5) = 15
        assert record.ease_factor == pytest.approx(2.5)
        assert record.interval_days == 15

    def test_dates_follow_interval(self):
        sm2 = SM2Scheduler()
        record = SchedulingRecord("s1", "q1", interval_days=6, repetitions=2)
        updated = sm2.calculate_next_review(record, 5, NOW, jitter=False)

        assert updated.last_review_date == NOW
        assert updated.next_review_date == NOW + timedelta(days=updated.interval_days)

    def test_input_record_not_modified(self):
        sm2 = SM2Scheduler()
        record = fresh(sm2)
        sm2.calculate_next_review(record, 5, NOW, jitter=False)
        assert record.repetitions == 0
        assert record.last_review_date is None


class TestEaseFactor:
    def test_perfect_recall_raises_ease_to_2_6(self):
        sm2 = SM2Scheduler()
        updated = sm2.calculate_next_review(fresh(sm2), 5, NOW, jitter=False)
        assert updated.ease_factor == pytest.approx(2.6)
        assert updated.repetitions == 1
        assert updated.interval_days == 1

    @pytest.mark.parametrize("quality,expected", [(5, 2.6), (4, 2.5), (3, 2.36), (2, 2.18), (1, 1.96), (0, 1.7)])
    def test_ease_delta_by_quality(self, quality, expected):
        assert SM2Scheduler().next_ease(2.5, quality) == pytest.approx(expected)

    def test_ease_never_below_minimum(self):
        sm2 = SM2Scheduler()
        record = fresh(sm2)
        for _ in range(10):
            record = sm2.calculate_next_review(record, 0, NOW, jitter=False)
            assert record.ease_factor >= 1.3
        assert record.ease_factor == pytest.approx(1.3)

    def test_ease_has_no_upper_bound(self):
        sm2 = SM2Scheduler()
        record = fresh(sm2)
        for _ in range(5):
            record = sm2.calculate_next_review(record, 5, NOW, jitter=False)
        assert record.ease_factor == pytest.approx(3.0)


class TestMaximumInterval:
    def test_thirty_perfect_reviews_stay_representable(self):
        sm2 = SM2Scheduler(SM2Config(jitter_low=1.05, jitter_high=1.05))
        record = fresh(sm2)
        now = NOW
        for _ in range(30):
            record = sm2.calculate_next_review(record, 5, now)
            now = record.next_review_date

        assert record.repetitions == 30
        assert record.interval_days == 36500
        assert record.ease_factor == pytest.approx(5.5)
        assert record.next_review_date - record.last_review_date == timedelta(days=36500)

    def test_configured_cap(self):
        sm2 = SM2Scheduler(SM2Config(maximum_interval=30))
        record = SchedulingRecord("s1", "q1", ease_factor=2.5, interval_days=20, repetitions=3)

        assert sm2.calculate_next_review(record, 5, NOW, jitter=False).interval_days == 30

    def test_cap_read_from_settings(self, settings):
        capped = settings.model_copy(update={"sm2_maximum_interval": 90})
        assert SM2Config.from_settings(capped).maximum_interval == 90


class TestLapse:
    def test_lapse_resets_repetitions_and_interval_keeps_ease(self):
        sm2 = SM2Scheduler()
        record = SchedulingRecord("s1", "q1", ease_factor=2.5, interval_days=15, repetitions=3)
        lapsed = sm2.calculate_next_review(record, 2, NOW, jitter=False)

        assert lapsed.repetitions == 0
        assert lapsed.interval_days == 1
        # Ease still takes the quality-2 delta
        assert lapsed.ease_factor == pytest.approx(2.18)

    def test_recovery_after_lapse_restarts_curve(self):
        sm2 = SM2Scheduler()
        record = SchedulingRecord("s1", "q1", ease_factor=2.5, interval_days=15, repetitions=3)
        record = sm2.calculate_next_review(record, 1, NOW, jitter=False)
        record = sm2.calculate_next_review(record, 4, NOW, jitter=False)
        assert (record.repetitions, record.interval_days) == (1, 1)


class TestJitter:
    def test_jitter_stays_within_bounds(self):
        sm2 = SM2Scheduler(rng=random.Random(7))
        for _ in range(200):
            assert 95 <= sm2.apply_jitter(100) <= 105

    def test_jittered_interval_never_below_one(self):
        sm2 = SM2Scheduler(SM2Config(jitter_low=0.1, jitter_high=0.1), rng=random.Random(1))
        updated = sm2.calculate_next_review(fresh(sm2), 4, NOW)
        assert updated.interval_days == 1

    def test_jitter_applied_after_ease_multiplication(self):
        sm2 = SM2Scheduler(SM2Config(jitter_low=1.05, jitter_high=1.05))
        record = SchedulingRecord("s1", "q1", ease_factor=2.5, interval_days=6, repetitions=2)
        # round(6 * 2.5) = 15, then round(15 * 1.05) = round(15.75) = 16
        assert sm2.calculate_next_review(record, 4, NOW).interval_days == 16


class TestQualityFromAnswer:
    @pytest.mark.parametrize(
        "is_correct,response_ms,expected",
        [
            (True, None, 4),
            (False, None, 1),
            (True, 2000, 5),
            (True, 7000, 4),
            (True, 15000, 3),
            (False, 2000, 2),
            (False, 7000, 1),
            (False, 15000, 0),
        ],
    )
    def test_mapping(self, is_correct, response_ms, expected):
        assert SM2Scheduler.quality_from_answer(is_correct, response_ms) == expected
