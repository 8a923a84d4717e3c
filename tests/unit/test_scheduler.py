"""
Unit tests for SpacedRepetitionScheduler over in-memory stores.
"""

import threading
from datetime import timedelta

import pytest

from adaptive_learning.core.exceptions import InvalidInputError, NotFoundError
from adaptive_learning.domain.models import SchedulingRecord
from adaptive_learning.scheduling import SpacedRepetitionScheduler


@pytest.fixture
def scheduler(record_store, question_store, clock, rng):
    return SpacedRepetitionScheduler(record_store, question_store, clock=clock, rng=rng)


@pytest.fixture
def five_questions(question_store, builders):
    questions = [builders.mc(question_id=f"q{i}") for i in range(1, 6)]
    for q in questions:
        question_store.save(q)
    return questions


class TestReview:
    def test_first_review_only_initializes(self, scheduler, record_store, clock, five_questions):
        record = scheduler.review("s1", "q1", 5)

        assert record.ease_factor == 2.5
        assert record.interval_days == 1
        assert record.repetitions == 0
        assert record.last_review_date is None
        assert record.next_review_date == clock.now + timedelta(days=1)
        assert record_store.get("s1", "q1") == record

    def test_perfect_recall_after_initialize(self, scheduler, record_store, clock, five_questions):
        scheduler.initialize("s1", "q1")
        clock.advance(1)

        record = scheduler.review("s1", "q1", 5)

        assert record.ease_factor == pytest.approx(2.6)
        assert record.repetitions == 1
        assert record.interval_days == 1
        assert record.last_review_date == clock.now
        assert record.next_review_date == clock.now + timedelta(days=1)
        assert record_store.get("s1", "q1").ease_factor == pytest.approx(2.6)

    def test_initialize_overwrites_existing_state(self, scheduler, record_store, five_questions):
        record_store.save(SchedulingRecord("s1", "q1", ease_factor=1.8, interval_days=20, repetitions=4))
        record = scheduler.initialize("s1", "q1")
        assert (record.ease_factor, record.interval_days, record.repetitions) == (2.5, 1, 0)

    def test_review_answer_uses_quality_mapping(self, scheduler, five_questions):
        scheduler.initialize("s1", "q1")
        record = scheduler.review_answer("s1", "q1", is_correct=False)
        # quality 1 is a lapse
        assert record.repetitions == 0
        assert record.ease_factor == pytest.approx(1.96)

    def test_concurrent_reviews_of_one_pair_are_serialized(self, scheduler, record_store, five_questions):
        scheduler.initialize("s1", "q1")
        errors = []

        def review():
            try:
                scheduler.review("s1", "q1", 4)
            except Exception as exc:  # Surfaced by the assertion below
                errors.append(exc)

        threads = [threading.Thread(target=review) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert record_store.get("s1", "q1").repetitions == 20

    def test_unknown_question_rejected_before_write(self, scheduler, record_store):
        with pytest.raises(NotFoundError, match="Question not found: ghost"):
            scheduler.review("s1", "ghost", 4)
        with pytest.raises(NotFoundError):
            scheduler.initialize("s1", "ghost")

        assert record_store.get("s1", "ghost") is None


class TestDueQuestions:
    def test_due_ids_ordered_by_due_date(self, scheduler, record_store, clock, five_questions):
        now = clock.now
        record_store.save(SchedulingRecord("s1", "q2", next_review_date=now - timedelta(days=1)))
        record_store.save(SchedulingRecord("s1", "q1", next_review_date=now - timedelta(days=3)))
        record_store.save(SchedulingRecord("s1", "q3", next_review_date=now + timedelta(days=2)))

        assert scheduler.due_questions("s1", include_new=False) == ["q1", "q2"]

    def test_limit_applies(self, scheduler, record_store, clock, five_questions):
        for i, q in enumerate(five_questions):
            record_store.save(SchedulingRecord("s1", q.id, next_review_date=clock.now - timedelta(days=i + 1)))

        assert len(scheduler.due_questions("s1", limit=3)) == 3

    def test_backfills_with_unscheduled_questions(self, scheduler, record_store, clock, five_questions):
        record_store.save(SchedulingRecord("s1", "q1", next_review_date=clock.now - timedelta(hours=1)))
        record_store.save(SchedulingRecord("s1", "q2", next_review_date=clock.now + timedelta(days=5)))

        due = scheduler.due_questions("s1", limit=4)

        assert due[0] == "q1"
        assert len(due) == 4
        assert set(due[1:]) == {"q3", "q4", "q5"}

    def test_backfill_never_exceeds_available_questions(self, scheduler, five_questions):
        due = scheduler.due_questions("s1", limit=20)
        assert sorted(due) == ["q1", "q2", "q3", "q4", "q5"]

    def test_other_students_records_ignored(self, scheduler, record_store, clock, five_questions):
        record_store.save(SchedulingRecord("s2", "q1", next_review_date=clock.now - timedelta(days=1)))
        assert scheduler.due_questions("s1", include_new=False) == []

    def test_negative_limit_rejected(self, scheduler):
        with pytest.raises(InvalidInputError):
            scheduler.due_questions("s1", limit=-1)


class TestReviewSession:
    def test_mixes_due_new_and_lapsed(self, scheduler, record_store, clock, five_questions):
        scheduler.initialize("s1", "q1")
        scheduler.initialize("s1", "q2")
        record_store.save(
            SchedulingRecord(
                "s1",
                "q3",
                repetitions=1,
                last_review_date=clock.now,
                next_review_date=clock.now + timedelta(days=10),
            )
        )
        clock.advance(2)

        session = scheduler.review_session("s1", session_size=4)

        assert len(session) == 4
        assert len(set(session)) == 4
        assert {"q1", "q2", "q3"} <= set(session)

    def test_lapsed_newest_first(self, record_store, clock):
        for i, qid in enumerate(["old", "mid", "new"]):
            record_store.save(
                SchedulingRecord("s1", qid, repetitions=0, last_review_date=clock.now + timedelta(hours=i))
            )
        record_store.save(SchedulingRecord("s1", "strong", repetitions=3, last_review_date=clock.now))
        record_store.save(SchedulingRecord("s1", "unreviewed", repetitions=0))

        assert record_store.get_recently_lapsed("s1", 10) == ["new", "mid", "old"]

    def test_session_without_history_is_new_questions(self, scheduler, five_questions):
        session = scheduler.review_session("s1", session_size=3)
        assert len(session) == 3
        assert set(session) <= {q.id for q in five_questions}


class TestRemoval:
    def test_remove_student(self, scheduler, record_store, five_questions):
        scheduler.initialize("s1", "q1")
        scheduler.initialize("s1", "q2")
        scheduler.initialize("s2", "q1")

        assert scheduler.remove_student("s1") == 2
        assert record_store.get("s1", "q1") is None
        assert record_store.get("s2", "q1") is not None

    def test_remove_question(self, scheduler, record_store, five_questions):
        scheduler.initialize("s1", "q1")
        scheduler.initialize("s2", "q1")
        scheduler.initialize("s1", "q2")

        assert scheduler.remove_question("q1") == 2
        assert record_store.get_student_question_ids("s1") == {"q2"}
