"""
Unit tests for LearningEngine wiring and the command table.
"""

import pytest

from adaptive_learning.core.exceptions import InvalidInputError, NotFoundError
from adaptive_learning.engine import LearningEngine, build_command_table, dispatch


@pytest.fixture
def engine(settings, clock, rng):
    return LearningEngine.in_memory(settings=settings, clock=clock, rng=rng)


@pytest.fixture
def commands(engine):
    return build_command_table(engine)


class TestDispatch:
    def test_unknown_command(self, commands):
        with pytest.raises(NotFoundError, match="Command not found: teleport"):
            dispatch(commands, "teleport")

    def test_review_round_trip(self, commands, engine, clock, builders):
        engine.stores.questions.save(builders.mc(question_id="q1"))
        dispatch(commands, "initialize_schedule", student_id="s1", question_id="q1")
        clock.advance(1)

        record = dispatch(commands, "review", student_id="s1", question_id="q1", quality=5)

        assert record.ease_factor == pytest.approx(2.6)
        assert engine.stores.records.get("s1", "q1").repetitions == 1

    @pytest.mark.parametrize("quality", [-1, 6, 2.5, True, "4"])
    def test_invalid_quality_rejected_before_write(self, commands, engine, quality):
        with pytest.raises(InvalidInputError):
            dispatch(commands, "review", student_id="s1", question_id="q1", quality=quality)
        assert engine.stores.records.get("s1", "q1") is None

    def test_due_questions_default_limit(self, commands, engine, builders):
        for i in range(25):
            engine.stores.questions.save(builders.mc(question_id=f"q{i}"))

        assert len(dispatch(commands, "due_questions", student_id="s1")) == 20

    def test_non_positive_limit_rejected(self, commands):
        with pytest.raises(InvalidInputError):
            dispatch(commands, "due_questions", student_id="s1", limit=0)

    def test_practice_quiz_and_weak_areas(self, commands, engine, builders):
        missed = builders.mc(question_id="m1", tags=["algebra"])
        engine.stores.questions.save(missed)
        engine.stores.answers.save(builders.answer(missed, student_id="s1", is_correct=False))

        assert dispatch(commands, "practice_quiz", student_id="s1") == ["m1"]
        assert dispatch(commands, "weak_areas", student_id="s1") == [("algebra", 1)]

    def test_grade_answers_uses_stored_questions(self, commands, engine, builders):
        q = builders.tf(question_id="tf", correct_answer=True)
        engine.stores.questions.save(q)

        result = dispatch(commands, "grade_answers", answers=[builders.answer(q, boolean_answer=True)])

        assert result == (100.0, 1)

    def test_grade_answers_unknown_question(self, commands, builders):
        q = builders.tf(question_id="ghost")
        with pytest.raises(NotFoundError):
            dispatch(commands, "grade_answers", answers=[builders.answer(q, boolean_answer=True)])

    def test_review_unknown_question(self, commands, engine):
        with pytest.raises(NotFoundError, match="Question not found: q1"):
            dispatch(commands, "review", student_id="s1", question_id="q1", quality=4)
        assert engine.stores.records.get("s1", "q1") is None


class TestEngineIsolation:
    def test_tables_bound_to_their_engine(self, settings, clock, rng, builders):
        first = LearningEngine.in_memory(settings=settings, clock=clock, rng=rng)
        second = LearningEngine.in_memory(settings=settings, clock=clock, rng=rng)
        first.stores.questions.save(builders.mc(question_id="q1"))
        second.stores.questions.save(builders.mc(question_id="q1"))

        dispatch(build_command_table(first), "initialize_schedule", student_id="s1", question_id="q1")

        assert first.stores.records.get("s1", "q1") is not None
        assert second.stores.records.get("s1", "q1") is None


class TestRemoval:
    def test_remove_question_cascades_records(self, commands, engine, builders):
        engine.stores.questions.save(builders.mc(question_id="q1"))
        dispatch(commands, "initialize_schedule", student_id="s1", question_id="q1")
        dispatch(commands, "initialize_schedule", student_id="s2", question_id="q1")

        assert dispatch(commands, "remove_question", question_id="q1") is True
        assert engine.stores.questions.find_by_id("q1") is None
        assert engine.stores.records.get_student_question_ids("s1") == set()

    def test_remove_student(self, commands, engine, builders):
        engine.stores.questions.save(builders.mc(question_id="q1"))
        dispatch(commands, "initialize_schedule", student_id="s1", question_id="q1")
        assert dispatch(commands, "remove_student", student_id="s1") == 1
