"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import random
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from adaptive_learning.db.memory import (  # noqa: E402
    InMemoryAnswerStore,
    InMemoryAssignmentStore,
    InMemoryQuestionStore,
    InMemorySchedulingRecordStore,
    InMemoryStudentAssignmentStore,
)
from adaptive_learning.domain.models import (  # noqa: E402
    Answer,
    ChoiceOption,
    MatchPair,
    Question,
    QuestionType,
    new_id,
)
from config import Settings  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (SQLAlchemy on in-memory SQLite)")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


# =============================================================================
# Time and randomness
# =============================================================================


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: float = 0, **kwargs) -> datetime:
        self.now += timedelta(days=days, **kwargs)
        return self.now


class FixedJitterRandom(random.Random):
    """Seeded Random whose uniform() always returns one factor."""

    def __init__(self, factor: float = 1.0, seed: int = 42):
        super().__init__(seed)
        self.factor = factor

    def uniform(self, a, b):
        return self.factor


@pytest.fixture
def start_time():
    return datetime(2024, 3, 1, 9, 0, 0)


@pytest.fixture
def clock(start_time):
    return FakeClock(start_time)


@pytest.fixture
def rng():
    """Seeded RNG with jitter pinned to 1.0."""
    return FixedJitterRandom()


@pytest.fixture
def settings():
    """Default settings, ignoring any local .env file."""
    return Settings(_env_file=None)


# =============================================================================
# Stores
# =============================================================================


@pytest.fixture
def question_store():
    return InMemoryQuestionStore()


@pytest.fixture
def answer_store():
    return InMemoryAnswerStore()


@pytest.fixture
def assignment_store():
    return InMemoryAssignmentStore()


@pytest.fixture
def student_assignment_store():
    return InMemoryStudentAssignmentStore()


@pytest.fixture
def record_store():
    return InMemorySchedulingRecordStore()


# =============================================================================
# Builders
# =============================================================================


def make_mc_question(question_id=None, tags=(), correct="b", **kwargs):
    """Multiple-choice question with options a/b/c; ``correct`` is flagged."""
    return Question(
        id=question_id or new_id(),
        question_type=QuestionType.MULTIPLE_CHOICE,
        prompt=kwargs.pop("prompt", "Pick one"),
        tags=list(tags),
        options=[ChoiceOption(id=o, text=o.upper(), is_correct=o == correct) for o in ("a", "b", "c")],
        **kwargs,
    )


def make_tf_question(question_id=None, tags=(), correct_answer=True, **kwargs):
    return Question(
        id=question_id or new_id(),
        question_type=QuestionType.TRUE_FALSE,
        prompt="True or false?",
        tags=list(tags),
        correct_answer=correct_answer,
        **kwargs,
    )


def make_short_question(question_id=None, tags=(), accepted=("Paris",), case_sensitive=False, **kwargs):
    return Question(
        id=question_id or new_id(),
        question_type=QuestionType.SHORT_ANSWER,
        prompt="Capital of France?",
        tags=list(tags),
        accepted_answers=list(accepted),
        case_sensitive=case_sensitive,
        **kwargs,
    )


def make_essay_question(question_id=None, tags=(), **kwargs):
    return Question(
        id=question_id or new_id(),
        question_type=QuestionType.ESSAY,
        prompt="Discuss.",
        tags=list(tags),
        rubric="Clarity and evidence",
        word_limit=500,
        **kwargs,
    )


def make_matching_question(question_id=None, tags=(), **kwargs):
    return Question(
        id=question_id or new_id(),
        question_type=QuestionType.MATCHING,
        prompt="Match capitals",
        tags=list(tags),
        pairs=[
            MatchPair(id="p1", left="France", right="Paris"),
            MatchPair(id="p2", left="Spain", right="Madrid"),
            MatchPair(id="p3", left="Italy", right="Rome"),
        ],
        **kwargs,
    )


def make_answer(question, student_id="student-1", student_assignment_id="sa-1", **kwargs):
    """Answer to ``question``; payload fields and is_correct come from kwargs."""
    return Answer(
        id=kwargs.pop("answer_id", None) or new_id(),
        student_id=student_id,
        question_id=question.id,
        student_assignment_id=student_assignment_id,
        question_type=question.question_type,
        **kwargs,
    )


@pytest.fixture
def builders():
    """Access to the question/answer builders from tests."""

    class Builders:
        mc = staticmethod(make_mc_question)
        tf = staticmethod(make_tf_question)
        short = staticmethod(make_short_question)
        essay = staticmethod(make_essay_question)
        matching = staticmethod(make_matching_question)
        answer = staticmethod(make_answer)

    return Builders
