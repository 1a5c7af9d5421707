"""Shared fixtures: a controllable clock and small in-memory question banks."""
import random

import pytest

from mcq_prep.models import Question, Topic
from mcq_prep.repository import InMemoryQuestionBank, InMemorySessionRepository


class FakeClock:
    """Epoch-ms clock the tests move by hand."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


def make_question(n: int, chapter: str = "1", correct: str = "A", **kwargs) -> Question:
    return Question(
        question=f"Question {n}?",
        options=("A", "B", "C", "D"),
        correct_answer=correct,
        hint=f"Hint {n}",
        explanation=f"Explanation {n}",
        id=kwargs.pop("id", f"q{n}"),
        question_number=n,
        chapter=chapter,
        **kwargs,
    )


def chapter_topics(count: int = 10):
    return [Topic(id=f"chapter-{i:02d}", name=f"Chapter {i}") for i in range(1, count + 1)]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def repository():
    return InMemorySessionRepository()


@pytest.fixture
def question_bank():
    """Ten chapters of 20 questions each, plus official and past banks."""
    topics = chapter_topics() + [Topic(id="all", name="All chapters", is_general=True)]
    questions = {
        f"chapter-{c:02d}": [make_question(c * 100 + i, chapter=str(c)) for i in range(20)]
        for c in range(1, 11)
    }
    sources = {
        "official": [make_question(5000 + i, chapter="official", source="official") for i in range(60)],
        "past": [make_question(6000 + i, chapter="past", source="past") for i in range(10)],
    }
    return InMemoryQuestionBank(topics, questions, sources)
