"""
Records shared by the session engine: questions, topics, sessions and attempts.

Question and Topic are reference data owned by the question bank. Session and
Attempt are owned by the engine and round-trip through ``to_record`` /
``from_record`` so any storage collaborator can persist them as plain dicts.
"""
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from engine import (
    ALL_CHAPTERS_TOPIC,
    EXAM_CONFIG,
    LEARN_PREFIX,
    OFFICIAL_TOPIC,
    PAST_TOPIC,
)


def now_ms() -> int:
    return int(time.time() * 1000)


class ExamMode(str, Enum):
    CHAPTERWISE = "chapterwise"
    QUICK_TEST = "quick-test"
    FULL_TEST = "full-test"
    OFFICIAL_QUICK_TEST = "official-quick-test"
    OFFICIAL_FULL_TEST = "official-full-test"
    OFFICIAL_RANDOM = "official-random"
    PAST_QUICK_TEST = "past-quick-test"
    PAST_FULL_TEST = "past-full-test"
    PAST_RANDOM = "past-random"

    @property
    def is_timed(self) -> bool:
        return self.value in EXAM_CONFIG

    @property
    def question_count(self) -> int:
        return EXAM_CONFIG[self.value]["question_count"] if self.is_timed else 0

    @property
    def time_limit(self) -> int:
        """Time limit in ms (0 for untimed modes)."""
        return EXAM_CONFIG[self.value]["time_limit"] if self.is_timed else 0

    @property
    def source(self) -> Optional[str]:
        """Question bank the mode draws from: 'official', 'past' or None for chapters."""
        if self.value.startswith("official-"):
            return "official"
        if self.value.startswith("past-"):
            return "past"
        return None

    @property
    def default_topic(self) -> Optional[str]:
        if self.source == "official":
            return OFFICIAL_TOPIC
        if self.source == "past":
            return PAST_TOPIC
        if self.is_timed:
            return ALL_CHAPTERS_TOPIC
        return None


class SessionStatus(str, Enum):
    CREATED = "created"
    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Question:
    question: str
    options: Tuple[str, ...]
    correct_answer: str
    hint: str = ""
    explanation: str = ""
    id: Optional[Any] = None
    question_number: Optional[int] = None
    chapter: Optional[str] = None
    difficulty: Optional[str] = None
    source: Optional[str] = None
    chapter_id: Optional[str] = None

    def key(self, index: Optional[int] = None) -> str:
        """Stable id: ``id``, then ``question_number``, then the display index."""
        for value in (self.id, self.question_number):
            if value not in (None, "", 0):
                return str(value)
        return str(index if index is not None else "")

    def is_correct(self, selected_option: Optional[str]) -> bool:
        return selected_option is not None and selected_option == self.correct_answer

    def with_chapter_id(self, chapter_id: str) -> "Question":
        return replace(self, chapter_id=chapter_id)

    @staticmethod
    def from_record(d: Dict) -> "Question":
        return Question(
            question=d.get("question") or d.get("text") or "",
            options=tuple(d.get("options") or ()),
            correct_answer=d.get("correct_answer", ""),
            hint=d.get("hint") or "",
            explanation=d.get("explanation") or "",
            id=d.get("id"),
            question_number=d.get("question_number"),
            chapter=d.get("chapter"),
            difficulty=d.get("difficulty"),
            source=d.get("source"),
            chapter_id=d.get("chapter_id") or d.get("chapterId"),
        )

    def to_record(self) -> Dict:
        return {
            "id": self.id,
            "question_number": self.question_number,
            "question": self.question,
            "options": list(self.options),
            "correct_answer": self.correct_answer,
            "hint": self.hint,
            "explanation": self.explanation,
            "chapter": self.chapter,
            "difficulty": self.difficulty,
            "source": self.source,
            "chapter_id": self.chapter_id,
        }


@dataclass(frozen=True)
class Topic:
    id: str
    name: str
    description: str = ""
    is_general: bool = False
    file: str = ""

    @staticmethod
    def from_record(d: Dict) -> "Topic":
        return Topic(
            id=str(d["id"]),
            name=d.get("name") or str(d["id"]),
            description=d.get("description") or "",
            is_general=bool(d.get("is_general", d.get("isGeneral", False))),
            file=d.get("file") or "",
        )


@dataclass(frozen=True)
class Attempt:
    session_id: str
    question_id: str
    topic: str
    correct: bool
    time_spent: int
    timestamp: int
    question_index: Optional[int] = None
    selected_option: Optional[str] = None
    hint_used: bool = False
    explanation_viewed: bool = False

    @property
    def key(self) -> Tuple[str, str, Optional[int], int]:
        """Natural key. The index keeps apart questions of one exam that share an id."""
        return (self.session_id, self.question_id, self.question_index, self.timestamp)

    def matches(self, session_id: str, question_id: str, timestamp: int,
                question_index: Optional[int] = None) -> bool:
        """``question_index=None`` matches any index."""
        if (self.session_id, self.question_id, self.timestamp) != (session_id, str(question_id), int(timestamp)):
            return False
        return question_index is None or self.question_index == question_index

    @staticmethod
    def from_record(d: Dict) -> "Attempt":
        index = d.get("question_index")
        return Attempt(
            session_id=str(d["session_id"]),
            question_id=str(d["question_id"]),
            topic=d.get("topic") or "unknown",
            correct=bool(d.get("correct")),
            time_spent=int(d.get("time_spent") or 0),
            timestamp=int(d.get("timestamp") or 0),
            question_index=int(index) if index is not None else None,
            selected_option=d.get("selected_option"),
            hint_used=bool(d.get("hint_used")),
            explanation_viewed=bool(d.get("explanation_viewed")),
        )

    def to_record(self) -> Dict:
        return {
            "session_id": self.session_id,
            "question_id": self.question_id,
            "question_index": self.question_index,
            "topic": self.topic,
            "selected_option": self.selected_option,
            "correct": self.correct,
            "time_spent": self.time_spent,
            "hint_used": self.hint_used,
            "explanation_viewed": self.explanation_viewed,
            "timestamp": self.timestamp,
        }


@dataclass
class Session:
    """One learner run: frozen question list, attempt log and running totals."""

    session_id: str
    topic: str
    start_time: int
    exam_mode: Optional[ExamMode] = None
    end_time: Optional[int] = None
    questions: Optional[List[Question]] = None
    attempts: List[Attempt] = field(default_factory=list)
    total_questions: int = 0
    correct_answers: int = 0
    wrong_answers: int = 0
    hints_used: int = 0
    total_time: int = 0

    @staticmethod
    def new(topic: str, exam_mode: Optional[ExamMode] = None,
            questions: Optional[List[Question]] = None, start_time: Optional[int] = None) -> "Session":
        return Session(
            session_id=str(uuid4()),
            topic=topic,
            start_time=start_time if start_time is not None else now_ms(),
            exam_mode=exam_mode,
            questions=list(questions) if questions is not None else None,
        )

    @property
    def is_open(self) -> bool:
        """No end time: still running or abandoned."""
        return self.end_time is None

    @property
    def is_learn(self) -> bool:
        return self.topic.startswith(LEARN_PREFIX)

    @property
    def accuracy(self) -> float:
        if self.total_questions == 0:
            return 0.0
        return self.correct_answers / self.total_questions * 100

    def totals_record(self) -> Dict:
        return {
            "total_questions": self.total_questions,
            "correct_answers": self.correct_answers,
            "wrong_answers": self.wrong_answers,
            "hints_used": self.hints_used,
            "total_time": self.total_time,
        }

    def to_record(self, include_attempts: bool = True) -> Dict:
        record = {
            "session_id": self.session_id,
            "topic": self.topic,
            "exam_mode": self.exam_mode.value if self.exam_mode else None,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "questions": [q.to_record() for q in self.questions] if self.questions is not None else None,
        }
        record.update(self.totals_record())
        if include_attempts:
            record["attempts"] = [a.to_record() for a in self.attempts]
        return record

    @staticmethod
    def from_record(d: Dict) -> "Session":
        questions = d.get("questions")
        mode = d.get("exam_mode")
        return Session(
            session_id=str(d["session_id"]),
            topic=d.get("topic") or "unknown",
            start_time=int(d.get("start_time") or 0),
            exam_mode=ExamMode(mode) if mode else None,
            end_time=int(d["end_time"]) if d.get("end_time") is not None else None,
            questions=[Question.from_record(q) for q in questions] if questions is not None else None,
            attempts=[Attempt.from_record(a) for a in d.get("attempts") or []],
            total_questions=int(d.get("total_questions") or 0),
            correct_answers=int(d.get("correct_answers") or 0),
            wrong_answers=int(d.get("wrong_answers") or 0),
            hints_used=int(d.get("hints_used") or 0),
            total_time=int(d.get("total_time") or 0),
        )
