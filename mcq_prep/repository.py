"""
Storage and question-source interfaces the engine is wired with.

The lifecycle and analytics never reach for a global store: they receive a
SessionRepository and a QuestionBank. The in-memory versions here back the
tests and local runs; mcq_prep.database holds the Supabase versions.
"""
import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from mcq_prep.errors import NotFound
from mcq_prep.models import Attempt, Question, Session, Topic
from mcq_prep.sampler import filter_questions

logger = logging.getLogger(__name__)

SESSION_FIELDS = {
    "topic", "exam_mode", "start_time", "end_time", "questions",
    "total_questions", "correct_answers", "wrong_answers", "hints_used", "total_time",
}


class SessionRepository(ABC):
    """CRUD for sessions and their attempts. Deleting a session cascades."""

    @abstractmethod
    def create_session(self, session: Session) -> None: ...

    @abstractmethod
    def update_session(self, session_id: str, partial: Dict) -> None: ...

    @abstractmethod
    def delete_session(self, session_id: str) -> None: ...

    @abstractmethod
    def get_session(self, session_id: str) -> Session: ...

    @abstractmethod
    def list_sessions(self) -> List[Session]: ...

    @abstractmethod
    def add_attempt(self, attempt: Attempt) -> None:
        """Store ``attempt``; storing the same (session, question, index, timestamp) twice is a no-op."""

    @abstractmethod
    def delete_attempt(self, session_id: str, question_id: str, timestamp: int,
                       question_index: Optional[int] = None) -> None:
        """Delete one attempt; ``question_index=None`` matches any index."""

    @abstractmethod
    def clear(self) -> None:
        """Delete every session (learner-initiated history wipe)."""


class QuestionBank(ABC):
    """Read-only access to topics and already-validated questions."""

    @abstractmethod
    def fetch_topics(self) -> List[Topic]: ...

    @abstractmethod
    def fetch_questions(self, topic_id: str, filters: Optional[Dict] = None) -> List[Question]: ...

    @abstractmethod
    def fetch_all_questions(self) -> List[Question]:
        """Every chapter question (input to all-chapter exams)."""

    @abstractmethod
    def fetch_source(self, source: str) -> List[Question]:
        """Questions of a non-chapter bank ('official' or 'past')."""


def apply_filters(questions: Iterable[Question], filters: Optional[Dict]) -> List[Question]:
    if not filters:
        return list(questions)
    return filter_questions(
        questions,
        chapters=filters.get("chapters"),
        difficulties=filters.get("difficulties"),
        sources=filters.get("sources"),
    )


class InMemorySessionRepository(SessionRepository):
    """Keeps session records as plain dicts, so every read is a fresh round-trip."""

    def __init__(self):
        self._sessions: Dict[str, Dict] = {}
        self._attempts: Dict[str, List[Dict]] = {}

    def create_session(self, session: Session) -> None:
        self._sessions[session.session_id] = session.to_record(include_attempts=False)
        self._attempts[session.session_id] = []
        logger.debug(f"Created session {session.session_id}")

    def update_session(self, session_id: str, partial: Dict) -> None:
        record = self._require(session_id)
        unknown = set(partial) - SESSION_FIELDS
        if unknown:
            raise ValueError(f"Unknown session fields: {sorted(unknown)}")
        record.update(partial)

    def delete_session(self, session_id: str) -> None:
        self._require(session_id)
        del self._sessions[session_id]
        self._attempts.pop(session_id, None)

    def get_session(self, session_id: str) -> Session:
        record = dict(self._require(session_id))
        record["attempts"] = list(self._attempts.get(session_id, []))
        return Session.from_record(record)

    def list_sessions(self) -> List[Session]:
        return [self.get_session(session_id) for session_id in self._sessions]

    def add_attempt(self, attempt: Attempt) -> None:
        rows = self._attempts.get(attempt.session_id)
        if rows is None:
            raise NotFound(f"Session {attempt.session_id} not found")
        if any(Attempt.from_record(row).key == attempt.key for row in rows):
            return
        rows.append(attempt.to_record())

    def delete_attempt(self, session_id: str, question_id: str, timestamp: int,
                       question_index: Optional[int] = None) -> None:
        rows = self._attempts.get(session_id, [])
        for i, row in enumerate(rows):
            if Attempt.from_record(row).matches(session_id, question_id, timestamp, question_index):
                del rows[i]
                return
        raise NotFound(f"No attempt for question {question_id} at {timestamp} in session {session_id}")

    def clear(self) -> None:
        self._sessions.clear()
        self._attempts.clear()

    def _require(self, session_id: str) -> Dict:
        record = self._sessions.get(session_id)
        if record is None:
            raise NotFound(f"Session {session_id} not found")
        return record


class InMemoryQuestionBank(QuestionBank):
    """
    Question bank over pre-loaded lists.

    Args:
        topics: topic records
        questions_by_topic: topic id -> questions (chapter topics)
        sources: bank name ('official', 'past') -> questions
    """

    def __init__(self, topics: List[Topic], questions_by_topic: Dict[str, List[Question]],
                 sources: Optional[Dict[str, List[Question]]] = None):
        self._topics = list(topics)
        self._questions = {k: list(v) for k, v in questions_by_topic.items()}
        self._sources = {k: list(v) for k, v in (sources or {}).items()}

    def fetch_topics(self) -> List[Topic]:
        return list(self._topics)

    def fetch_questions(self, topic_id: str, filters: Optional[Dict] = None) -> List[Question]:
        topic = next((t for t in self._topics if t.id == topic_id), None)
        if topic is not None and topic.is_general:
            questions = self.fetch_all_questions()
        elif topic_id in self._sources:
            questions = self.fetch_source(topic_id)
        else:
            questions = self._questions.get(topic_id, [])
        return apply_filters(questions, filters)

    def fetch_all_questions(self) -> List[Question]:
        return [q for questions in self._questions.values() for q in questions]

    def fetch_source(self, source: str) -> List[Question]:
        return list(self._sources.get(source, []))
