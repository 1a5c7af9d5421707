"""
Supabase-backed session repository and question bank.

Tables: sessions, attempts (FK to sessions, ON DELETE CASCADE), questions,
topics. See init_db.py for the schema. Storage failures are logged and raised
as PersistenceError so the engine can leave its in-memory state untouched.
"""
import logging
from typing import Callable, Dict, List, Optional

from supabase import Client

from mcq_prep.errors import NotFound, PersistenceError
from mcq_prep.models import Attempt, Question, Session, Topic
from mcq_prep.repository import QuestionBank, SessionRepository, apply_filters

logger = logging.getLogger(__name__)

PAGE_SIZE = 1000
ATTEMPT_KEY = "session_id,question_id,question_index,timestamp"
CHAPTER_BANK = "chapters"


def _execute(what: str, query):
    try:
        return query.execute()
    except Exception as e:
        logger.error(f"Error {what}: {e}")
        raise PersistenceError(f"Error {what}: {e}") from e


def _fetch_all(what: str, build: Callable[[], object]) -> List[Dict]:
    """Page through a select (Supabase caps responses at ~1000 rows)."""
    rows: List[Dict] = []
    offset = 0
    while True:
        response = _execute(what, build().range(offset, offset + PAGE_SIZE - 1))
        data = response.data or []
        rows.extend(data)
        if len(data) < PAGE_SIZE:
            break
        offset += PAGE_SIZE
    return rows


class SupabaseSessionRepository(SessionRepository):
    """Sessions and attempts in Supabase."""

    def __init__(self, client: Client):
        self.client = client

    # ============= Sessions =============

    def create_session(self, session: Session) -> None:
        _execute(
            f"creating session {session.session_id}",
            self.client.table("sessions").insert(session.to_record(include_attempts=False)),
        )
        logger.debug(f"Created session {session.session_id}")

    def update_session(self, session_id: str, partial: Dict) -> None:
        response = _execute(
            f"updating session {session_id}",
            self.client.table("sessions").update(partial).eq("session_id", session_id),
        )
        if not response.data:
            raise NotFound(f"Session {session_id} not found")

    def delete_session(self, session_id: str) -> None:
        response = _execute(
            f"deleting session {session_id}",
            self.client.table("sessions").delete().eq("session_id", session_id),
        )
        if not response.data:
            raise NotFound(f"Session {session_id} not found")
        logger.info(f"Deleted session {session_id}")

    def get_session(self, session_id: str) -> Session:
        response = _execute(
            f"fetching session {session_id}",
            self.client.table("sessions").select("*").eq("session_id", session_id).limit(1),
        )
        if not response.data:
            raise NotFound(f"Session {session_id} not found")
        record = dict(response.data[0])
        record["attempts"] = _fetch_all(
            f"fetching attempts for {session_id}",
            lambda: self.client.table("attempts").select("*").eq("session_id", session_id).order("id"),
        )
        return Session.from_record(record)

    def list_sessions(self) -> List[Session]:
        records = _fetch_all(
            "fetching sessions",
            lambda: self.client.table("sessions").select("*").order("start_time"),
        )
        attempts = _fetch_all(
            "fetching attempts",
            lambda: self.client.table("attempts").select("*").order("id"),
        )
        by_session: Dict[str, List[Dict]] = {}
        for row in attempts:
            by_session.setdefault(str(row["session_id"]), []).append(row)
        sessions = []
        for record in records:
            record = dict(record)
            record["attempts"] = by_session.get(str(record["session_id"]), [])
            sessions.append(Session.from_record(record))
        return sessions

    def clear(self) -> None:
        _execute("clearing sessions", self.client.table("sessions").delete().neq("session_id", ""))
        logger.info("Cleared all sessions")

    # ============= Attempts =============

    def add_attempt(self, attempt: Attempt) -> None:
        _execute(
            f"saving attempt {attempt.key}",
            self.client.table("attempts").upsert(
                attempt.to_record(), on_conflict=ATTEMPT_KEY, ignore_duplicates=True
            ),
        )

    def delete_attempt(self, session_id: str, question_id: str, timestamp: int,
                       question_index: Optional[int] = None) -> None:
        key = {"session_id": session_id, "question_id": str(question_id), "timestamp": int(timestamp)}
        if question_index is not None:
            key["question_index"] = int(question_index)
        response = _execute(
            f"deleting attempt {question_id}@{timestamp}",
            self.client.table("attempts").delete().match(key),
        )
        if not response.data:
            raise NotFound(f"No attempt for question {question_id} at {timestamp} in session {session_id}")


class SupabaseQuestionBank(QuestionBank):
    """
    Read-only question bank over the ``topics`` and ``questions`` tables.

    Each question row carries a ``bank`` column: 'chapters' for chapter
    questions (with ``topic_id``), 'official' or 'past' for the other banks.
    """

    def __init__(self, client: Client):
        self.client = client

    def fetch_topics(self) -> List[Topic]:
        response = _execute("fetching topics", self.client.table("topics").select("*").order("id"))
        return [Topic.from_record(row) for row in response.data or []]

    def fetch_questions(self, topic_id: str, filters: Optional[Dict] = None) -> List[Question]:
        if topic_id in ("official", "past"):
            return apply_filters(self.fetch_source(topic_id), filters)
        topic = next((t for t in self.fetch_topics() if t.id == topic_id), None)
        if topic is not None and topic.is_general:
            return apply_filters(self.fetch_all_questions(), filters)
        rows = _fetch_all(
            f"fetching questions for {topic_id}",
            lambda: self.client.table("questions").select("*").eq("topic_id", topic_id).order("question_number"),
        )
        return apply_filters([Question.from_record(row) for row in rows], filters)

    def fetch_all_questions(self) -> List[Question]:
        rows = _fetch_all(
            "fetching chapter questions",
            lambda: self.client.table("questions").select("*").eq("bank", CHAPTER_BANK).order("question_number"),
        )
        return [Question.from_record(row) for row in rows]

    def fetch_source(self, source: str) -> List[Question]:
        rows = _fetch_all(
            f"fetching {source} questions",
            lambda: self.client.table("questions").select("*").eq("bank", source).order("question_number"),
        )
        return [Question.from_record(row) for row in rows]
