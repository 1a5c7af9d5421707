"""
Post-session review: one verdict per question of a session.

Attempts carry the index of the question they answer, so matching is explicit.
Attempts stored without an index (older records) fall back to their position
in the log. If the session has no frozen question list the list is re-derived
from the question bank; that review is marked approximate because the corpus
may have changed since the session ran.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from engine import ALL_CHAPTERS_TOPIC, LEARN_PREFIX
from mcq_prep.models import Attempt, Question, Session
from mcq_prep.repository import QuestionBank
from mcq_prep.sampler import bucket_by_chapter, distribute_across_chapters, is_exam_chapter, sample_flat

logger = logging.getLogger(__name__)

CORRECT = "correct"
INCORRECT = "incorrect"
UNANSWERED = "unanswered"


@dataclass(frozen=True)
class ReviewItem:
    index: int
    question: Question
    attempt: Optional[Attempt]

    @property
    def selected_option(self) -> Optional[str]:
        return self.attempt.selected_option if self.attempt else None

    @property
    def status(self) -> str:
        if self.attempt is None:
            return UNANSWERED
        return CORRECT if self.attempt.correct else INCORRECT

    @property
    def is_correct(self) -> bool:
        return self.status == CORRECT

    @property
    def correct_answer(self) -> str:
        return self.question.correct_answer

    @property
    def hint(self) -> str:
        return self.question.hint

    @property
    def explanation(self) -> str:
        return self.question.explanation

    @property
    def time_spent(self) -> int:
        return self.attempt.time_spent if self.attempt else 0


@dataclass(frozen=True)
class SessionReview:
    session: Session
    items: List[ReviewItem]
    approximate: bool = False

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def correct(self) -> int:
        return sum(1 for item in self.items if item.status == CORRECT)

    @property
    def incorrect(self) -> int:
        return sum(1 for item in self.items if item.status == INCORRECT)

    @property
    def unanswered(self) -> int:
        return sum(1 for item in self.items if item.status == UNANSWERED)

    @property
    def answered(self) -> int:
        return self.total - self.unanswered

    @property
    def accuracy(self) -> float:
        return self.correct / self.answered * 100 if self.answered else 0.0

    def summary(self) -> Dict:
        return {
            "session_id": self.session.session_id,
            "total": self.total,
            "answered": self.answered,
            "correct": self.correct,
            "incorrect": self.incorrect,
            "unanswered": self.unanswered,
            "accuracy_percent": self.accuracy,
            "approximate": self.approximate,
        }


def match_attempts(attempts: List[Attempt], question_count: int) -> Dict[int, Attempt]:
    """Index -> latest attempt for that index."""
    matched: Dict[int, Attempt] = {}
    for position, attempt in enumerate(attempts):
        index = attempt.question_index if attempt.question_index is not None else position
        if 0 <= index < question_count:
            matched[index] = attempt
    return matched


def fallback_questions(session: Session, question_bank: QuestionBank) -> List[Question]:
    """Best-effort question list for a session stored without its frozen list."""
    mode = session.exam_mode
    if mode is not None and mode.source:
        return sample_flat(question_bank.fetch_source(mode.source), mode.question_count)
    if (mode is not None and mode.is_timed) or session.topic == ALL_CHAPTERS_TOPIC:
        count = mode.question_count if mode is not None else len(session.attempts)
        chapter_ids = [t.id for t in question_bank.fetch_topics() if is_exam_chapter(t.id)]
        buckets = bucket_by_chapter(question_bank.fetch_all_questions(), chapter_ids)
        return distribute_across_chapters(buckets, count)
    topic = session.topic[len(LEARN_PREFIX):] if session.is_learn else session.topic
    return question_bank.fetch_questions(topic)


def reconstruct_review(session: Session, question_bank: Optional[QuestionBank] = None) -> SessionReview:
    """
    Build per-question verdicts for ``session``.

    Args:
        session: session with attempts (and ideally its frozen question list)
        question_bank: used only when the frozen list is missing

    Returns:
        SessionReview; ``approximate`` is True when the list was re-derived
    """
    approximate = False
    questions = session.questions
    if not questions:
        if question_bank is None:
            logger.warning(f"Session {session.session_id} has no frozen questions and no question bank")
            questions = []
        else:
            logger.warning(f"Session {session.session_id}: no frozen questions, review is approximate")
            questions = fallback_questions(session, question_bank)
        approximate = True

    matched = match_attempts(session.attempts, len(questions))
    items = [ReviewItem(index=i, question=q, attempt=matched.get(i)) for i, q in enumerate(questions)]
    return SessionReview(session=session, items=items, approximate=approximate)
