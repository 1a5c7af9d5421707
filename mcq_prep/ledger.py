"""
Append-only attempt ledger bound to one session.

Totals are kept incrementally for O(1) reads and must always equal a replay of
the attempt log (``recompute()``).
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Set

from mcq_prep.errors import NotFound
from mcq_prep.models import Attempt, Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerTotals:
    total_questions: int = 0
    correct_answers: int = 0
    wrong_answers: int = 0
    hints_used: int = 0
    total_time: int = 0

    def plus(self, attempt: Attempt) -> "LedgerTotals":
        return LedgerTotals(
            total_questions=self.total_questions + 1,
            correct_answers=self.correct_answers + (1 if attempt.correct else 0),
            wrong_answers=self.wrong_answers + (0 if attempt.correct else 1),
            hints_used=self.hints_used + (1 if attempt.hint_used else 0),
            total_time=self.total_time + attempt.time_spent,
        )

    def minus(self, attempt: Attempt) -> "LedgerTotals":
        return LedgerTotals(
            total_questions=self.total_questions - 1,
            correct_answers=self.correct_answers - (1 if attempt.correct else 0),
            wrong_answers=self.wrong_answers - (0 if attempt.correct else 1),
            hints_used=self.hints_used - (1 if attempt.hint_used else 0),
            total_time=self.total_time - attempt.time_spent,
        )

    def as_record(self) -> dict:
        return {
            "total_questions": self.total_questions,
            "correct_answers": self.correct_answers,
            "wrong_answers": self.wrong_answers,
            "hints_used": self.hints_used,
            "total_time": self.total_time,
        }


class SessionLedger:
    """Attempt log and running totals for ``session``; writes through to it."""

    def __init__(self, session: Session):
        self.session = session

    @property
    def attempts(self) -> List[Attempt]:
        return self.session.attempts

    @property
    def totals(self) -> LedgerTotals:
        s = self.session
        return LedgerTotals(s.total_questions, s.correct_answers, s.wrong_answers, s.hints_used, s.total_time)

    def recompute(self) -> LedgerTotals:
        """Replay the log from scratch."""
        totals = LedgerTotals()
        for attempt in self.attempts:
            totals = totals.plus(attempt)
        return totals

    def find(self, session_id: str, question_id: str, timestamp: int,
             question_index: Optional[int] = None) -> Optional[Attempt]:
        return next((a for a in self.attempts if a.matches(session_id, question_id, timestamp, question_index)), None)

    def contains(self, attempt: Attempt) -> bool:
        return any(a.key == attempt.key for a in self.attempts)

    def preview(self, attempt: Attempt) -> LedgerTotals:
        """Totals after recording ``attempt``, without applying it."""
        if self.contains(attempt):
            return self.totals
        return self.totals.plus(attempt)

    def preview_removal(self, attempt: Attempt) -> LedgerTotals:
        return self.totals.minus(attempt)

    def record(self, attempt: Attempt) -> bool:
        """
        Append ``attempt`` and bump the totals.

        Re-answers of the same question are new rows. Replaying the exact same
        attempt (same question id, index and timestamp) is ignored and returns False.
        """
        if self.contains(attempt):
            logger.debug(f"Attempt {attempt.key} already recorded (idempotent)")
            return False
        self._apply(self.totals.plus(attempt))
        self.session.attempts.append(attempt)
        return True

    def remove(self, session_id: str, question_id: str, timestamp: int,
               question_index: Optional[int] = None) -> Attempt:
        """Delete one attempt and roll back its contribution. Raises NotFound."""
        attempt = self.find(session_id, question_id, timestamp, question_index)
        if attempt is None:
            raise NotFound(f"No attempt for question {question_id} at {timestamp} in session {session_id}")
        totals = self.totals.minus(attempt)
        self.session.attempts.remove(attempt)
        self._apply(totals)
        return attempt

    def answered_indexes(self) -> Set[int]:
        indexes = set()
        for position, attempt in enumerate(self.attempts):
            indexes.add(attempt.question_index if attempt.question_index is not None else position)
        return indexes

    def _apply(self, totals: LedgerTotals) -> None:
        s = self.session
        s.total_questions = totals.total_questions
        s.correct_answers = totals.correct_answers
        s.wrong_answers = totals.wrong_answers
        s.hints_used = totals.hints_used
        s.total_time = totals.total_time
