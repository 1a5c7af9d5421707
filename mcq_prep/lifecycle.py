"""
Session lifecycle: drives one exam/practice run from creation to completion.

States: CREATED -> ACTIVE -> COMPLETED. A session that never gets finalized is
"abandoned"; only its missing end_time says so.

Every mutation is persisted through the repository before the in-memory ledger
changes, so a failed write leaves the lifecycle untouched and the same call can
simply be retried.
"""
import logging
import threading
from typing import Callable, Dict, List, Optional, Union

from engine import LEARN_PREFIX
from mcq_prep.errors import InvalidState, NotFound, PersistenceError, QuizEngineError
from mcq_prep.ledger import SessionLedger
from mcq_prep.models import Attempt, ExamMode, Question, Session, SessionStatus, now_ms
from mcq_prep.repository import QuestionBank, SessionRepository
from mcq_prep.sampler import (
    bucket_by_chapter,
    distribute_across_chapters,
    is_exam_chapter,
    sample_flat,
)
from mcq_prep.timer import Clock, CountdownTimer, ElapsedTimer

logger = logging.getLogger(__name__)


class SessionLifecycle:
    """Owns one session's frozen question list, ledger and timer."""

    def __init__(
        self,
        session: Session,
        repository: SessionRepository,
        question_bank: QuestionBank,
        clock: Clock = now_ms,
        background_ticks: bool = False,
        question_limit: int = 0,
        filters: Optional[Dict] = None,
    ):
        self.session = session
        self.repository = repository
        self.question_bank = question_bank
        self.ledger = SessionLedger(session)
        self.background_ticks = background_ticks
        self.question_limit = question_limit
        self.filters = filters
        self.timer: Union[CountdownTimer, ElapsedTimer, None] = None
        self.shortfall = 0
        self._clock = clock
        self._lock = threading.RLock()
        self._display_times: Dict[int, int] = {}

        if session.end_time is not None:
            self.status = SessionStatus.COMPLETED
        elif session.questions and (session.attempts or session.total_questions):
            self.status = SessionStatus.ACTIVE
        else:
            self.status = SessionStatus.CREATED

    # ============= Construction =============

    @classmethod
    def create(
        cls,
        repository: SessionRepository,
        question_bank: QuestionBank,
        topic: Optional[str] = None,
        exam_mode: Union[ExamMode, str, None] = None,
        questions: Optional[List[Question]] = None,
        clock: Clock = now_ms,
        **options,
    ) -> "SessionLifecycle":
        """
        Create and persist a new session in CREATED state.

        Args:
            topic: topic id; defaults to the mode's pseudo-topic for timed modes
            exam_mode: ExamMode or its string value
            questions: frozen list to reuse (retake); sampled on start() otherwise
        """
        mode = ExamMode(exam_mode) if exam_mode else None
        topic = topic or (mode.default_topic if mode else None)
        if not topic:
            raise ValueError("A topic is required for untimed sessions")

        session = Session.new(topic, mode, questions=questions, start_time=clock())
        _persist(session.session_id, repository.create_session, session)
        logger.info(f"Session {session.session_id} created: topic={topic}, mode={mode.value if mode else None}")
        return cls(session, repository, question_bank, clock=clock, **options)

    @classmethod
    def retake(
        cls,
        prior: Session,
        repository: SessionRepository,
        question_bank: QuestionBank,
        clock: Clock = now_ms,
        **options,
    ) -> "SessionLifecycle":
        """New session over ``prior``'s frozen question list; ``prior`` is not touched."""
        if not prior.questions:
            raise InvalidState(f"Session {prior.session_id} has no frozen question list to retake")
        lifecycle = cls.create(
            repository, question_bank,
            topic=prior.topic, exam_mode=prior.exam_mode,
            questions=list(prior.questions), clock=clock, **options,
        )
        logger.info(f"Retake of {prior.session_id} -> {lifecycle.session.session_id}")
        return lifecycle

    # ============= State =============

    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def questions(self) -> List[Question]:
        return list(self.session.questions or [])

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    @property
    def is_completed(self) -> bool:
        return self.status == SessionStatus.COMPLETED

    def unanswered_indexes(self) -> List[int]:
        answered = self.ledger.answered_indexes()
        return [i for i in range(len(self.questions)) if i not in answered]

    # ============= Transitions =============

    def start(self) -> List[Question]:
        """
        Freeze the question list, start the timer and go ACTIVE.

        Returns:
            The frozen list; empty when no questions are available, in which
            case the session stays CREATED.
        """
        with self._lock:
            if self.status != SessionStatus.CREATED:
                raise InvalidState(f"Session {self.session_id} already {self.status.value}")

            if self.session.questions:
                questions = list(self.session.questions)
            else:
                questions = self._sample()
            if not questions:
                logger.warning(f"Session {self.session_id}: no questions available for {self.session.topic}")
                return []

            _persist(self.session_id, self.repository.update_session, self.session_id,
                     {"questions": [q.to_record() for q in questions]})
            self.session.questions = questions

            # ACTIVE before the timer starts: a countdown can expire inside start()
            self.status = SessionStatus.ACTIVE
            self.show_question(0)
            logger.info(f"Session {self.session_id} started with {len(questions)} questions")

            mode = self.session.exam_mode
            if mode is not None and mode.is_timed:
                self.timer = CountdownTimer(mode.time_limit, on_expire=self.expire, clock=self._clock)
                self.timer.start(background=self.background_ticks)
            else:
                self.timer = ElapsedTimer(clock=self._clock)
                self.timer.start()
            return list(questions)

    def show_question(self, index: int) -> Question:
        """Mark ``index`` as displayed; its answer time counts from the first display."""
        question = self._question_at(index)
        self._display_times.setdefault(index, self._clock())
        return question

    def answer(
        self,
        index: int,
        selected_option: str,
        hint_used: bool = False,
        explanation_viewed: bool = False,
    ) -> Attempt:
        """Record the learner's choice for question ``index``."""
        with self._lock:
            if self.status != SessionStatus.ACTIVE:
                raise InvalidState(f"Cannot record an answer in a {self.status.value} session")
            question = self._question_at(index)
            now = self._clock()
            attempt = Attempt(
                session_id=self.session_id,
                question_id=question.key(index),
                topic=question.chapter_id or self.session.topic,
                correct=question.is_correct(selected_option),
                time_spent=max(0, now - self._display_times.get(index, now)),
                timestamp=now,
                question_index=index,
                selected_option=selected_option,
                hint_used=hint_used,
                explanation_viewed=explanation_viewed,
            )
            self._commit(attempt)
            return attempt

    def finish(self) -> bool:
        """Learner pressed finish. Returns False if the session was already completed."""
        return self._finalize("finished")

    def expire(self) -> bool:
        """Countdown ran out; always ends COMPLETED, persistence errors are only logged."""
        return self._finalize("time expired", force=True)

    def close_tab(self, confirmed: bool) -> bool:
        """Learner hid/closed the tab. Ends the session only when confirmed."""
        if not confirmed:
            return False
        return self._finalize("tab closed")

    def resume(self) -> None:
        """Tab visible again: resync the countdown from its wall-clock anchor."""
        if isinstance(self.timer, CountdownTimer):
            self.timer.resync()

    def remove_attempt(self, question_id: str, timestamp: int, question_index: Optional[int] = None) -> Attempt:
        """Delete one attempt and roll back the session totals. Raises NotFound."""
        with self._lock:
            attempt = self.ledger.find(self.session_id, question_id, timestamp, question_index)
            if attempt is None:
                raise NotFound(f"No attempt for question {question_id} at {timestamp} in session {self.session_id}")
            totals = self.ledger.preview_removal(attempt)
            try:
                _persist(self.session_id, self.repository.delete_attempt,
                         self.session_id, question_id, timestamp, attempt.question_index)
            except NotFound:
                # already gone from storage on an earlier, partially failed call
                logger.debug(f"Attempt {attempt.key} already deleted from storage")
            _persist(self.session_id, self.repository.update_session, self.session_id, totals.as_record())
            self.ledger.remove(self.session_id, question_id, timestamp, attempt.question_index)
            logger.info(f"Removed attempt {question_id}@{timestamp} from session {self.session_id}")
            return attempt

    def summary(self) -> Dict:
        """Real-time progress snapshot for display."""
        answered = self.ledger.answered_indexes()
        summary = {
            "session_id": self.session_id,
            "status": self.status.value,
            "total_questions": len(self.questions),
            "questions_answered": len(answered),
            "questions_unanswered": max(0, len(self.questions) - len(answered)),
            "correct_count": self.session.correct_answers,
            "wrong_count": self.session.wrong_answers,
            "hints_used": self.session.hints_used,
            "shortfall": self.shortfall,
        }
        if isinstance(self.timer, CountdownTimer):
            summary["time_remaining_ms"] = self.timer.remaining
            summary["time_elapsed_ms"] = self.timer.elapsed
        elif isinstance(self.timer, ElapsedTimer):
            summary["time_elapsed_ms"] = self.timer.elapsed
        return summary

    # ============= Internals =============

    def _sample(self) -> List[Question]:
        mode = self.session.exam_mode
        topic = self.session.topic
        requested = 0

        if mode is not None and mode.source:
            requested = mode.question_count
            questions = sample_flat(self.question_bank.fetch_source(mode.source), requested)
        elif mode is not None and mode.is_timed:
            requested = mode.question_count
            chapter_ids = [t.id for t in self.question_bank.fetch_topics() if is_exam_chapter(t.id)]
            buckets = bucket_by_chapter(self.question_bank.fetch_all_questions(), chapter_ids)
            questions = distribute_across_chapters(buckets, requested)
        elif topic.startswith(LEARN_PREFIX):
            pool = self.question_bank.fetch_questions(topic[len(LEARN_PREFIX):], self.filters)
            questions = sample_flat(pool, 0, preserve_order=True)
        else:
            requested = self.question_limit
            questions = sample_flat(self.question_bank.fetch_questions(topic, self.filters), requested)

        if requested > 0 and len(questions) < requested:
            self.shortfall = requested - len(questions)
            logger.warning(f"Only {len(questions)} questions available for {topic}, need {requested}")
        return questions

    def _question_at(self, index: int) -> Question:
        questions = self.session.questions or []
        if not 0 <= index < len(questions):
            raise NotFound(f"Question index {index} outside session {self.session_id} ({len(questions)} questions)")
        return questions[index]

    def _commit(self, attempt: Attempt) -> None:
        if self.ledger.contains(attempt):
            return
        totals = self.ledger.preview(attempt)
        _persist(self.session_id, self.repository.add_attempt, attempt)
        _persist(self.session_id, self.repository.update_session, self.session_id, totals.as_record())
        self.ledger.record(attempt)

    def _finalize(self, reason: str, force: bool = False) -> bool:
        with self._lock:
            if self.status == SessionStatus.COMPLETED:
                return False
            if self.status != SessionStatus.ACTIVE:
                if force:
                    return False
                raise InvalidState(f"Session {self.session_id} was never started")

            now = self._clock()
            for index in self.unanswered_indexes():
                question = self._question_at(index)
                backfill = Attempt(
                    session_id=self.session_id,
                    question_id=question.key(index),
                    topic=question.chapter_id or self.session.topic,
                    correct=False,
                    time_spent=max(0, now - self._display_times.get(index, now)),
                    timestamp=now,
                    question_index=index,
                )
                self._run(force, self._commit, backfill, fallback=lambda a=backfill: self.ledger.record(a))

            self._run(force, _persist, self.session_id, self.repository.update_session, self.session_id,
                      dict(self.ledger.totals.as_record(), end_time=now))

            if self.timer is not None:
                self.timer.stop()
            self.session.end_time = now
            self.status = SessionStatus.COMPLETED
            logger.info(
                f"Session {self.session_id} completed ({reason}): "
                f"{self.session.correct_answers}/{self.session.total_questions} correct"
            )
            return True

    def _run(self, force: bool, action: Callable, *args, fallback: Optional[Callable] = None) -> None:
        try:
            action(*args)
        except QuizEngineError as e:
            if not force:
                raise
            logger.error(f"Session {self.session_id}: persistence failed during forced completion: {e}")
            if fallback is not None:
                fallback()


def _persist(session_id: str, action: Callable, *args):
    """Call a repository method, turning unexpected storage errors into PersistenceError."""
    try:
        return action(*args)
    except QuizEngineError:
        raise
    except Exception as e:
        logger.error(f"Storage call {getattr(action, '__name__', action)} failed for session {session_id}: {e}")
        raise PersistenceError(str(e)) from e
