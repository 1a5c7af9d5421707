"""Attempt ledger: incremental totals, idempotent replay and removal."""
import pytest

from mcq_prep.errors import NotFound
from mcq_prep.ledger import LedgerTotals, SessionLedger
from mcq_prep.models import Attempt, Session


def attempt(qid, correct, time_spent=5000, ts=None, hint=False, index=None):
    return Attempt(
        session_id="s1", question_id=str(qid), topic="chapter-01", correct=correct,
        time_spent=time_spent, timestamp=ts if ts is not None else 1000 + int(qid),
        question_index=index, hint_used=hint,
    )


@pytest.fixture
def ledger():
    return SessionLedger(Session(session_id="s1", topic="chapter-01", start_time=0))


def test_record_updates_totals(ledger):
    ledger.record(attempt(1, True, 5000))
    ledger.record(attempt(2, False, 5000, hint=True))
    ledger.record(attempt(3, True, 5000))
    ledger.record(attempt(4, False, 5000))

    session = ledger.session
    assert session.total_questions == 4
    assert session.correct_answers == 2
    assert session.wrong_answers == 2
    assert session.hints_used == 1
    assert session.total_time == 20000
    assert session.accuracy == 50.0
    assert ledger.totals == ledger.recompute()


def test_exact_replay_is_a_no_op(ledger):
    a = attempt(1, True)
    assert ledger.record(a) is True
    assert ledger.record(a) is False
    assert ledger.session.total_questions == 1
    assert len(ledger.attempts) == 1


def test_reanswer_is_a_new_row(ledger):
    ledger.record(attempt(1, False, ts=1000))
    ledger.record(attempt(1, True, ts=2000))
    assert ledger.session.total_questions == 2
    assert ledger.session.correct_answers == 1


def test_remove_only_wrong_attempt(ledger):
    ledger.record(attempt(1, True, ts=10))
    ledger.record(attempt(2, True, ts=20))
    ledger.record(attempt(3, False, ts=30))
    ledger.record(attempt(4, True, ts=40))

    removed = ledger.remove("s1", "3", 30)
    assert removed.question_id == "3"
    session = ledger.session
    assert (session.total_questions, session.correct_answers, session.wrong_answers) == (3, 3, 0)
    assert session.accuracy == 100.0
    assert ledger.totals == ledger.recompute()


def test_remove_missing_raises_and_changes_nothing(ledger):
    ledger.record(attempt(1, True, ts=10))
    before = ledger.totals
    with pytest.raises(NotFound):
        ledger.remove("s1", "1", 99)
    assert ledger.totals == before
    assert len(ledger.attempts) == 1


def test_preview_does_not_mutate(ledger):
    a = attempt(1, True, 3000)
    totals = ledger.preview(a)
    assert totals == LedgerTotals(1, 1, 0, 0, 3000)
    assert ledger.session.total_questions == 0
    ledger.record(a)
    assert ledger.preview(a) == ledger.totals


def test_answered_indexes_fall_back_to_position(ledger):
    ledger.record(attempt(1, True, index=4))
    ledger.record(attempt(2, True))
    assert ledger.answered_indexes() == {4, 1}


def test_mixed_times_accuracy(ledger):
    ledger.record(attempt(1, True, 5000))
    ledger.record(attempt(2, False, 15000))
    assert ledger.session.accuracy == 50.0
    assert ledger.session.total_time == 20000


def test_totals_match_replay_after_random_sequence(ledger, rng):
    for step in range(200):
        if ledger.attempts and rng.random() < 0.3:
            victim = rng.choice(ledger.attempts)
            ledger.remove(victim.session_id, victim.question_id, victim.timestamp, victim.question_index)
        else:
            ledger.record(attempt(rng.randint(1, 30), rng.random() < 0.6, rng.randint(0, 9000),
                                  ts=step, hint=rng.random() < 0.2))
        assert ledger.totals == ledger.recompute()


def test_same_id_and_timestamp_at_different_indexes_are_distinct(ledger):
    # chapters number their questions from 1, so an all-chapter exam repeats ids
    assert ledger.record(attempt(1, False, ts=500, index=0))
    assert ledger.record(attempt(1, False, ts=500, index=7))
    assert not ledger.record(attempt(1, False, ts=500, index=7))
    assert ledger.session.total_questions == 2

    removed = ledger.remove("s1", "1", 500, question_index=7)
    assert removed.question_index == 7
    assert [a.question_index for a in ledger.attempts] == [0]
    assert ledger.totals == ledger.recompute()
