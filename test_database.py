"""Supabase repository and question bank against a mocked client."""
from unittest.mock import MagicMock

import pytest

from mcq_prep.database import PAGE_SIZE, SupabaseQuestionBank, SupabaseSessionRepository
from mcq_prep.errors import NotFound, PersistenceError
from mcq_prep.models import Attempt, Session


def fake_client(**tables):
    """Client whose ``table(name)`` returns a dedicated MagicMock per table."""
    mocks = {name: tables.get(name, MagicMock()) for name in ("sessions", "attempts", "questions", "topics")}
    client = MagicMock()
    client.table.side_effect = mocks.__getitem__
    return client, mocks


def result(data):
    return MagicMock(data=data)


SESSION_ROW = {
    "session_id": "s1", "topic": "chapter-01", "exam_mode": "quick-test", "start_time": 1000,
    "end_time": None, "questions": None, "total_questions": 1, "correct_answers": 1,
    "wrong_answers": 0, "hints_used": 0, "total_time": 500,
}
ATTEMPT_ROW = {
    "id": 1, "session_id": "s1", "question_id": "q1", "question_index": 0, "topic": "chapter-01",
    "selected_option": "A", "correct": True, "time_spent": 500, "hint_used": False,
    "explanation_viewed": False, "timestamp": 2000,
}


def test_create_session_inserts_without_attempts():
    client, tables = fake_client()
    repo = SupabaseSessionRepository(client)
    session = Session(session_id="s1", topic="chapter-01", start_time=1000)
    repo.create_session(session)

    record = tables["sessions"].insert.call_args[0][0]
    assert record["session_id"] == "s1"
    assert "attempts" not in record


def test_update_missing_session_raises_not_found():
    client, tables = fake_client()
    tables["sessions"].update.return_value.eq.return_value.execute.return_value = result([])
    with pytest.raises(NotFound):
        SupabaseSessionRepository(client).update_session("nope", {"end_time": 1})


def test_storage_errors_become_persistence_errors():
    client, tables = fake_client()
    tables["attempts"].upsert.return_value.execute.side_effect = RuntimeError("timeout")
    attempt = Attempt("s1", "q1", "chapter-01", True, 500, 2000)
    with pytest.raises(PersistenceError):
        SupabaseSessionRepository(client).add_attempt(attempt)


def test_add_attempt_is_an_idempotent_upsert():
    client, tables = fake_client()
    attempt = Attempt("s1", "q1", "chapter-01", True, 500, 2000, question_index=0)
    SupabaseSessionRepository(client).add_attempt(attempt)

    args, kwargs = tables["attempts"].upsert.call_args
    assert args[0]["question_id"] == "q1"
    assert kwargs == {"on_conflict": "session_id,question_id,question_index,timestamp", "ignore_duplicates": True}


def test_delete_attempt_matches_full_key():
    client, tables = fake_client()
    delete = tables["attempts"].delete.return_value
    delete.match.return_value.execute.return_value = result([ATTEMPT_ROW])
    SupabaseSessionRepository(client).delete_attempt("s1", "q1", 2000)
    delete.match.assert_called_once_with({"session_id": "s1", "question_id": "q1", "timestamp": 2000})

    delete.match.return_value.execute.return_value = result([])
    with pytest.raises(NotFound):
        SupabaseSessionRepository(client).delete_attempt("s1", "q1", 2000)


def test_get_session_loads_attempts():
    client, tables = fake_client()
    select = tables["sessions"].select.return_value
    select.eq.return_value.limit.return_value.execute.return_value = result([SESSION_ROW])
    attempts = tables["attempts"].select.return_value.eq.return_value.order.return_value
    attempts.range.return_value.execute.return_value = result([ATTEMPT_ROW])

    session = SupabaseSessionRepository(client).get_session("s1")
    assert session.exam_mode.value == "quick-test"
    assert session.is_open
    assert [a.question_id for a in session.attempts] == ["q1"]


def test_get_missing_session():
    client, tables = fake_client()
    tables["sessions"].select.return_value.eq.return_value.limit.return_value.execute.return_value = result([])
    with pytest.raises(NotFound):
        SupabaseSessionRepository(client).get_session("s9")


def test_list_sessions_groups_attempts():
    client, tables = fake_client()
    other = dict(SESSION_ROW, session_id="s2")
    tables["sessions"].select.return_value.order.return_value.range.return_value.execute.return_value = result(
        [SESSION_ROW, other]
    )
    tables["attempts"].select.return_value.order.return_value.range.return_value.execute.return_value = result(
        [ATTEMPT_ROW]
    )
    sessions = SupabaseSessionRepository(client).list_sessions()
    assert [len(s.attempts) for s in sessions] == [1, 0]


def test_fetch_all_pages_through_results():
    client, tables = fake_client()
    page = tables["questions"].select.return_value.eq.return_value.order.return_value.range
    row = {"question": "Q?", "options": ["A", "B"], "correct_answer": "A", "chapter": "1"}
    page.return_value.execute.side_effect = [result([row] * PAGE_SIZE), result([row] * 5)]

    questions = SupabaseQuestionBank(client).fetch_all_questions()
    assert len(questions) == PAGE_SIZE + 5
    assert [c.args for c in page.call_args_list] == [(0, PAGE_SIZE - 1), (PAGE_SIZE, 2 * PAGE_SIZE - 1)]


def test_fetch_questions_for_general_topic_uses_every_chapter():
    client, tables = fake_client()
    tables["topics"].select.return_value.order.return_value.execute.return_value = result(
        [{"id": "all", "name": "All", "is_general": True}]
    )
    questions = tables["questions"].select.return_value.eq.return_value.order.return_value
    questions.range.return_value.execute.return_value = result(
        [{"question": "Q?", "options": ["A"], "correct_answer": "A", "question_number": 1}]
    )
    assert len(SupabaseQuestionBank(client).fetch_questions("all")) == 1
    tables["questions"].select.return_value.eq.assert_called_with("bank", "chapters")


def test_delete_attempt_narrows_by_question_index():
    client, tables = fake_client()
    delete = tables["attempts"].delete.return_value
    delete.match.return_value.execute.return_value = result([ATTEMPT_ROW])
    SupabaseSessionRepository(client).delete_attempt("s1", "q1", 2000, question_index=3)
    delete.match.assert_called_once_with(
        {"session_id": "s1", "question_id": "q1", "timestamp": 2000, "question_index": 3}
    )
