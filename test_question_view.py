"""Answer flags carried from the question widget into recorded attempts."""
from mcq_prep import analytics
from mcq_prep.lifecycle import SessionLifecycle
from question_view import answer_flags, explanation_key, hint_key


def test_flags_default_to_false():
    assert answer_flags({}, "s1", 0) == {"hint_used": False, "explanation_viewed": False}


def test_flags_are_per_question():
    state = {hint_key("s1", 2): True, explanation_key("s1", 3): True}
    assert answer_flags(state, "s1", 2) == {"hint_used": True, "explanation_viewed": False}
    assert answer_flags(state, "s1", 3) == {"hint_used": False, "explanation_viewed": True}
    assert answer_flags(state, "s2", 3) == {"hint_used": False, "explanation_viewed": False}


def test_explanation_toggled_before_submit_is_recorded(repository, question_bank, clock):
    lifecycle = SessionLifecycle.create(repository, question_bank, topic="learn-chapter-01", clock=clock)
    lifecycle.start()
    sid = lifecycle.session_id
    # the explanation checkbox writes its own key into session state
    state = {explanation_key(sid, 0): True}

    attempt = lifecycle.answer(0, lifecycle.questions[0].correct_answer, **answer_flags(state, sid, 0))
    assert attempt.explanation_viewed
    lifecycle.finish()

    stored = repository.get_session(sid)
    assert any(a.explanation_viewed for a in stored.attempts)
    titles = [i.title for i in analytics.mode_specific_insights([stored], "learn")]
    assert "Review Explanations" not in titles
