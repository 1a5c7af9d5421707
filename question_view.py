"""Question widget for the exam and practice pages."""
import streamlit as st

from mcq_prep.lifecycle import SessionLifecycle

OPTION_LABELS = "ABCDEFGHIJ"


def hint_key(session_id: str, index: int) -> str:
    return f"hint_{session_id}_{index}"


def explanation_key(session_id: str, index: int) -> str:
    return f"expl_{session_id}_{index}"


def answer_flags(state, session_id: str, index: int) -> dict:
    """hint_used / explanation_viewed as recorded with the answer to ``index``."""
    return {
        "hint_used": bool(state.get(hint_key(session_id, index))),
        "explanation_viewed": bool(state.get(explanation_key(session_id, index))),
    }


def render_question(lifecycle: SessionLifecycle, idx_key: str, feedback: bool):
    """
    Render the current question of ``lifecycle`` with navigation.

    With ``feedback`` (practice and learn) the hint button and explanation
    toggle are shown before the answer is submitted, so both flags are known
    when the attempt is recorded.
    """
    sid = lifecycle.session_id
    questions = lifecycle.questions
    idx = st.session_state.get(idx_key, 0)
    q = lifecycle.show_question(idx)
    options = list(q.options)[:len(OPTION_LABELS)]
    answered = next((a for a in reversed(lifecycle.ledger.attempts) if a.question_index == idx), None)

    st.subheader(f"Question {idx + 1} of {len(questions)}")
    st.write(q.question)

    if feedback and q.hint and st.button("Show hint", key=f"btn_{hint_key(sid, idx)}"):
        st.session_state[hint_key(sid, idx)] = True
    if st.session_state.get(hint_key(sid, idx)):
        st.info(q.hint)

    choice = st.radio(
        "Choose one:",
        range(len(options)),
        format_func=lambda i: f"{OPTION_LABELS[i]}. {options[i]}",
        key=f"radio_{sid}_{idx}",
        index=options.index(answered.selected_option) if answered and answered.selected_option in options else None,
    )
    if feedback and q.explanation and st.checkbox("Show explanation", key=explanation_key(sid, idx)):
        st.info(q.explanation)

    if st.button("Submit answer", type="primary", disabled=choice is None):
        lifecycle.answer(idx, options[choice], **answer_flags(st.session_state, sid, idx))
        st.rerun()

    if feedback and answered:
        if answered.correct:
            st.success("✓ Correct! Well done.")
        else:
            st.error(f"✗ Incorrect. The correct answer is: {q.correct_answer}")

    col1, col2 = st.columns(2)
    with col1:
        if st.button("← Previous", disabled=idx == 0):
            st.session_state[idx_key] = idx - 1
            st.rerun()
    with col2:
        if st.button("Next →", disabled=idx >= len(questions) - 1):
            st.session_state[idx_key] = idx + 1
            st.rerun()
