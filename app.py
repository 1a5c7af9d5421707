"""MCQ Prep: multi-page exam simulator over the session engine."""
import logging
import sys
from pathlib import Path

# Ensure project root is in path
project_root = Path(__file__).resolve().parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import streamlit as st

from db import get_question_bank, get_repository, log_level
from engine import LEARN_PREFIX
from mcq_prep import analytics
from mcq_prep.errors import QuizEngineError
from mcq_prep.lifecycle import SessionLifecycle
from mcq_prep.models import ExamMode
from mcq_prep.review import reconstruct_review
from mcq_prep.sampler import is_exam_chapter
from mcq_prep.timer import CountdownTimer, format_time
from question_view import render_question

logging.basicConfig(level=log_level(), format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)

PAGES = ["Dashboard", "Mock Test", "Practice", "Review", "History"]
TIMED_MODES = [m for m in ExamMode if m.is_timed]

st.set_page_config(page_title="MCQ Prep", layout="wide")
st.sidebar.title("MCQ Prep")
# Allow URL to open a specific page (e.g. review after an exam)
default_page = st.query_params.get("page", "Dashboard")
if default_page not in PAGES:
    default_page = "Dashboard"
page = st.sidebar.radio("Navigate", PAGES, index=PAGES.index(default_page), label_visibility="collapsed")

try:
    repository = get_repository()
    question_bank = get_question_bank()
except Exception as e:
    logger.error(f"Storage setup failed: {e}")
    st.error(f"Could not connect to storage. Check .env (SUPABASE_URL, SUPABASE_KEY). {e}")
    st.stop()


def open_review(session_id: str):
    st.query_params["page"] = "Review"
    st.query_params["session_id"] = session_id
    st.rerun()


# ----- Dashboard -----
if page == "Dashboard":
    st.header("Dashboard")
    try:
        sessions = repository.list_sessions()
        report = analytics.build_report(sessions, merge_learn=True)
        overall = report["overall"]
        col1, col2, col3, col4 = st.columns(4)
        col1.metric("Questions answered", overall["total_questions"])
        col2.metric("Accuracy", f"{overall['accuracy']:.1f}%")
        col3.metric("Avg time / question", format_time(overall["average_time_per_question"]))
        col4.metric("Improvement", f"{report['improvement_rate']:+.1f} pts")

        if report["best_worst"]["best"]:
            st.caption(f"Best: {report['best_worst']['best']} · Worst: {report['best_worst']['worst']}")
        if report["trends"]:
            st.subheader("Accuracy by day")
            st.line_chart([{"day": t.label, "accuracy": t.accuracy} for t in report["trends"]], x="day", y="accuracy")
        st.subheader("Time per question")
        st.bar_chart([{"band": band, "answers": n} for band, n in report["time_distribution"]], x="band", y="answers")

        st.subheader("Insights")
        for insight in report["insights"]:
            st.write(f"**{insight.title}** ({insight.priority}): {insight.description}")
        st.subheader("Focus recommendations")
        for rec in report["focus"]:
            st.write(f"- {rec.chapter}: {rec.reason} · {rec.current_accuracy:.0f}% → "
                     f"{rec.target_accuracy:.0f}% · ~{rec.questions_needed} more questions")
        if report["difficulty"]:
            st.subheader("Most encountered questions")
            st.dataframe([vars(d) for d in report["difficulty"][:10]], use_container_width=True)
    except QuizEngineError as e:
        st.error(f"Could not load analytics: {e}")

# ----- Mock Test -----
elif page == "Mock Test":
    st.header("Mock Test")
    exam: SessionLifecycle | None = st.session_state.get("exam")

    if exam is None:
        mode = st.selectbox("Exam mode", TIMED_MODES, format_func=lambda m: m.value.replace("-", " ").title())
        st.caption(f"{mode.question_count} questions · {format_time(mode.time_limit)} · no hints")
        if st.button("Start exam", type="primary"):
            try:
                lifecycle = SessionLifecycle.create(repository, question_bank, exam_mode=mode)
                if not lifecycle.start():
                    st.warning("No questions available for this mode.")
                else:
                    if lifecycle.shortfall:
                        st.warning(f"Only {len(lifecycle.questions)} questions available ({lifecycle.shortfall} short).")
                    st.session_state["exam"] = lifecycle
                    st.session_state["exam_idx"] = 0
                    st.rerun()
            except QuizEngineError as e:
                st.error(f"Failed to start exam: {e}")
        st.stop()

    # Every rerun is a "tab visible" moment: resync from the wall clock
    exam.resume()
    if exam.is_completed:
        st.session_state.pop("exam", None)
        open_review(exam.session_id)

    summary = exam.summary()
    if isinstance(exam.timer, CountdownTimer):
        st.sidebar.metric("Time left", format_time(exam.timer.remaining))
    n = summary["total_questions"]
    st.sidebar.progress(summary["questions_answered"] / n if n else 0)
    st.sidebar.caption(f"{summary['questions_answered']}/{n} answered")

    try:
        render_question(exam, "exam_idx", feedback=False)
        col1, col2 = st.columns(2)
        with col1:
            if st.button("Submit exam"):
                exam.finish()
                st.session_state.pop("exam", None)
                open_review(exam.session_id)
        with col2:
            confirm = st.checkbox("I want to leave; the exam ends now and unanswered questions count as wrong")
            if st.button("Leave exam") and exam.close_tab(confirm):
                st.session_state.pop("exam", None)
                open_review(exam.session_id)
    except QuizEngineError as e:
        st.error(f"Exam error: {e}")

# ----- Practice -----
elif page == "Practice":
    st.header("Practice")
    practice: SessionLifecycle | None = st.session_state.get("practice")

    if practice is None:
        try:
            topics = question_bank.fetch_topics()
        except QuizEngineError as e:
            st.error(f"Could not load topics: {e}")
            st.stop()
        style = st.radio("Mode", ["Practice (shuffled)", "Learn (in order)"], horizontal=True)
        topic = st.selectbox("Topic", topics, format_func=lambda t: t.name)
        limit = 0
        if style.startswith("Practice") and st.checkbox("Limit number of questions"):
            limit = st.number_input("Maximum questions", min_value=5, max_value=500, value=25, step=5)
        if topic and st.button("Start", type="primary"):
            try:
                learn = style.startswith("Learn")
                lifecycle = SessionLifecycle.create(
                    repository, question_bank,
                    topic=f"{LEARN_PREFIX}{topic.id}" if learn else topic.id,
                    exam_mode=None if learn or not is_exam_chapter(topic.id) else ExamMode.CHAPTERWISE,
                    question_limit=int(limit),
                )
                if not lifecycle.start():
                    st.warning(f"No questions found for {topic.name}")
                else:
                    st.session_state["practice"] = lifecycle
                    st.session_state["practice_idx"] = 0
                    st.rerun()
            except QuizEngineError as e:
                st.error(f"Failed to load questions: {e}")
        st.stop()

    summary = practice.summary()
    st.caption(f"{practice.session.topic} · {summary['questions_answered']}/{summary['total_questions']} answered"
               f" · {summary['correct_count']} correct · {format_time(summary.get('time_elapsed_ms', 0))}")
    try:
        render_question(practice, "practice_idx", feedback=True)
        if st.button("End practice session"):
            practice.finish()
            st.session_state.pop("practice", None)
            open_review(practice.session_id)
    except QuizEngineError as e:
        st.error(f"Practice error: {e}")

# ----- Review -----
elif page == "Review":
    st.header("Review")
    try:
        sessions = [s for s in repository.list_sessions() if not s.is_open]
    except QuizEngineError as e:
        st.error(f"Could not load sessions: {e}")
        st.stop()
    if not sessions:
        st.info("No finished sessions yet.")
        st.stop()

    ids = [s.session_id for s in reversed(sessions)]
    wanted = st.query_params.get("session_id")
    session_id = st.selectbox("Session", ids, index=ids.index(wanted) if wanted in ids else 0)
    session = analytics.find_session(sessions, session_id)
    review = reconstruct_review(session, question_bank)
    if review.approximate:
        st.warning("This session was stored without its questions; the review below is approximate.")

    s = review.summary()
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Correct", s["correct"])
    col2.metric("Incorrect", s["incorrect"])
    col3.metric("Unanswered", s["unanswered"])
    col4.metric("Accuracy", f"{s['accuracy_percent']:.1f}%")

    for item in review.items:
        icon = {"correct": "✓", "incorrect": "✗", "unanswered": "○"}[item.status]
        with st.expander(f"{icon} Q{item.index + 1}. {item.question.question[:80]}"):
            for option in item.question.options:
                if option == item.correct_answer:
                    st.success(f"✓ {option} (Correct Answer)")
                elif option == item.selected_option:
                    st.error(f"✗ {option} (Your Answer)")
                else:
                    st.write(f"○ {option}")
            if item.attempt:
                st.caption(f"Time spent: {format_time(item.time_spent)}")
            if item.hint:
                st.caption(f"Hint: {item.hint}")
            if item.explanation:
                st.info(item.explanation)

    if session.questions and st.button("Retake with the same questions"):
        try:
            lifecycle = SessionLifecycle.retake(session, repository, question_bank)
            lifecycle.start()
            key = "exam" if session.exam_mode and session.exam_mode.is_timed else "practice"
            st.session_state[key] = lifecycle
            st.session_state[f"{key}_idx"] = 0
            st.query_params["page"] = "Mock Test" if key == "exam" else "Practice"
            st.rerun()
        except QuizEngineError as e:
            st.error(f"Retake failed: {e}")

# ----- History -----
elif page == "History":
    st.header("History")
    try:
        sessions = list(reversed(repository.list_sessions()))
    except QuizEngineError as e:
        st.error(f"Could not load sessions: {e}")
        st.stop()

    if sessions and st.button("Clear all history"):
        repository.clear()
        st.rerun()

    for session in sessions:
        state = "in progress" if session.is_open else "finished"
        title = (f"{session.topic} · {session.exam_mode.value if session.exam_mode else 'practice'} · "
                 f"{session.correct_answers}/{session.total_questions} · {state}")
        with st.expander(title):
            lifecycle = SessionLifecycle(session, repository, question_bank)
            for attempt in session.attempts:
                col1, col2 = st.columns([4, 1])
                with col1:
                    mark = "✓" if attempt.correct else "✗"
                    st.write(f"{mark} Q{attempt.question_id} · {attempt.selected_option or '(unanswered)'}"
                             f" · {format_time(attempt.time_spent)}")
                with col2:
                    if st.button("Delete", key="del_" + "_".join(map(str, attempt.key))):
                        try:
                            lifecycle.remove_attempt(attempt.question_id, attempt.timestamp, attempt.question_index)
                            st.rerun()
                        except QuizEngineError as e:
                            st.error(f"Could not delete attempt: {e}")
            if st.button("Delete session", key=f"del_session_{session.session_id}"):
                try:
                    repository.delete_session(session.session_id)
                    st.rerun()
                except QuizEngineError as e:
                    st.error(f"Could not delete session: {e}")
