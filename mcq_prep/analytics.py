"""
Cross-session analytics: pure functions over a list of sessions.

Open sessions (no end_time) are included by every aggregate; their attempts
are real answers. ``build_report(include_open=False)`` restricts a report to
finished sessions.
"""
import logging
import math
from collections import OrderedDict
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from engine import (
    GOOD_ACCURACY,
    LEARN_PREFIX,
    LOW_ACCURACY,
    MIN_QUESTIONS_FOR_RANKING,
    PRACTICE_TARGET_QUESTIONS,
    SLOW_ANSWER_MS,
    STRETCH_ACCURACY,
    TARGET_ACCURACY,
)
from mcq_prep.models import ExamMode, Session

logger = logging.getLogger(__name__)

PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}

# (label, upper bound in seconds); the last band is open-ended
TIME_BANDS = [("0-10s", 10), ("10-30s", 30), ("30-60s", 60), ("1-2m", 120), ("2m+", None)]


@dataclass
class OverallStats:
    total_questions: int = 0
    total_correct: int = 0
    total_wrong: int = 0
    total_hints: int = 0
    total_time: int = 0
    average_time_per_question: float = 0.0
    accuracy: float = 0.0


@dataclass
class ChapterStats:
    total_questions: int = 0
    correct: int = 0
    wrong: int = 0
    hints_used: int = 0
    total_time: int = 0
    average_time: float = 0.0
    accuracy: float = 0.0


@dataclass(frozen=True)
class PerformanceTrend:
    date: date
    accuracy: float
    questions: int

    @property
    def label(self) -> str:
        return f"{self.date:%b} {self.date.day}"


@dataclass(frozen=True)
class QuestionDifficulty:
    question_id: str
    topic: str
    attempts: int
    correct_rate: float
    average_time: float
    hint_usage_rate: float


@dataclass(frozen=True)
class FocusRecommendation:
    chapter: str
    reason: str
    priority: str
    current_accuracy: float
    target_accuracy: float
    questions_needed: int


@dataclass(frozen=True)
class PerformanceInsight:
    type: str
    title: str
    description: str
    priority: str
    data: Dict = field(default_factory=dict)


def session_day(session: Session) -> date:
    return datetime.fromtimestamp(session.start_time / 1000).date()


def session_accuracy(session: Session) -> float:
    return session.accuracy


def by_priority(items: List) -> List:
    return sorted(items, key=lambda item: PRIORITY_ORDER[item.priority])


# ============= Filters =============

def filter_sessions_by_mode(sessions: List[Session], mode: str) -> List[Session]:
    """'learn' keeps learn-* sessions, 'practice' keeps the rest."""
    if mode == "learn":
        return [s for s in sessions if s.is_learn]
    return [s for s in sessions if not s.is_learn]


def filter_sessions_by_exam_mode(sessions: List[Session], exam_mode) -> List[Session]:
    exam_mode = ExamMode(exam_mode)
    return [s for s in sessions if s.exam_mode == exam_mode]


def completed_sessions(sessions: List[Session]) -> List[Session]:
    return [s for s in sessions if not s.is_open]


# ============= Aggregates =============

def overall_stats(sessions: List[Session]) -> OverallStats:
    stats = OverallStats()
    for s in sessions:
        stats.total_questions += s.total_questions
        stats.total_correct += s.correct_answers
        stats.total_wrong += s.wrong_answers
        stats.total_hints += s.hints_used
        stats.total_time += s.total_time
    if stats.total_questions > 0:
        stats.average_time_per_question = stats.total_time / stats.total_questions
        stats.accuracy = stats.total_correct / stats.total_questions * 100
    return stats


def chapter_stats(sessions: List[Session], merge_learn: bool = False) -> Dict[str, ChapterStats]:
    """
    Stats grouped by session topic.

    Args:
        merge_learn: fold 'learn-<topic>' sessions into '<topic>'
    """
    stats: Dict[str, ChapterStats] = OrderedDict()
    for s in sessions:
        topic = s.topic[len(LEARN_PREFIX):] if merge_learn and s.is_learn else s.topic
        chapter = stats.setdefault(topic, ChapterStats())
        chapter.total_questions += s.total_questions
        chapter.correct += s.correct_answers
        chapter.wrong += s.wrong_answers
        chapter.hints_used += s.hints_used
        chapter.total_time += s.total_time
    for chapter in stats.values():
        if chapter.total_questions > 0:
            chapter.accuracy = chapter.correct / chapter.total_questions * 100
            chapter.average_time = chapter.total_time / chapter.total_questions
    return stats


def time_distribution(sessions: List[Session]) -> List[Tuple[str, int]]:
    """Count every attempt into a time band: (label, count) in band order."""
    counts = OrderedDict((label, 0) for label, _ in TIME_BANDS)
    for s in sessions:
        for attempt in s.attempts:
            seconds = attempt.time_spent / 1000
            for label, upper in TIME_BANDS:
                if upper is None or seconds < upper:
                    counts[label] += 1
                    break
    return list(counts.items())


def performance_trends(sessions: List[Session]) -> List[PerformanceTrend]:
    days: Dict[date, List[int]] = {}
    for s in sessions:
        day = days.setdefault(session_day(s), [0, 0])
        day[0] += s.correct_answers
        day[1] += s.total_questions
    return [
        PerformanceTrend(date=d, accuracy=(c / t * 100) if t > 0 else 0.0, questions=t)
        for d, (c, t) in sorted(days.items())
    ]


def question_difficulty(sessions: List[Session]) -> List[QuestionDifficulty]:
    """
    Per (topic, question) attempt stats, most-attempted first.

    Ordering is by attempt count, i.e. how often a question came up, not by
    how often it was missed.
    """
    grouped: Dict[Tuple[str, str], List[int]] = OrderedDict()
    for s in sessions:
        for attempt in s.attempts:
            row = grouped.setdefault((s.topic, attempt.question_id), [0, 0, 0, 0])
            row[0] += 1
            row[1] += 1 if attempt.correct else 0
            row[2] += attempt.time_spent
            row[3] += 1 if attempt.hint_used else 0
    ranking = [
        QuestionDifficulty(
            question_id=question_id,
            topic=topic,
            attempts=n,
            correct_rate=correct / n * 100,
            average_time=total_time / n,
            hint_usage_rate=hints / n * 100,
        )
        for (topic, question_id), (n, correct, total_time, hints) in grouped.items()
    ]
    return sorted(ranking, key=lambda q: q.attempts, reverse=True)


def ranked_chapters(stats: Dict[str, ChapterStats]) -> List[Tuple[str, ChapterStats]]:
    eligible = [(name, c) for name, c in stats.items() if c.total_questions >= MIN_QUESTIONS_FOR_RANKING]
    return sorted(eligible, key=lambda item: item[1].accuracy, reverse=True)


def best_worst_topics(sessions: List[Session]) -> Dict[str, str]:
    ranked = ranked_chapters(chapter_stats(sessions))
    if not ranked:
        return {"best": "", "worst": ""}
    return {"best": ranked[0][0], "worst": ranked[-1][0]}


def _mean_accuracy(sessions: List[Session]) -> float:
    return sum(session_accuracy(s) for s in sessions) / len(sessions)


def improvement_rate(sessions: List[Session]) -> float:
    """Mean session accuracy of the later half minus the earlier half (points)."""
    if len(sessions) < 2:
        return 0.0
    ordered = sorted(sessions, key=lambda s: s.start_time)
    middle = len(ordered) // 2
    return _mean_accuracy(ordered[middle:]) - _mean_accuracy(ordered[:middle])


def focus_recommendations(stats: Dict[str, ChapterStats]) -> List[FocusRecommendation]:
    recommendations = []
    for chapter, c in stats.items():
        if c.total_questions < MIN_QUESTIONS_FOR_RANKING:
            recommendations.append(FocusRecommendation(
                chapter, "Insufficient practice", "high", c.accuracy, TARGET_ACCURACY,
                PRACTICE_TARGET_QUESTIONS - c.total_questions,
            ))
        elif c.accuracy < LOW_ACCURACY:
            recommendations.append(FocusRecommendation(
                chapter, "Low accuracy", "high", c.accuracy, TARGET_ACCURACY,
                max(15, math.ceil((TARGET_ACCURACY - c.accuracy) / 2) * 5),
            ))
        elif c.accuracy < GOOD_ACCURACY:
            recommendations.append(FocusRecommendation(
                chapter, "Can improve further", "medium", c.accuracy, STRETCH_ACCURACY,
                math.ceil((STRETCH_ACCURACY - c.accuracy) / 2) * 5,
            ))
    return by_priority(recommendations)


# ============= Insights =============

def performance_insights(sessions: List[Session], stats: Dict[str, ChapterStats]) -> List[PerformanceInsight]:
    insights: List[PerformanceInsight] = []
    if not sessions:
        return insights

    ranked = ranked_chapters(stats)
    if ranked:
        best, best_stats = ranked[0]
        worst, worst_stats = ranked[-1]
        if best_stats.accuracy >= 80:
            insights.append(PerformanceInsight(
                "strength", f"Strong Performance: {best}",
                f"You're excelling in {best} with {best_stats.accuracy:.1f}% accuracy. Keep up the great work!",
                "low", {"chapter": best, "accuracy": best_stats.accuracy},
            ))
        if worst_stats.accuracy < LOW_ACCURACY and worst_stats.total_questions >= 10:
            insights.append(PerformanceInsight(
                "weakness", f"Needs Focus: {worst}",
                f"{worst} shows {worst_stats.accuracy:.1f}% accuracy. Consider spending more time reviewing this chapter.",
                "high", {"chapter": worst, "accuracy": worst_stats.accuracy},
            ))

    if len(sessions) >= 5:
        ordered = sorted(sessions, key=lambda s: s.start_time)
        half = len(ordered) // 2
        improvement = _mean_accuracy(ordered[-half:]) - _mean_accuracy(ordered[:half])
        if improvement > 5:
            insights.append(PerformanceInsight(
                "improvement", "Steady Improvement",
                f"Your accuracy has improved by {improvement:.1f}% in recent sessions. Great progress!",
                "low", {"improvement": improvement},
            ))
        elif improvement < -5:
            insights.append(PerformanceInsight(
                "recommendation", "Review Needed",
                f"Your accuracy has decreased by {abs(improvement):.1f}%. Consider reviewing previous chapters.",
                "high", {"decline": abs(improvement)},
            ))

    totals = overall_stats(sessions)
    hint_rate = totals.total_hints / totals.total_questions * 100 if totals.total_questions else 0.0
    if hint_rate > 50:
        insights.append(PerformanceInsight(
            "recommendation", "High Hint Usage",
            f"You're using hints {hint_rate:.1f}% of the time. Try to reduce hint dependency to build confidence.",
            "medium", {"hint_rate": hint_rate},
        ))

    avg_time = sum(s.total_time / s.total_questions if s.total_questions else 0 for s in sessions) / len(sessions)
    if avg_time > SLOW_ANSWER_MS:
        insights.append(PerformanceInsight(
            "recommendation", "Slow Response Time",
            f"Average time per question is {avg_time / 1000 / 60:.1f} minutes. Practice more to improve speed.",
            "medium", {"avg_time": avg_time},
        ))

    low_attempt = sorted(
        ((name, c) for name, c in stats.items() if 0 < c.total_questions < 10),
        key=lambda item: item[1].total_questions,
    )
    if low_attempt:
        chapter, c = low_attempt[0]
        insights.append(PerformanceInsight(
            "recommendation", f"Explore More: {chapter}",
            f"You've only attempted {c.total_questions} questions in {chapter}. Try practicing more questions here.",
            "medium", {"chapter": chapter, "count": c.total_questions},
        ))

    return by_priority(insights)


def mode_specific_insights(sessions: List[Session], mode: str, exam_mode=None) -> List[PerformanceInsight]:
    """Insights for learn or practice runs, optionally narrowed to one exam mode."""
    exam_mode = ExamMode(exam_mode) if exam_mode else None
    filtered = [s for s in sessions if s.exam_mode == exam_mode] if exam_mode else list(sessions)
    insights: List[PerformanceInsight] = []
    if not filtered:
        return insights
    accuracy = overall_stats(filtered).accuracy

    if mode == "learn":
        if accuracy >= 85:
            insights.append(PerformanceInsight(
                "strength", "Excellent Learning Progress",
                f"You're mastering the concepts with {accuracy:.1f}% accuracy in learn mode.", "low",
            ))
        with_explanations = [s for s in filtered if any(a.explanation_viewed for a in s.attempts)]
        if len(with_explanations) / len(filtered) * 100 < 80:
            insights.append(PerformanceInsight(
                "recommendation", "Review Explanations",
                "Make sure to read explanations after each question in learn mode to maximize understanding.",
                "medium",
            ))
    elif exam_mode == ExamMode.QUICK_TEST:
        if accuracy >= 80:
            insights.append(PerformanceInsight(
                "strength", "Quick Test Mastery",
                f"You're performing well in quick tests with {accuracy:.1f}% accuracy. Ready for full tests!", "low",
            ))
        elif accuracy < LOW_ACCURACY:
            insights.append(PerformanceInsight(
                "recommendation", "Build Foundation First",
                f"Quick test accuracy is {accuracy:.1f}%. Focus on chapter practice before attempting full tests.",
                "high",
            ))
    elif exam_mode == ExamMode.FULL_TEST:
        if accuracy >= TARGET_ACCURACY:
            insights.append(PerformanceInsight(
                "strength", "Exam Ready",
                f"You're scoring {accuracy:.1f}% in full tests. You're well-prepared for the actual exam!", "low",
            ))
        else:
            insights.append(PerformanceInsight(
                "recommendation", "More Practice Needed",
                f"Full test accuracy is {accuracy:.1f}%. Continue practicing to reach 70%+ for exam readiness.",
                "high",
            ))
    elif exam_mode == ExamMode.CHAPTERWISE and accuracy >= GOOD_ACCURACY:
        insights.append(PerformanceInsight(
            "strength", "Strong Chapter Practice",
            f"You're doing well in chapter practice with {accuracy:.1f}% accuracy.", "low",
        ))
    return insights


# ============= Daily series =============

def hints_usage_trends(sessions: List[Session]) -> List[Dict]:
    days: Dict[date, List[int]] = {}
    for s in sessions:
        day = days.setdefault(session_day(s), [0, 0])
        day[0] += s.hints_used
        day[1] += s.total_questions
    return [
        {"date": d, "hints": h, "questions": q, "hint_rate": (h / q * 100) if q else 0.0}
        for d, (h, q) in sorted(days.items())
    ]


def chapter_comparison(sessions: List[Session]) -> List[Dict]:
    rows = [
        {"name": name, "accuracy": c.accuracy, "questions": c.total_questions, "avg_time": c.average_time}
        for name, c in chapter_stats(sessions).items()
        if c.total_questions > 0
    ]
    return sorted(rows, key=lambda row: row["questions"], reverse=True)


def daily_activity(sessions: List[Session]) -> List[Dict]:
    days: Dict[date, Dict] = {}
    for s in sessions:
        day = days.setdefault(session_day(s), {"questions": 0, "sessions": set()})
        day["questions"] += s.total_questions
        day["sessions"].add(s.session_id)
    return [
        {"date": d, "questions": v["questions"], "sessions": len(v["sessions"])}
        for d, v in sorted(days.items())
    ]


# ============= Report =============

def build_report(sessions: List[Session], include_open: bool = True, merge_learn: bool = False) -> Dict:
    """Every aggregate in one dict, as the analytics page renders it."""
    if not include_open:
        sessions = completed_sessions(sessions)
    stats = chapter_stats(sessions, merge_learn=merge_learn)
    logger.debug(f"Analytics report over {len(sessions)} sessions, {len(stats)} chapters")
    return {
        "session_count": len(sessions),
        "overall": asdict(overall_stats(sessions)),
        "chapters": {name: asdict(c) for name, c in stats.items()},
        "time_distribution": time_distribution(sessions),
        "trends": performance_trends(sessions),
        "difficulty": question_difficulty(sessions),
        "best_worst": best_worst_topics(sessions),
        "improvement_rate": improvement_rate(sessions),
        "focus": focus_recommendations(stats),
        "insights": performance_insights(sessions, stats),
        "hints_trends": hints_usage_trends(sessions),
        "chapter_comparison": chapter_comparison(sessions),
        "daily_activity": daily_activity(sessions),
    }


def find_session(sessions: List[Session], session_id: str) -> Optional[Session]:
    return next((s for s in sessions if s.session_id == session_id), None)
