"""Exam composition, timing and analytics thresholds. No UI, no storage."""
# Timed modes: question count + time limit in milliseconds
# Sampling: all-chapter exams spread questions evenly over chapter-01..chapter-10

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS

EXAM_CONFIG = {
    "quick-test": {"question_count": 25, "time_limit": 30 * MINUTE_MS},
    "full-test": {"question_count": 100, "time_limit": 2 * HOUR_MS},
    "official-quick-test": {"question_count": 25, "time_limit": 30 * MINUTE_MS},
    "official-full-test": {"question_count": 100, "time_limit": 2 * HOUR_MS},
    "official-random": {"question_count": 50, "time_limit": 1 * HOUR_MS},
    "past-quick-test": {"question_count": 25, "time_limit": 30 * MINUTE_MS},
    "past-full-test": {"question_count": 100, "time_limit": 2 * HOUR_MS},
    "past-random": {"question_count": 50, "time_limit": 1 * HOUR_MS},
}

# Topic ids for the pseudo-topics exam sessions are filed under
ALL_CHAPTERS_TOPIC = "all-chapters"
OFFICIAL_TOPIC = "official-model-questions"
PAST_TOPIC = "past-questions"
LEARN_PREFIX = "learn-"

EXAM_CHAPTER_COUNT = 10
TICK_INTERVAL_MS = 1000

# Analytics
MIN_QUESTIONS_FOR_RANKING = 5
LOW_ACCURACY = 60.0
GOOD_ACCURACY = 75.0
TARGET_ACCURACY = 70.0
STRETCH_ACCURACY = 80.0
PRACTICE_TARGET_QUESTIONS = 20
SLOW_ANSWER_MS = 2 * MINUTE_MS
