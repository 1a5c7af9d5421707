"""
Question sampling: shuffling, even distribution across chapters, flat sampling.

All functions are pure: inputs are never mutated and an empty pool yields an
empty list rather than an error, so callers can show a "no questions" message.
"""
import logging
import random
import re
from typing import Dict, Iterable, List, Optional, Sequence, TypeVar

from engine import EXAM_CHAPTER_COUNT
from mcq_prep.models import Question

logger = logging.getLogger(__name__)

T = TypeVar("T")

CHAPTER_NUMBER_RE = re.compile(r"(\d+)")
EXAM_CHAPTER_RE = re.compile(r"^chapter-(\d{2})$")


def shuffle(items: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """Fisher-Yates shuffle into a new list."""
    rng = rng or random
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def distribute_across_chapters(
    chapter_buckets: Dict[str, Sequence[T]],
    total_count: int,
    rng: Optional[random.Random] = None,
) -> List[T]:
    """
    Spread ``total_count`` picks as evenly as integer division allows.

    The first ``total_count % n`` chapters (in iteration order) take one extra
    question. Each bucket is shuffled before its prefix is taken; a bucket
    smaller than its quota contributes everything it has. The combined
    selection is shuffled again before returning.

    Args:
        chapter_buckets: chapter id -> ordered questions
        total_count: number of questions requested

    Returns:
        At most ``total_count`` questions
    """
    num_chapters = len(chapter_buckets)
    if num_chapters == 0 or total_count <= 0:
        return []

    base, remainder = divmod(total_count, num_chapters)
    selected: List[T] = []
    for i, (chapter_id, bucket) in enumerate(chapter_buckets.items()):
        quota = base + (1 if i < remainder else 0)
        picked = shuffle(bucket, rng)[:quota]
        if len(picked) < quota:
            logger.debug(f"Chapter {chapter_id}: only {len(picked)} of {quota} questions available")
        selected.extend(picked)

    return shuffle(selected, rng)


def sample_flat(
    pool: Sequence[T],
    count: int,
    preserve_order: bool = False,
    rng: Optional[random.Random] = None,
) -> List[T]:
    """
    Sample from a single pool with no chapter grouping.

    ``count <= 0`` means the whole pool: in its original order when
    ``preserve_order`` (list-all modes), shuffled otherwise.
    """
    if preserve_order:
        return list(pool) if count <= 0 else list(pool[:count])
    shuffled = shuffle(pool, rng)
    if count <= 0:
        return shuffled
    return shuffled[:min(count, len(shuffled))]


def chapter_id_for(value) -> Optional[str]:
    """Normalize '7', 'Chapter 7' or 'chapter-07' to 'chapter-07'."""
    if value is None:
        return None
    match = CHAPTER_NUMBER_RE.search(str(value))
    if not match:
        return None
    return f"chapter-{int(match.group(1)):02d}"


def is_exam_chapter(topic_id: str) -> bool:
    """True for the chapters all-chapter exams draw from (chapter-01..chapter-10)."""
    match = EXAM_CHAPTER_RE.match(topic_id or "")
    return bool(match) and 1 <= int(match.group(1)) <= EXAM_CHAPTER_COUNT


def bucket_by_chapter(questions: Iterable[Question], chapter_ids: Sequence[str]) -> Dict[str, List[Question]]:
    """
    Group questions into buckets keyed by ``chapter_ids`` (order kept).

    Questions are tagged with their normalized ``chapter_id``; questions whose
    chapter is not listed are dropped. Chapters with no questions still get an
    (empty) bucket so they keep their place in the remainder order.
    """
    buckets: Dict[str, List[Question]] = {chapter_id: [] for chapter_id in chapter_ids}
    for question in questions:
        chapter_id = chapter_id_for(question.chapter)
        if chapter_id in buckets:
            buckets[chapter_id].append(question.with_chapter_id(chapter_id))
    return buckets


def filter_questions(
    questions: Iterable[Question],
    chapters: Optional[Sequence[str]] = None,
    difficulties: Optional[Sequence[str]] = None,
    sources: Optional[Sequence[str]] = None,
) -> List[Question]:
    """Filter by chapter/difficulty/source and sort by question number."""
    result = list(questions)
    if chapters:
        wanted = {chapter_id_for(c) for c in chapters}
        result = [q for q in result if chapter_id_for(q.chapter) in wanted]
    if difficulties:
        result = [q for q in result if q.difficulty and q.difficulty in difficulties]
    if sources:
        result = [q for q in result if q.source and q.source in sources]
    return sorted(result, key=lambda q: q.question_number or 0)
