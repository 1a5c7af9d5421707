"""Sampling: shuffle, chapter distribution, flat sampling and chapter helpers."""
from collections import Counter

from conftest import make_question
from mcq_prep.sampler import (
    bucket_by_chapter,
    chapter_id_for,
    distribute_across_chapters,
    filter_questions,
    is_exam_chapter,
    sample_flat,
    shuffle,
)


def test_shuffle_is_a_permutation_and_leaves_input_alone(rng):
    items = list(range(50))
    shuffled = shuffle(items, rng)
    assert sorted(shuffled) == items
    assert items == list(range(50))
    assert shuffled != items


def test_shuffle_handles_empty_and_single():
    assert shuffle([]) == []
    assert shuffle(["x"]) == ["x"]


def test_distribution_gives_remainder_to_first_chapters(rng):
    buckets = {f"c{i}": [f"c{i}-{j}" for j in range(10)] for i in range(3)}
    picked = distribute_across_chapters(buckets, 10, rng)
    per_chapter = Counter(q.split("-")[0] for q in picked)
    assert len(picked) == 10
    assert per_chapter == {"c0": 4, "c1": 3, "c2": 3}


def test_distribution_under_fills_silently(rng):
    buckets = {
        "a": [f"a{i}" for i in range(10)],
        "b": [f"b{i}" for i in range(10)],
        "c": [f"c{i}" for i in range(3)],
    }
    picked = distribute_across_chapters(buckets, 7, rng)
    per_chapter = Counter(q[0] for q in picked)
    assert per_chapter == {"a": 3, "b": 2, "c": 2}

    picked = distribute_across_chapters(buckets, 30, rng)
    assert len(picked) == 23
    assert Counter(q[0] for q in picked)["c"] == 3


def test_distribution_with_no_chapters_or_zero_count(rng):
    assert distribute_across_chapters({}, 10, rng) == []
    assert distribute_across_chapters({"a": [1, 2]}, 0, rng) == []


def test_distribution_picks_are_distinct(rng):
    buckets = {f"c{i}": list(range(i * 100, i * 100 + 20)) for i in range(10)}
    picked = distribute_across_chapters(buckets, 100, rng)
    assert len(picked) == len(set(picked)) == 100


def test_sample_flat(rng):
    pool = list(range(20))
    assert len(sample_flat(pool, 5, rng=rng)) == 5
    assert sorted(sample_flat(pool, 0, rng=rng)) == pool
    assert len(sample_flat(pool, 50, rng=rng)) == 20
    assert sample_flat(pool, 0, preserve_order=True) == pool
    assert sample_flat(pool, 3, preserve_order=True) == [0, 1, 2]
    assert sample_flat([], 10, rng=rng) == []


def test_chapter_id_for():
    assert chapter_id_for("7") == "chapter-07"
    assert chapter_id_for("Chapter 12") == "chapter-12"
    assert chapter_id_for("chapter-03") == "chapter-03"
    assert chapter_id_for(4) == "chapter-04"
    assert chapter_id_for(None) is None
    assert chapter_id_for("official") is None


def test_is_exam_chapter():
    assert is_exam_chapter("chapter-01")
    assert is_exam_chapter("chapter-10")
    assert not is_exam_chapter("chapter-11")
    assert not is_exam_chapter("chapter-00")
    assert not is_exam_chapter("all")
    assert not is_exam_chapter("")


def test_bucket_by_chapter_keeps_order_and_empty_buckets():
    questions = [make_question(1, chapter="2"), make_question(2, chapter="1"), make_question(3, chapter="9")]
    buckets = bucket_by_chapter(questions, ["chapter-01", "chapter-02", "chapter-03"])
    assert list(buckets) == ["chapter-01", "chapter-02", "chapter-03"]
    assert [q.question_number for q in buckets["chapter-01"]] == [2]
    assert buckets["chapter-02"][0].chapter_id == "chapter-02"
    assert buckets["chapter-03"] == []


def test_filter_questions_sorts_by_number():
    questions = [
        make_question(3, chapter="1", difficulty="easy", source="book"),
        make_question(1, chapter="2", difficulty="difficult", source="web"),
        make_question(2, chapter="1", difficulty="difficult", source="web"),
    ]
    assert [q.question_number for q in filter_questions(questions)] == [1, 2, 3]
    assert [q.question_number for q in filter_questions(questions, chapters=["1"])] == [2, 3]
    assert [q.question_number for q in filter_questions(questions, difficulties=["difficult"])] == [1, 2]
    assert [q.question_number for q in filter_questions(questions, sources=["book"])] == [3]
