from __future__ import annotations

import sqlite3

import pytest

from aisync.config import LearningConfig
from aisync.pattern_writer import PatternWriter

from conftest import PHOTOSYNTHESIS_EXTRACT

LONG_ANSWER = (
    "Volcanoes erupt when molten magma rises through cracks in the crust, "
    "building pressure until gases force lava, ash and rocks out of vents."
)


def test_record_writes_primary_and_related(store, config):
    writer = PatternWriter(store, config)

    pattern = writer.record("What is photosynthesis?", PHOTOSYNTHESIS_EXTRACT, source="wikipedia")

    stored = store.get_pattern(pattern.id)
    assert stored.accuracy == 0.85
    assert stored.source == "wikipedia"
    assert "photosynthesis" in stored.tags

    related = store.list_patterns(source="related")
    questions = {p.question for p in related}
    assert questions == {
        "Tell me about photosynthesis",
        "Explain photosynthesis",
        "What should I know about photosynthesis?",
        "Describe photosynthesis",
    }
    assert all(p.accuracy == 0.7 for p in related)
    assert all(p.answer.startswith("Based on what I learned: Photosynthesis") for p in related)


def test_related_fanout_is_capped(store):
    writer = PatternWriter(store, LearningConfig(max_related_patterns=2))

    writer.record("What is photosynthesis?", PHOTOSYNTHESIS_EXTRACT, source="wikipedia")

    assert store.count_patterns(source="related") == 2


def test_no_fanout_for_math_or_taught(store, config):
    writer = PatternWriter(store, config)

    writer.record("what is 7 * 6", "42", source="math")
    writer.record("my name is Sam", "Nice to meet you, Sam!", source="taught")

    assert store.count_patterns(source="related") == 0
    assert store.count_patterns() == 2


def test_exact_duplicate_is_skipped(store, config):
    writer = PatternWriter(store, config)

    assert writer.record("What is photosynthesis?", PHOTOSYNTHESIS_EXTRACT, source="wikipedia")
    total = store.count_patterns()

    assert writer.record("what is PHOTOSYNTHESIS", "Something else", source="wikipedia") is None
    assert store.count_patterns() == total


def test_recent_similar_question_is_skipped(store, config):
    writer = PatternWriter(store, config)
    writer.record("What are the main causes of volcanic eruptions?", LONG_ANSWER, derive_related=False)

    assert writer.is_duplicate("What are the main effects of volcanic ash on aircraft?") is False
    assert writer.is_duplicate("What are main causes of volcanic eruptions?") is True


def test_recent_similar_answer_only_checked_on_request(store, config):
    writer = PatternWriter(store, config)
    writer.record("Why do volcanoes erupt?", LONG_ANSWER, derive_related=False)

    assert writer.is_duplicate("How does an eruption start?", LONG_ANSWER) is False
    assert writer.is_duplicate("How does an eruption start?", LONG_ANSWER, check_answers=True) is True


def test_related_failure_does_not_undo_primary(store, config, monkeypatch):
    writer = PatternWriter(store, config)
    original = store.add_pattern

    def flaky_add(pattern):
        if pattern.source == "related":
            raise sqlite3.OperationalError("database is locked")
        return original(pattern)

    monkeypatch.setattr(store, "add_pattern", flaky_add)

    pattern = writer.record("What is photosynthesis?", PHOTOSYNTHESIS_EXTRACT, source="wikipedia")

    assert store.get_pattern(pattern.id) is not None
    assert store.count_patterns(source="related") == 0


def test_empty_input_is_rejected(store, config):
    with pytest.raises(ValueError):
        PatternWriter(store, config).record("  ", "answer")
