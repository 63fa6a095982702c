from __future__ import annotations

import pytest

from aisync.feedback import POSITIVE_PLACEHOLDER, FeedbackUpdater
from aisync.patterns import FeedbackEvent, Pattern


def _add(store, question, accuracy, tags=()):
    return store.add_pattern(Pattern(question=question, answer="An answer.", accuracy=accuracy, tags=list(tags)))


@pytest.mark.parametrize(
    "feedback_type, expected_accuracy, expected_feedback",
    [("positive", 0.6, 1), ("negative", 0.35, -1), ("neutral", 0.52, 0)],
)
def test_deltas_apply_to_related_patterns(store, config, feedback_type, expected_accuracy, expected_feedback):
    related = _add(store, "How do tides work?", 0.5, tags=["tides"])
    unrelated = _add(store, "What is jazz?", 0.5, tags=["jazz"])

    outcome = FeedbackUpdater(store, config).apply_feedback("Why are there tides?", feedback_type)

    assert outcome.updated_ids == [related.id]
    assert store.get_pattern(related.id).accuracy == pytest.approx(expected_accuracy)
    assert store.get_pattern(related.id).feedback == expected_feedback
    assert store.get_pattern(unrelated.id).accuracy == 0.5


def test_accuracy_stays_within_bounds(store, config):
    pattern = _add(store, "How do tides work?", 0.95, tags=["tides"])
    updater = FeedbackUpdater(store, config)

    updater.apply_feedback("tides", "positive")
    assert store.get_pattern(pattern.id).accuracy == 1.0

    for _ in range(8):
        updater.apply_feedback("tides", "negative")
    assert store.get_pattern(pattern.id).accuracy == 0.0


def test_question_text_match_counts_as_related(store, config):
    pattern = _add(store, "Tell me how do tides work today", 0.5)

    outcome = FeedbackUpdater(store, config).apply_feedback("how do tides work", "positive")

    assert pattern.id in outcome.updated_ids


def test_positive_feedback_without_related_creates_placeholder(store, config):
    outcome = FeedbackUpdater(store, config).apply_feedback("Best pizza topping?", "positive")

    created = store.get_pattern(outcome.created_id)
    assert created.answer == POSITIVE_PLACEHOLDER
    assert created.accuracy == 0.7
    assert created.source == "feedback"


def test_negative_feedback_without_related_changes_nothing(store, config):
    outcome = FeedbackUpdater(store, config).apply_feedback("Best pizza topping?", "negative")

    assert not outcome.changed
    assert store.count_patterns() == 0


def test_invalid_type_is_rejected(store, config):
    with pytest.raises(ValueError):
        FeedbackUpdater(store, config).apply_feedback("anything", "great")


def test_process_feedback_persists_event(store, config):
    _add(store, "How do tides work?", 0.5, tags=["tides"])

    FeedbackUpdater(store, config).process_feedback(
        FeedbackEvent(type="positive", question="tides?", response_id="msg-1", rating=5)
    )

    assert store.feedback_counts() == {"positive": 1}
