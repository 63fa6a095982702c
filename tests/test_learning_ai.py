from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from aisync import pattern_store
from aisync.learning_ai import LearningAI, fallback_apology
from aisync.patterns import FeedbackEvent, Pattern


def test_learns_from_wikipedia_then_answers_from_memory(ai, store, wiki_session):
    first = ai.generate_response("What is photosynthesis?")

    assert "📚 Source: Wikipedia (Photosynthesis)" in first
    learned = store.find_by_normalized_question("What is photosynthesis?")[0]
    assert "photosynthesis" in learned.tags
    assert learned.source == "wikipedia"

    second = ai.generate_response("What is photosynthesis?")

    assert first in second
    assert "🎯 Confidence: 85% (based on 1 previous uses)" in second
    assert len(wiki_session.summary_calls) == 1
    assert store.count_interactions() == 2


def test_context_is_mentioned_on_a_match(ai):
    ai.generate_response("What is photosynthesis?")

    answer = ai.generate_response("What is photosynthesis?", context=["we were talking about plants"])

    assert "Considering the context of our conversation, we were talking about plants" in answer


def test_math_is_answered_and_remembered(ai, store, wiki_session):
    answer = ai.generate_response("what is 7 * 6")

    assert "**42**" in answer
    assert store.count_patterns(source="math") == 1
    assert wiki_session.get_calls == []


def test_teaching_then_personal_question(ai, store):
    reply = ai.generate_response("My name is Robin")
    assert "Robin" in reply

    assert ai.generate_response("What is my name?") == "Yes, I remember you! Your name is Robin. 😊"
    assert store.count_personal_facts() == 1
    assert store.count_patterns(source="taught") == 1


def test_manufacturing_questions_skip_pattern_matching(ai, store):
    store.add_pattern(Pattern(
        question="How do they make televisions?",
        answer="Stored television answer.",
        tags=["televisions"],
        accuracy=0.95,
    ))

    answer = ai.generate_response("How do they make televisions?")

    assert "Stored television answer." not in answer


def test_canned_answers_are_not_learned(ai, store):
    answer = ai.generate_response("Why is the sky blue?")

    assert "reasons or causes" in answer
    assert store.count_patterns() == 0
    assert store.count_interactions() == 1


def test_unexpected_error_returns_apology(ai, monkeypatch):
    def explode(question):
        raise RuntimeError("matcher broke")

    monkeypatch.setattr(ai.matcher, "match", explode)

    assert ai.generate_response("What is photosynthesis?") == fallback_apology("What is photosynthesis?")


def test_empty_question_is_rejected(ai):
    with pytest.raises(ValueError):
        ai.generate_response("   ")


def test_feedback_and_metrics(ai, store):
    ai.generate_response("What is photosynthesis?")
    learned = store.find_by_normalized_question("What is photosynthesis?")[0]

    outcome = ai.process_feedback(FeedbackEvent(type="positive", question="What is photosynthesis?"))

    assert learned.id in outcome.updated_ids
    assert store.get_pattern(learned.id).accuracy == pytest.approx(0.95)

    metrics = ai.get_metrics()
    assert metrics.total_patterns == store.count_patterns()
    assert metrics.total_interactions == 1
    assert metrics.improvement_rate == 1.0
    assert metrics.knowledge_growth == metrics.total_patterns
    assert metrics.last_learning_session is None


def test_improvement_rate_balances_feedback(ai):
    for kind in ("positive", "negative", "negative", "neutral"):
        ai.process_feedback(FeedbackEvent(type=kind, question="anything at all"))

    assert ai.get_metrics().improvement_rate == pytest.approx(-0.25)


def test_feedback_store_failure_is_logged(ai, monkeypatch):
    def locked(event):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(ai.feedback, "process_feedback", locked)

    assert ai.process_feedback(FeedbackEvent(type="negative", question="q")) is None


def test_self_improve_elaborates_prunes_and_caps(store, config, wiki_session):
    config = config.with_overrides({"max_patterns": 2})
    ai = LearningAI.from_config(config, store=store, session=wiki_session)

    weak = store.add_pattern(Pattern(
        question="Why do volcanoes erupt?", answer="Pressure builds up.", tags=["volcano"], accuracy=0.4,
    ))
    store.add_pattern(Pattern(
        question="What is a volcano?",
        answer="A volcano is an opening in the crust. For example, Etna erupts often.",
        tags=["volcano"],
        accuracy=0.9,
    ))
    store.add_pattern(Pattern(question="Dead pattern", answer="x", accuracy=0.01))
    store.add_pattern(Pattern(question="Middling pattern", answer="y. For instance, z.", accuracy=0.45))

    summary = ai.self_improve()

    assert summary["session"] is None
    assert summary["improved"] == 1
    assert summary["pruned"] == 1
    assert summary["capped"] == 1

    improved = store.get_pattern(weak.id)
    assert improved.answer.endswith("For example, Etna erupts often.")
    assert improved.accuracy == pytest.approx(0.5)
    assert store.count_patterns() == 2


def test_learning_stats_without_teacher(ai):
    stats = ai.get_learning_stats()

    assert stats["total_sessions"] == 0
    assert stats["teacher_available"] is False


def test_store_failure_on_write_back_keeps_resolved_answer(ai, store, monkeypatch):
    def locked(pattern):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(store, "add_pattern", locked)

    answer = ai.generate_response("What is photosynthesis?")

    assert "📚 Source: Wikipedia (Photosynthesis)" in answer
    assert store.count_patterns() == 0
    assert store.count_interactions() == 1


def test_store_failure_on_lookup_falls_through_to_resolver(ai, store, monkeypatch):
    def locked(question):
        raise sqlite3.OperationalError("database is locked")

    def no_log(question, answer, pattern_id=None):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(ai.matcher, "match", locked)
    monkeypatch.setattr(store, "record_interaction", no_log)

    answer = ai.generate_response("What is photosynthesis?")

    assert "📚 Source: Wikipedia (Photosynthesis)" in answer
    assert store.count_patterns() >= 1


def test_questions_mentioning_what_are_you_are_not_personal(ai):
    answer = ai.generate_response("What are you doing about climate change policy?")

    assert "still learning who I am" not in answer


def test_from_config_shares_the_default_store(config, monkeypatch):
    monkeypatch.setattr(pattern_store, "_default_store", None)

    first = LearningAI.from_config(config)
    second = LearningAI.from_config(config)

    assert first.store is second.store
    assert first.store is pattern_store.get_default_store()
    assert first.store.storage_path == Path(config.db_path)
