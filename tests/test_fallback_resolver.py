from __future__ import annotations

from aisync.config import LearningConfig
from aisync.fallback_resolver import CANNED_SOURCE, FallbackResolver, canned_response
from aisync.knowledge_augmenter import KnowledgeAugmenter

from conftest import FakeSession


def _resolver(session, teacher=False):
    config = LearningConfig(enable_teacher_llm=teacher, openai_api_key="sk-test" if teacher else None)
    return FallbackResolver(KnowledgeAugmenter.from_config(config, session=session))


def test_math_first_without_network():
    session = FakeSession()
    resolution = _resolver(session).resolve_with_source("what is 7 * 6")

    assert resolution.source == "math"
    assert "**42**" in resolution.answer
    assert session.get_calls == []


def test_wikipedia_answer_cites_source(wiki_session):
    resolution = _resolver(wiki_session).resolve_with_source("What is photosynthesis?")

    assert resolution.source == "wikipedia"
    assert resolution.title == "Photosynthesis"
    assert resolution.answer.startswith("📖 **Photosynthesis**\n\nPhotosynthesis is a biological process")
    assert resolution.answer.endswith("📚 Source: Wikipedia (Photosynthesis)")
    assert resolution.learnable


def test_teacher_after_wikipedia_misses():
    session = FakeSession(completion="Dark matter is matter that does not emit light.")
    resolution = _resolver(session, teacher=True).resolve_with_source("What is dark matter?")

    assert resolution.source == "teacher_llm"
    assert resolution.confidence == 0.9
    assert len(session.post_calls) == 1


def test_canned_reply_when_everything_fails():
    resolution = _resolver(FakeSession(), teacher=True).resolve_with_source("Why is the sky blue?")

    assert resolution.source == CANNED_SOURCE
    assert not resolution.learnable
    assert "reasons or causes" in resolution.answer


def test_resolver_without_augmenter():
    resolver = FallbackResolver()

    assert resolver.resolve("what is 2 + 2").startswith("🔢")
    assert resolver.resolve("Who wrote Hamlet?") == canned_response("Who wrote Hamlet?")
