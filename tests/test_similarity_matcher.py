from __future__ import annotations

import pytest

from aisync.config import LearningConfig
from aisync.patterns import Pattern
from aisync.similarity_matcher import SimilarityMatcher

from conftest import PHOTOSYNTHESIS_EXTRACT

GRAMMAR_ANSWER = (
    "A pronoun is a word that can stand in for a noun as the subject of a sentence; "
    "in English grammar the verb agrees with it."
)


def _add(store, question, answer=PHOTOSYNTHESIS_EXTRACT, accuracy=0.9, tags=("photosynthesis",), **kwargs):
    return store.add_pattern(
        Pattern(question=question, answer=answer, accuracy=accuracy, tags=list(tags), **kwargs)
    )


def test_identical_question_scores_full_marks(store):
    pattern = _add(store, "What is photosynthesis?")
    matcher = SimilarityMatcher(store)

    scored = matcher.score("What is photosynthesis?", pattern)

    assert scored.text == 1.0
    assert scored.tags == 1.0
    assert scored.semantic == 1.0
    assert scored.combined == pytest.approx(1.0)
    assert matcher.contextual_relevance("What is photosynthesis?", pattern) == pytest.approx(1.0)


def test_component_weights(store):
    pattern = _add(store, "How does photosynthesis work?")
    matcher = SimilarityMatcher(store)

    scored = matcher.score("What is photosynthesis?", pattern)

    # text 0.5, tags 1.0, semantic 0.5 (domain only)
    assert scored.combined == pytest.approx(0.5 * 0.4 + 1.0 * 0.3 + 0.5 * 0.3)
    assert matcher.match("What is photosynthesis?") is None


@pytest.mark.parametrize("accuracy, served", [(0.8, False), (0.81, True)])
def test_accuracy_threshold_is_strict(store, accuracy, served):
    _add(store, "What is photosynthesis?", accuracy=accuracy)
    matcher = SimilarityMatcher(store)

    result = matcher.match("What is photosynthesis?")

    assert (result is not None) == served


def test_similarity_threshold_is_configurable(store):
    _add(store, "How does photosynthesis work?", accuracy=0.95)

    strict = SimilarityMatcher(store)
    relaxed = SimilarityMatcher(store, LearningConfig(similarity_threshold=0.6))

    assert strict.match("What is photosynthesis?") is None
    assert relaxed.best_match("What is photosynthesis?") is not None


def test_match_increments_usage(store):
    pattern = _add(store, "What is photosynthesis?")
    matcher = SimilarityMatcher(store)

    hit = matcher.match("what is photosynthesis")

    assert hit.id == pattern.id
    assert hit.usage_count == 1
    assert store.get_pattern(pattern.id).usage_count == 1


def test_vetoed_domains_are_never_served(store):
    _add(
        store,
        "How does a computer display text?",
        answer=GRAMMAR_ANSWER,
        accuracy=0.99,
        tags=("computer", "display", "text"),
    )
    matcher = SimilarityMatcher(store)

    best = matcher.find_similar("How does a computer display text?")[0]

    assert best.combined == pytest.approx(1.0)
    assert matcher.contextual_relevance("How does a computer display text?", best.pattern) == 0.0
    assert matcher.match("How does a computer display text?") is None


def test_find_similar_orders_by_score_then_accuracy(store):
    weaker = _add(store, "What is photosynthesis?", accuracy=0.82)
    stronger = _add(store, "What is photosynthesis", accuracy=0.95)
    loose = _add(store, "Photosynthesis in cacti", accuracy=1.0, tags=())

    ranked = [s.pattern.id for s in SimilarityMatcher(store).find_similar("What is photosynthesis?")]

    assert ranked == [stronger.id, weaker.id, loose.id]


def test_first_passing_candidate_wins(store):
    # Ranked first on accuracy, but the answer never mentions the topic.
    vague = _add(store, "What is photosynthesis?", answer="It is a thing.", accuracy=0.99)
    good = _add(store, "What is photosynthesis", accuracy=0.9)
    matcher = SimilarityMatcher(store)

    ranked = [s.pattern.id for s in matcher.find_similar("What is photosynthesis?")]
    assert ranked[:2] == [vague.id, good.id]
    assert matcher.contextual_relevance("What is photosynthesis?", vague) == pytest.approx(0.7)

    assert matcher.match("What is photosynthesis?").id == good.id
