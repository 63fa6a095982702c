"""
Similarity Matcher

Scores stored patterns against an incoming question and decides whether the
best one is trustworthy enough to serve as-is.

Scoring (weights from LearningConfig, default 0.4 / 0.3 / 0.3):
- text:     Jaccard overlap of question tokens vs pattern question tokens
- tags:     Jaccard overlap of question tokens vs pattern tags
- semantic: 0.5 for the same leading question word + 0.5 for the same domain

A hit must clear three gates: combined similarity, pattern accuracy and
contextual relevance (topic overlap + domain consistency, with vetoes).
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from .config import LearningConfig
from .domain_classifier import DomainClassifier, VetoMatrix
from .pattern_store import PatternStore
from .patterns import Pattern
from .text_utils import extract_keywords, jaccard, leading_question_word, tokenize

logger = logging.getLogger(__name__)


@dataclass
class MatchScore:
    """Per-component similarity of one pattern to one question."""
    pattern: Pattern
    text: float
    tags: float
    semantic: float
    combined: float


class SimilarityMatcher:
    """Find the stored pattern that best answers a question."""

    def __init__(
        self,
        store: PatternStore,
        config: Optional[LearningConfig] = None,
        classifier: Optional[DomainClassifier] = None,
        vetoes: Optional[VetoMatrix] = None,
    ):
        self.store = store
        self.config = config or LearningConfig()
        self.classifier = classifier or DomainClassifier()
        self.vetoes = vetoes or VetoMatrix.from_names(self.config.domain_vetoes)

    def score(self, question: str, pattern: Pattern) -> MatchScore:
        question_tokens = tokenize(question)

        text_score = jaccard(question_tokens, tokenize(pattern.question))
        tag_score = jaccard(question_tokens, pattern.tags)

        semantic = 0.0
        if leading_question_word(question) == leading_question_word(pattern.question):
            semantic += 0.5
        if self.classifier.classify(question).domain == self.classifier.classify(pattern.question).domain:
            semantic += 0.5

        cfg = self.config
        combined = (
            text_score * cfg.text_weight
            + tag_score * cfg.tag_weight
            + semantic * cfg.semantic_weight
        )
        return MatchScore(pattern, text_score, tag_score, semantic, combined)

    def find_similar(self, question: str, limit: Optional[int] = None) -> List[MatchScore]:
        """
        Candidates above the candidate floor, best first.

        Ties are broken by accuracy, then usage count.
        """
        limit = limit or self.config.max_similar
        candidates = self.store.find_candidates(
            extract_keywords(question), question, limit=self.config.candidate_limit
        )

        scored = [self.score(question, p) for p in candidates]
        scored = [s for s in scored if s.combined > self.config.candidate_floor]
        scored.sort(
            key=lambda s: (s.combined, s.pattern.accuracy, s.pattern.usage_count),
            reverse=True,
        )
        return scored[:limit]

    def contextual_relevance(self, question: str, pattern: Pattern) -> float:
        """
        How well a pattern fits the question's topic and subject area.

        Returns 0.0 when the veto matrix blocks the question/pattern domains.
        """
        question_topics = set(extract_keywords(question, limit=None))
        pattern_topics = set(extract_keywords(pattern.question, limit=None))
        answer_tokens = tokenize(pattern.answer)

        question_domain = self.classifier.classify(question).domain
        pattern_domain = self.classifier.classify(pattern.question).domain
        answer_domain = self.classifier.classify(pattern.answer).domain

        if self.vetoes.is_vetoed(question_domain, pattern_domain) or self.vetoes.is_vetoed(
            question_domain, answer_domain
        ):
            logger.debug(
                "Vetoed %s pattern for %s question: %s",
                pattern_domain.value, question_domain.value, pattern.id,
            )
            return 0.0

        relevance = 0.0
        largest = max(len(question_topics), len(pattern_topics))
        if largest:
            relevance += len(question_topics & pattern_topics) / largest * 0.4

        if question_topics:
            relevance += len(question_topics & answer_tokens) / len(question_topics) * 0.3

        if question_domain in (pattern_domain, answer_domain):
            relevance += 0.3
        else:
            relevance *= self.config.domain_mismatch_penalty

        return min(relevance, 1.0)

    def _passes(self, question: str, scored: MatchScore) -> bool:
        cfg = self.config
        if scored.combined <= cfg.similarity_threshold:
            return False
        if scored.pattern.accuracy <= cfg.accuracy_threshold:
            return False
        relevance = self.contextual_relevance(question, scored.pattern)
        logger.debug(
            "Pattern %s: similarity=%.2f accuracy=%.2f relevance=%.2f",
            scored.pattern.id, scored.combined, scored.pattern.accuracy, relevance,
        )
        return relevance > cfg.relevance_threshold

    def best_match(self, question: str) -> Optional[MatchScore]:
        """First ranked candidate that clears every gate, without side effects."""
        for scored in self.find_similar(question):
            if self._passes(question, scored):
                return scored
        return None

    def match(self, question: str) -> Optional[Pattern]:
        """
        Return a trustworthy stored pattern for ``question``, or None.

        On a hit the pattern's usage count is incremented in the store.
        """
        scored = self.best_match(question)
        if scored is None:
            return None

        pattern = scored.pattern
        self.store.record_usage(pattern.id)
        pattern.usage_count += 1
        logger.info("Matched pattern %s (similarity %.2f)", pattern.id, scored.combined)
        return pattern


__all__ = ["MatchScore", "SimilarityMatcher"]
