"""
Pattern Writer

Persists newly learned question/answer pairs. Before writing it checks for
duplicates (exact question, recent near-identical question, and optionally a
recent near-identical answer). After writing the primary pattern it fans out
a handful of reworded "related" patterns so that later paraphrases of the
same question can hit the matcher.
"""

import logging
import sqlite3
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from .config import LearningConfig
from .pattern_store import PatternStore
from .patterns import Pattern, PatternSource
from .text_utils import (
    extract_keywords,
    extract_primary_topic,
    normalize_question,
    significant_words,
    word_overlap,
)

logger = logging.getLogger(__name__)

# Sources whose answers are not general knowledge and so get no rewordings.
NO_FANOUT_SOURCES = (
    PatternSource.MATH.value,
    PatternSource.TAUGHT.value,
    PatternSource.FEEDBACK.value,
    PatternSource.RELATED.value,
)


class PatternWriter:
    """Write learned patterns, skipping duplicates."""

    def __init__(self, store: PatternStore, config: Optional[LearningConfig] = None):
        self.store = store
        self.config = config or LearningConfig()

    def is_duplicate(self, question: str, answer: str = "", check_answers: bool = False) -> bool:
        """
        True if ``question`` (or, with ``check_answers``, ``answer``) was
        already learned.
        """
        if self.store.find_by_normalized_question(question, limit=1):
            logger.debug("Exact duplicate question: %s", question)
            return True

        cfg = self.config
        since = datetime.now() - timedelta(hours=cfg.duplicate_window_hours)

        words = significant_words(question, limit=4)
        if len(words) >= 3:
            for existing in self.store.find_recent_similar_questions(words, since, limit=5):
                if word_overlap(question, existing.question) > cfg.duplicate_question_threshold:
                    logger.debug("Similar question already learned: %s", existing.question)
                    return True

        if check_answers and answer:
            answer_words = [w for w in normalize_question(answer).split() if len(w) > 3]
            if len(answer_words) >= 10:
                for existing in self.store.find_recent_answers(answer_words[:8], since, limit=3):
                    if word_overlap(answer, existing.answer) > cfg.duplicate_answer_threshold:
                        logger.debug("Similar answer already learned for: %s", existing.question)
                        return True

        return False

    def record(
        self,
        question: str,
        answer: str,
        source_tags: Sequence[str] = (),
        *,
        source: str = PatternSource.UNKNOWN.value,
        accuracy: Optional[float] = None,
        context: Optional[Sequence[str]] = None,
        derive_related: bool = True,
        check_answers: bool = False,
        topic: Optional[str] = None,
    ) -> Optional[Pattern]:
        """
        Store a new pattern for ``question``.

        Args:
            question: The question that was answered
            answer: The answer text
            source_tags: Extra tags to attach (e.g. session markers)
            source: Provenance, one of the ``PatternSource`` values
            accuracy: Initial accuracy; defaults to the per-source table
            context: Free-form context strings stored with the pattern
            derive_related: Whether to fan out reworded patterns
            check_answers: Also reject answers that repeat a recent answer
            topic: Primary topic; derived from the question when omitted

        Returns:
            The stored primary pattern, or None when it was a duplicate

        Raises:
            sqlite3.Error: If the primary insert fails
        """
        if not question.strip() or not answer.strip():
            raise ValueError("question and answer must be non-empty")

        if self.is_duplicate(question, answer, check_answers=check_answers):
            logger.info("Skipping duplicate pattern: %s", question)
            return None

        cfg = self.config
        topic = (topic or extract_primary_topic(question, cfg.learning_topics)).lower()
        keywords = extract_keywords(question)

        tags: List[str] = [topic] if topic else []
        tags.extend(keywords)
        tags.extend(source_tags)

        pattern = Pattern(
            question=question.strip(),
            answer=answer,
            tags=tags,
            accuracy=cfg.accuracy_for(source) if accuracy is None else accuracy,
            source=source,
            context=list(context or []),
        )
        self.store.add_pattern(pattern)
        logger.info("Learned %s pattern %s: %s", source, pattern.id, question)

        if derive_related and source not in NO_FANOUT_SOURCES and topic:
            self.write_related(question, answer, topic, keywords)

        return pattern

    def related_questions(self, question: str, topic: str, keywords: Sequence[str]) -> List[str]:
        """Rewordings of ``question`` worth storing, at most ``max_related_patterns``."""
        variations = [
            f"Tell me about {topic}",
            f"Explain {topic}",
            f"What should I know about {topic}?",
            f"Describe {topic}",
        ]
        variations.extend(f"What is {kw}?" for kw in keywords[:2] if kw != topic)

        original = normalize_question(question)
        seen = {original}
        result: List[str] = []
        for variation in variations:
            normalized = normalize_question(variation)
            if normalized in seen:
                continue
            seen.add(normalized)
            result.append(variation)
        return result[: self.config.max_related_patterns]

    def write_related(
        self,
        question: str,
        answer: str,
        topic: str,
        keywords: Sequence[str],
    ) -> List[Pattern]:
        """
        Insert reworded patterns pointing at ``answer``.

        Each insert stands alone; a failure is logged and the rest continue.
        """
        cfg = self.config
        related_answer = f"Based on what I learned: {answer[: cfg.related_answer_chars]}..."
        tags = [topic] + [kw for kw in keywords[:2] if kw != topic]

        written: List[Pattern] = []
        for variation in self.related_questions(question, topic, keywords):
            try:
                if self.store.find_by_normalized_question(variation, limit=1):
                    continue
                pattern = Pattern(
                    question=variation,
                    answer=related_answer,
                    tags=list(tags),
                    accuracy=cfg.accuracy_for(PatternSource.RELATED.value),
                    source=PatternSource.RELATED.value,
                    context=[question],
                )
                self.store.add_pattern(pattern)
                written.append(pattern)
            except sqlite3.Error as e:
                logger.warning("Failed to store related pattern %r: %s", variation, e)

        if written:
            logger.debug("Stored %d related patterns for %r", len(written), topic)
        return written


__all__ = ["NO_FANOUT_SOURCES", "PatternWriter"]
