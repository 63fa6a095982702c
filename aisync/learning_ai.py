"""
LearningAI - the question answering pipeline

One chat turn runs, in order:

1. Intent handlers (teaching statements, personal questions, math)
2. Similarity matcher against the pattern store
3. Fallback resolver (math, Wikipedia, teacher LLM, canned reply)
4. Write-back of newly resolved answers through the Pattern Writer

Every collaborator is passed in (or built from a LearningConfig), so tests
and the HTTP server can each wire their own store.
"""

import logging
import random
import re
import sqlite3
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from .config import LearningConfig
from .domain_classifier import DomainClassifier
from .fallback_resolver import FallbackResolver
from .feedback import FeedbackOutcome, FeedbackUpdater
from .intent_handlers import IntentAnswer, IntentRouter
from .knowledge_augmenter import KnowledgeAugmenter
from .pattern_store import PatternStore, get_default_store
from .pattern_writer import PatternWriter
from .patterns import FeedbackEvent, LearningMetrics, Pattern, PatternSource, SessionStatus
from .self_learning import SelfTrainer
from .similarity_matcher import SimilarityMatcher
from .text_utils import extract_keywords

logger = logging.getLogger(__name__)

PERSONALITY_TOUCHES = [
    "Hope this helps! 😊",
    "Let me know if you need clarification!",
    "I'm always learning and improving!",
    "Feel free to ask follow-up questions!",
]

DETAIL_MARKERS = ("for example", "for instance", "step", "such as", "in detail")

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")


def fallback_apology(question: str) -> str:
    keywords = ", ".join(extract_keywords(question)) or "that"
    return (
        f"I'm having trouble processing your question about \"{keywords}\" right now. "
        "Could you try rephrasing it or asking something else? "
        "I'm continuously learning and improving my responses!"
    )


class LearningAI:
    """Answers questions from learned patterns and learns from every miss."""

    def __init__(
        self,
        store: PatternStore,
        config: Optional[LearningConfig] = None,
        resolver: Optional[FallbackResolver] = None,
        matcher: Optional[SimilarityMatcher] = None,
        writer: Optional[PatternWriter] = None,
        feedback: Optional[FeedbackUpdater] = None,
        intents: Optional[IntentRouter] = None,
        trainer: Optional[SelfTrainer] = None,
        augmenter: Optional[KnowledgeAugmenter] = None,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.config = config or LearningConfig()
        self.augmenter = augmenter
        self.classifier = DomainClassifier()
        self.resolver = resolver or FallbackResolver(augmenter)
        self.matcher = matcher or SimilarityMatcher(store, self.config, self.classifier)
        self.writer = writer or PatternWriter(store, self.config)
        self.feedback = feedback or FeedbackUpdater(store, self.config)
        self.intents = intents or IntentRouter.default(store)
        self.trainer = trainer
        self._rng = rng or random.Random()

    @classmethod
    def from_config(
        cls,
        config: Optional[LearningConfig] = None,
        store: Optional[PatternStore] = None,
        session=None,
    ) -> "LearningAI":
        """
        Build a fully wired LearningAI.

        Args:
            config: Settings; defaults to ``LearningConfig.from_env()``
            store: Existing store; otherwise the process-wide default store
                opened at ``config.db_path``
            session: Optional ``requests.Session`` shared by the HTTP sources
        """
        config = config or LearningConfig.from_env()
        store = store or get_default_store(config.db_path)
        augmenter = KnowledgeAugmenter.from_config(config, session=session)
        writer = PatternWriter(store, config)
        teacher = augmenter.teacher if augmenter.enable_teacher else None
        trainer = SelfTrainer(store, teacher, writer, config)
        return cls(store, config, writer=writer, trainer=trainer, augmenter=augmenter)

    def initialize(self) -> Dict[str, Any]:
        """Log what the store currently holds and return its stats."""
        stats = self.store.get_stats()
        logger.info(
            "Pattern store %s ready: %d patterns, avg accuracy %.2f",
            self.store.storage_path, stats["total_patterns"], stats["avg_accuracy"],
        )
        return stats

    # ------------------------------------------------------------------
    # Chat turn
    # ------------------------------------------------------------------

    def generate_response(self, question: str, context: Optional[Sequence[str]] = None) -> str:
        """
        Answer ``question``, learning from the answer when it is new.

        Args:
            question: The user's message
            context: Recent conversation turns (optional)

        Returns:
            Response text; an apology if anything unexpected failed

        Raises:
            ValueError: If ``question`` is empty
        """
        question = (question or "").strip()
        if not question:
            raise ValueError("question must be non-empty")
        context = [c for c in (context or []) if c]

        try:
            return self._respond(question, context)
        except Exception:
            logger.exception("Failed to answer %r", question)
            return fallback_apology(question)

    def _respond(self, question: str, context: List[str]) -> str:
        intent = self.intents.route(question)
        if intent is not None:
            pattern = self._apply_intent(question, intent)
            self._record_interaction(question, intent.answer, pattern)
            return intent.answer

        domain = self.classifier.classify(question).domain
        if domain.value in self.config.skip_matcher_domains:
            logger.debug("Skipping pattern matcher for %s question", domain.value)
        else:
            pattern = self._match(question)
            if pattern is not None:
                answer = self.evolve_response(pattern, context)
                self._record_interaction(question, answer, pattern)
                return answer

        resolution = self.resolver.resolve_with_source(question, context)
        learned = None
        if resolution.learnable or resolution.source == PatternSource.MATH.value:
            try:
                learned = self.writer.record(
                    question,
                    resolution.answer,
                    source=resolution.source,
                    context=context,
                )
            except sqlite3.Error as e:
                logger.error("Failed to store %s answer for %r: %s", resolution.source, question, e)
        self._record_interaction(question, resolution.answer, learned)
        return resolution.answer

    def _match(self, question: str) -> Optional[Pattern]:
        try:
            return self.matcher.match(question)
        except sqlite3.Error as e:
            logger.error("Pattern lookup failed for %r, falling back to resolver: %s", question, e)
            return None

    def _record_interaction(self, question: str, answer: str, pattern: Optional[Pattern]) -> None:
        try:
            self.store.record_interaction(question, answer, pattern.id if pattern else None)
        except sqlite3.Error as e:
            logger.error("Failed to record interaction: %s", e)

    def _apply_intent(self, question: str, intent: IntentAnswer) -> Optional[Pattern]:
        try:
            if intent.fact is not None:
                self.store.add_personal_fact(intent.fact)
            if intent.record_source is None:
                return None
            return self.writer.record(
                question,
                intent.answer,
                intent.tags,
                source=intent.record_source,
                derive_related=False,
            )
        except sqlite3.Error as e:
            logger.error("Failed to store %s intent for %r: %s", intent.intent, question, e)
            return None

    def evolve_response(self, pattern: Pattern, context: Sequence[str] = ()) -> str:
        """Stored answer plus context note, confidence line and (optionally) a sign-off."""
        response = pattern.answer
        if context:
            recent = " ".join(context)[:100]
            response += f"\n\nConsidering the context of our conversation, {recent}..."

        confidence = round(pattern.accuracy * 100)
        response += f"\n\n🎯 Confidence: {confidence}% (based on {pattern.usage_count} previous uses)"

        if self.config.decorate_responses:
            response += "\n\n" + self._rng.choice(PERSONALITY_TOUCHES)
        return response

    # ------------------------------------------------------------------
    # Feedback and metrics
    # ------------------------------------------------------------------

    def process_feedback(self, event: FeedbackEvent) -> Optional[FeedbackOutcome]:
        """Apply user feedback; store failures are logged and yield None."""
        try:
            return self.feedback.process_feedback(event)
        except sqlite3.Error as e:
            logger.error("Failed to process %s feedback: %s", event.type, e)
            return None

    def get_metrics(self) -> LearningMetrics:
        feedback = self.store.feedback_counts()
        rated = sum(feedback.values())
        improvement = 0.0
        if rated:
            improvement = (feedback.get("positive", 0) - feedback.get("negative", 0)) / rated

        last = self.store.latest_session()
        return LearningMetrics(
            total_patterns=self.store.count_patterns(),
            average_accuracy=self.store.average_accuracy(),
            total_interactions=self.store.count_interactions(),
            improvement_rate=improvement,
            knowledge_growth=self.store.count_patterns(since=datetime.now() - timedelta(days=7)),
            personal_facts=self.store.count_personal_facts(),
            last_learning_session=last.start_time if last else None,
        )

    def get_learning_stats(self) -> Dict[str, Any]:
        if self.trainer is not None:
            return self.trainer.get_learning_stats()
        return {
            "total_sessions": self.store.count_sessions(),
            "total_learned_patterns": self.store.count_patterns(
                source=PatternSource.SELF_TRAINING.value
            ),
            "recent_sessions": [s.to_dict() for s in self.store.recent_sessions(limit=5)],
            "top_topics": {},
            "last_session": None,
            "teacher_available": False,
            "session_due": False,
        }

    # ------------------------------------------------------------------
    # Self-improvement
    # ------------------------------------------------------------------

    def self_improve(self) -> Dict[str, Any]:
        """
        One maintenance pass over the store.

        Runs a self-training session when one is due, elaborates weak
        patterns, prunes near-zero patterns and enforces the size cap.
        """
        cfg = self.config
        summary: Dict[str, Any] = {"session": None, "improved": 0, "pruned": 0, "capped": 0}

        if self.trainer is not None and self.trainer.available and self.trainer.should_run_session():
            session = self.trainer.start_session()
            summary["session"] = session.to_dict()
            if session.status == SessionStatus.ERROR.value:
                logger.warning("Self-training session failed: %s", session.error_message)

        for pattern in self.store.list_patterns(limit=50, max_accuracy=cfg.improve_below_accuracy):
            if self._improve_pattern(pattern):
                summary["improved"] += 1

        summary["pruned"] = self.store.prune_low_quality_patterns(cfg.prune_threshold)
        summary["capped"] = self.store.cap_size(cfg.max_patterns)

        logger.info(
            "Self-improvement: improved %d, pruned %d, capped %d",
            summary["improved"], summary["pruned"], summary["capped"],
        )
        return summary

    def _improve_pattern(self, pattern: Pattern) -> bool:
        lowered = pattern.answer.lower()
        if any(marker in lowered for marker in DETAIL_MARKERS):
            return False

        elaboration = self._borrow_detail(pattern)
        if not elaboration and self.augmenter is not None:
            elaboration = self.augmenter.ask_teacher(
                f"Please give a short example or step-by-step explanation for: {pattern.question}"
            )
        if not elaboration:
            return False

        self.store.update_answer(
            pattern.id,
            f"{pattern.answer}\n\n{elaboration.strip()}",
            accuracy=pattern.accuracy + 0.1,
        )
        logger.debug("Elaborated weak pattern %s", pattern.id)
        return True

    def _borrow_detail(self, pattern: Pattern) -> str:
        """Example or step sentences from successful patterns sharing a tag."""
        if not pattern.tags:
            return ""
        sentences: List[str] = []
        for donor in self.store.find_by_tags(pattern.tags, limit=10, min_accuracy=0.7):
            if donor.id == pattern.id or donor.accuracy <= 0.7:
                continue
            for sentence in _SENTENCE_SPLIT.split(donor.answer):
                if any(marker in sentence.lower() for marker in DETAIL_MARKERS):
                    if sentence not in sentences and sentence not in pattern.answer:
                        sentences.append(sentence.strip())
            if len(sentences) >= 2:
                break
        return " ".join(sentences[:2])


__all__ = ["DETAIL_MARKERS", "LearningAI", "PERSONALITY_TOUCHES", "fallback_apology"]
