"""
Self-training

AISync can grow its pattern store without a user in the loop: it picks a
topic, asks the teacher LLM a question about it and stores the answer through
the Pattern Writer. A batch of such questions is a LearningSession.

Topic choice favours topics that were not covered in the last few hours, and
questions already asked recently are not asked again.
"""

import logging
import random
import threading
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Set

from .config import LearningConfig
from .knowledge_augmenter import TeacherLLM
from .pattern_store import PatternStore
from .pattern_writer import PatternWriter
from .patterns import LearningSession, PatternSource, SessionStatus
from .text_utils import normalize_question, word_overlap

logger = logging.getLogger(__name__)

LEARNED_SUFFIX = "\n\n🤖 Learned by AISync from ChatGPT"

SELF_TRAINING_TAGS = ("aisync-learned", "chatgpt-source", "self-training")

ADVANCED_TEMPLATES = [
    "What are the latest developments in {topic}?",
    "How has {topic} evolved over time?",
    "What are common misconceptions about {topic}?",
    "What are the practical applications of {topic}?",
    "How does {topic} affect everyday life?",
    "What are the biggest challenges in {topic}?",
    "What are the future trends in {topic}?",
    "How is {topic} related to other fields?",
]

MAX_GENERATION_ATTEMPTS = 10


class SelfTrainer:
    """Runs batch self-training sessions against the teacher LLM."""

    def __init__(
        self,
        store: PatternStore,
        teacher: Optional[TeacherLLM],
        writer: Optional[PatternWriter] = None,
        config: Optional[LearningConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.teacher = teacher
        self.config = config or LearningConfig()
        self.writer = writer or PatternWriter(store, self.config)
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._lock = threading.Lock()

    @property
    def available(self) -> bool:
        return self.teacher is not None and self.teacher.available

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def start_session(self, max_questions: Optional[int] = None) -> LearningSession:
        """
        Run one self-training session to completion.

        Returns:
            The finished session (status completed or error)

        Raises:
            ValueError: If ``max_questions`` is below 1
        """
        cfg = self.config
        if max_questions is None:
            max_questions = cfg.max_questions_per_session
        if max_questions < 1:
            raise ValueError(f"max_questions must be at least 1, got {max_questions}")

        session = LearningSession(
            id=f"session_{int(time.time() * 1000)}_{self._rng.randint(0, 9999)}"
        )
        self.store.create_session(session)
        logger.info("Starting learning session %s (%d questions)", session.id, max_questions)

        if not self.available:
            session.finish(SessionStatus.ERROR, "Teacher LLM is not configured")
            self.store.update_session(session)
            logger.warning("Learning session %s aborted: no teacher available", session.id)
            return session

        asked: Set[str] = set()
        with self._lock:
            try:
                for index in range(max_questions):
                    learned = self._learn_one(session, asked)
                    if index < max_questions - 1:
                        self._sleep(cfg.inter_question_delay if learned is not None else cfg.error_delay)
                session.finish(SessionStatus.COMPLETED)
            except Exception as e:
                logger.exception("Learning session %s failed", session.id)
                session.finish(SessionStatus.ERROR, str(e))
            finally:
                self.store.update_session(session)

        logger.info(
            "Learning session %s %s: %d asked, %d learned, %d duplicates",
            session.id, session.status, session.questions_asked,
            session.patterns_learned, session.duplicates_skipped,
        )
        return session

    def _learn_one(self, session: LearningSession, asked: Set[str]) -> Optional[bool]:
        """
        Ask one question and store the answer.

        Returns:
            True if learned, False if it was a duplicate, None if the teacher
            gave no answer
        """
        topic = self.select_diverse_topic()
        question = self.generate_question(topic, asked)
        asked.add(normalize_question(question))

        session.questions_asked += 1
        if topic not in session.topics:
            session.topics.append(topic)

        answer = self.teacher.ask(question)
        if not answer:
            logger.debug("No answer from teacher for %r", question)
            return None

        pattern = self.writer.record(
            question,
            answer + LEARNED_SUFFIX,
            SELF_TRAINING_TAGS,
            source=PatternSource.SELF_TRAINING.value,
            context=["chatgpt-training", "self-learning", topic],
            check_answers=True,
            topic=topic,
        )
        if pattern is None:
            session.duplicates_skipped += 1
            return False

        session.patterns_learned += 1
        return True

    def should_run_session(self) -> bool:
        """True when no session has completed within ``session_interval_hours``."""
        last = self.store.latest_session(status=SessionStatus.COMPLETED.value)
        if last is None:
            return True
        finished = last.end_time or last.start_time
        return datetime.now() - finished >= timedelta(hours=self.config.session_interval_hours)

    def start_continuous_learning(
        self,
        interval_hours: Optional[float] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> int:
        """
        Run sessions every ``interval_hours`` until ``stop_event`` is set.

        Blocks the calling thread; run it in a worker thread.

        Returns:
            Number of sessions run
        """
        interval = interval_hours or self.config.session_interval_hours
        stop_event = stop_event or threading.Event()
        runs = 0
        logger.info("Continuous learning every %.1f hours", interval)
        while not stop_event.is_set():
            if self.should_run_session():
                self.start_session()
                runs += 1
            stop_event.wait(interval * 3600)
        logger.info("Continuous learning stopped after %d sessions", runs)
        return runs

    # ------------------------------------------------------------------
    # Topics and questions
    # ------------------------------------------------------------------

    def recent_topic_counts(self) -> Dict[str, int]:
        since = datetime.now() - timedelta(hours=self.config.topic_diversity_hours)
        counts = self.store.tag_counts(
            since=since, source=PatternSource.SELF_TRAINING.value, limit=1000
        )
        topics = {t.lower() for t in self.config.learning_topics}
        return {tag: count for tag, count in counts.items() if tag in topics}

    def select_diverse_topic(self) -> str:
        """Weighted random topic; recently covered topics get lower weight."""
        counts = self.recent_topic_counts()
        topics = [t.lower() for t in self.config.learning_topics]
        weights = [max(1, 10 - 2 * counts.get(topic, 0)) for topic in topics]
        return self._rng.choices(topics, weights=weights, k=1)[0]

    def generate_question(self, topic: str, asked: Optional[Set[str]] = None) -> str:
        """
        Build a question about ``topic`` not asked in this session or recently.

        New topics get a basic question; topics with existing patterns get an
        advanced one.
        """
        asked = asked if asked is not None else set()
        known = bool(self.store.find_by_tags([topic], limit=1))

        question = ""
        for _ in range(MAX_GENERATION_ATTEMPTS):
            question = self._candidate_question(topic, known)
            if normalize_question(question) in asked:
                continue
            if self._recently_asked(question):
                continue
            return question

        unused = [
            t.format(topic=topic)
            for t in ADVANCED_TEMPLATES
            if normalize_question(t.format(topic=topic)) not in asked
        ]
        return self._rng.choice(unused) if unused else question

    def _candidate_question(self, topic: str, known: bool) -> str:
        if known:
            return self._rng.choice(ADVANCED_TEMPLATES).format(topic=topic)
        question_type = self._rng.choice(self.config.question_types)
        return f"{question_type} {topic}?"

    def _recently_asked(self, question: str) -> bool:
        words = [w for w in normalize_question(question).split() if len(w) > 3][:3]
        if not words:
            return False
        since = datetime.now() - timedelta(hours=self.config.duplicate_window_hours)
        recent = self.store.find_recent_similar_questions(
            words, since, limit=5, source=PatternSource.SELF_TRAINING.value
        )
        return any(
            word_overlap(question, p.question) > self.config.recent_question_threshold
            for p in recent
        )

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def get_learning_stats(self) -> Dict[str, Any]:
        recent: List[LearningSession] = self.store.recent_sessions(limit=5)
        return {
            "total_sessions": self.store.count_sessions(),
            "total_learned_patterns": self.store.count_patterns(
                source=PatternSource.SELF_TRAINING.value
            ),
            "recent_sessions": [s.to_dict() for s in recent],
            "top_topics": self.store.tag_counts(
                source=PatternSource.SELF_TRAINING.value, limit=10
            ),
            "last_session": recent[0].to_dict() if recent else None,
            "teacher_available": self.available,
            "session_due": self.should_run_session(),
        }


__all__ = ["ADVANCED_TEMPLATES", "LEARNED_SUFFIX", "SELF_TRAINING_TAGS", "SelfTrainer"]
