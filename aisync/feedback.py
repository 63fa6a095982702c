"""
Feedback Updater

Turns a thumbs-up / thumbs-down / neutral signal into accuracy changes on
every pattern related to the rated question.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .config import LearningConfig
from .pattern_store import PatternStore
from .patterns import FEEDBACK_TYPES, FeedbackEvent, Pattern, PatternSource
from .text_utils import extract_keywords

logger = logging.getLogger(__name__)

POSITIVE_PLACEHOLDER = "This was positively rated by users."

_FEEDBACK_COUNTER = {"positive": 1, "negative": -1, "neutral": 0}


@dataclass
class FeedbackOutcome:
    """Which patterns a feedback event touched."""
    feedback_type: str
    updated_ids: List[str] = field(default_factory=list)
    created_id: Optional[str] = None

    @property
    def changed(self) -> bool:
        return bool(self.updated_ids or self.created_id)


class FeedbackUpdater:
    """Apply feedback deltas to related patterns."""

    def __init__(self, store: PatternStore, config: Optional[LearningConfig] = None):
        self.store = store
        self.config = config or LearningConfig()

    def related_patterns(self, question: str) -> List[Pattern]:
        """Patterns tagged with one of the question's keywords or containing the question."""
        return self.store.find_related(extract_keywords(question), question)

    def apply_feedback(self, question: str, feedback_type: str) -> FeedbackOutcome:
        """
        Adjust accuracy of every pattern related to ``question``.

        Positive feedback on a question with no related pattern leaves a
        placeholder pattern behind so the signal is not lost.

        Raises:
            ValueError: If ``feedback_type`` is not positive, negative or neutral
        """
        if feedback_type not in FEEDBACK_TYPES:
            raise ValueError(
                f"Invalid feedback type {feedback_type!r}; expected one of {', '.join(FEEDBACK_TYPES)}"
            )

        delta = self.config.delta_for(feedback_type)
        counter = _FEEDBACK_COUNTER[feedback_type]
        outcome = FeedbackOutcome(feedback_type)

        for pattern in self.related_patterns(question):
            if self.store.adjust_accuracy(pattern.id, delta, counter):
                outcome.updated_ids.append(pattern.id)

        if not outcome.updated_ids and feedback_type == "positive" and question.strip():
            pattern = Pattern(
                question=question.strip(),
                answer=POSITIVE_PLACEHOLDER,
                tags=extract_keywords(question),
                accuracy=self.config.accuracy_for(PatternSource.FEEDBACK.value),
                feedback=1,
                source=PatternSource.FEEDBACK.value,
                context=["user-feedback"],
            )
            self.store.add_pattern(pattern)
            outcome.created_id = pattern.id

        logger.info(
            "Applied %s feedback to %d patterns%s",
            feedback_type,
            len(outcome.updated_ids),
            " (created placeholder)" if outcome.created_id else "",
        )
        return outcome

    def process_feedback(self, event: FeedbackEvent) -> FeedbackOutcome:
        """Persist ``event`` and then apply it."""
        self.store.record_feedback(event)
        return self.apply_feedback(event.question, event.type)


__all__ = ["FeedbackOutcome", "FeedbackUpdater", "POSITIVE_PLACEHOLDER"]
