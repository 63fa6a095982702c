"""
Learning configuration for AISync.

Every tunable number used by the matcher, writer, feedback updater and
self-training loop lives here. Defaults are the values the pattern store has
always shipped with; they are not calibrated, so treat them as knobs.

Values come from the dataclass defaults, then environment variables
(``LearningConfig.from_env``), then a JSON overrides file (``load_overrides``
plus ``with_overrides``). Later sources win.
"""

import json
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple


DEFAULT_LEARNING_TOPICS: List[str] = [
    "technology", "science", "history", "geography", "mathematics",
    "programming", "artificial intelligence", "physics", "chemistry",
    "biology", "astronomy", "psychology", "philosophy", "literature",
    "art", "music", "cooking", "health", "fitness", "business",
    "economics", "politics", "culture", "languages", "education",
]

DEFAULT_QUESTION_TYPES: List[str] = [
    "What is", "How does", "Why is", "When did", "Where is",
    "Who was", "How to", "What are the benefits of", "Explain",
    "Describe", "What is the difference between", "How do you",
]

DEFAULT_INITIAL_ACCURACY: Dict[str, float] = {
    "math": 1.0,
    "taught": 1.0,
    "teacher_llm": 0.9,
    "wikipedia": 0.85,
    "self_training": 0.8,
    "related": 0.7,
    "feedback": 0.7,
    "unknown": 0.5,
}

DEFAULT_DOMAIN_VETOES: List[Tuple[str, str]] = [
    ("manufacturing", "grammar"),
    ("technology", "grammar"),
    ("grammar", "manufacturing"),
    ("grammar", "technology"),
]

CONFIG_FIELD = "overrides"

_TRUTHY = {"1", "true", "yes", "on"}


def _truthy(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in _TRUTHY


@dataclass
class LearningConfig:
    """Tunable settings for the learning pipeline."""

    # Storage
    db_path: str = "data/aisync.db"

    # Similarity matcher
    similarity_threshold: float = 0.7
    accuracy_threshold: float = 0.8
    relevance_threshold: float = 0.7
    candidate_floor: float = 0.25
    candidate_limit: int = 20
    max_similar: int = 5
    text_weight: float = 0.4
    tag_weight: float = 0.3
    semantic_weight: float = 0.3
    domain_mismatch_penalty: float = 0.3
    domain_vetoes: List[Tuple[str, str]] = field(
        default_factory=lambda: list(DEFAULT_DOMAIN_VETOES)
    )
    skip_matcher_domains: List[str] = field(default_factory=lambda: ["manufacturing"])

    # Pattern writer
    duplicate_window_hours: float = 24.0
    duplicate_question_threshold: float = 0.8
    duplicate_answer_threshold: float = 0.7
    max_related_patterns: int = 5
    related_answer_chars: int = 250
    initial_accuracy: Dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_INITIAL_ACCURACY)
    )

    # Feedback deltas
    positive_delta: float = 0.10
    negative_delta: float = -0.15
    neutral_delta: float = 0.02

    # Knowledge sources
    http_timeout: float = 30.0
    enable_web_search: bool = True
    enable_teacher_llm: bool = True
    openai_api_key: Optional[str] = None
    teacher_model: str = "gpt-3.5-turbo"
    teacher_base_url: str = "https://api.openai.com/v1"
    teacher_max_tokens: int = 500
    teacher_temperature: float = 0.7
    wikipedia_user_agent: str = "AISync/1.0 (Self-learning pattern store)"
    summary_sentences: int = 3

    # Self-training
    max_questions_per_session: int = 50
    inter_question_delay: float = 2.0
    error_delay: float = 1.0
    session_interval_hours: float = 24.0
    topic_diversity_hours: float = 6.0
    recent_question_threshold: float = 0.7
    learning_topics: List[str] = field(default_factory=lambda: list(DEFAULT_LEARNING_TOPICS))
    question_types: List[str] = field(default_factory=lambda: list(DEFAULT_QUESTION_TYPES))

    # Maintenance
    improve_below_accuracy: float = 0.6
    prune_threshold: float = 0.05
    max_patterns: int = 10000

    # Responses
    decorate_responses: bool = True

    def accuracy_for(self, source: str) -> float:
        """Initial accuracy for a pattern written from ``source``."""
        return self.initial_accuracy.get(source, self.initial_accuracy.get("unknown", 0.5))

    def delta_for(self, feedback_type: str) -> float:
        deltas = {
            "positive": self.positive_delta,
            "negative": self.negative_delta,
            "neutral": self.neutral_delta,
        }
        if feedback_type not in deltas:
            raise ValueError(f"Unknown feedback type: {feedback_type!r}")
        return deltas[feedback_type]

    @classmethod
    def from_env(cls, base: Optional["LearningConfig"] = None) -> "LearningConfig":
        """
        Build a config from environment variables.

        Unset variables keep the value from ``base`` (or the defaults).
        """
        config = base or cls()
        updates: Dict[str, Any] = {}

        if os.getenv("AISYNC_DB_PATH"):
            updates["db_path"] = os.getenv("AISYNC_DB_PATH")
        if os.getenv("OPENAI_API_KEY"):
            updates["openai_api_key"] = os.getenv("OPENAI_API_KEY")
        if os.getenv("AISYNC_TEACHER_MODEL"):
            updates["teacher_model"] = os.getenv("AISYNC_TEACHER_MODEL")
        if os.getenv("AISYNC_TEACHER_URL"):
            updates["teacher_base_url"] = os.getenv("AISYNC_TEACHER_URL").rstrip("/")
        if os.getenv("AISYNC_HTTP_TIMEOUT"):
            updates["http_timeout"] = float(os.getenv("AISYNC_HTTP_TIMEOUT"))
        if os.getenv("AISYNC_MAX_QUESTIONS"):
            updates["max_questions_per_session"] = int(os.getenv("AISYNC_MAX_QUESTIONS"))
        if os.getenv("AISYNC_ENABLE_WEB_SEARCH") is not None:
            updates["enable_web_search"] = _truthy(os.getenv("AISYNC_ENABLE_WEB_SEARCH"))
        if os.getenv("AISYNC_ENABLE_TEACHER") is not None:
            updates["enable_teacher_llm"] = _truthy(os.getenv("AISYNC_ENABLE_TEACHER"))

        return replace(config, **updates)

    def with_overrides(self, overrides: Mapping[str, Any]) -> "LearningConfig":
        """
        Return a copy with ``overrides`` applied.

        Raises:
            ValueError: If a key is not a config field or cannot be coerced
        """
        known = {f.name: f for f in fields(self)}
        updates: Dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in known:
                raise ValueError(f"Unknown config key: {key}")
            current = getattr(self, key)
            updates[key] = _coerce(key, value, current)
        return replace(self, **updates)


def _coerce(key: str, value: Any, current: Any) -> Any:
    if current is None or value is None:
        return value
    if isinstance(current, bool):
        if isinstance(value, str):
            return _truthy(value)
        return bool(value)
    if isinstance(current, (int, float)) and not isinstance(current, bool):
        try:
            return type(current)(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid value for {key}: {value!r}") from exc
    if isinstance(current, list):
        if not isinstance(value, (list, tuple)):
            raise ValueError(f"{key} must be a list")
        if key == "domain_vetoes":
            return [tuple(pair) for pair in value]
        return list(value)
    if isinstance(current, dict):
        if not isinstance(value, Mapping):
            raise ValueError(f"{key} must be a mapping")
        merged = dict(current)
        merged.update(value)
        return merged
    return value


def load_overrides(path: Path) -> Dict[str, Any]:
    """Load a JSON config file and return its overrides mapping.

    Raises:
        FileNotFoundError: if the file is missing.
        ValueError: if the payload does not contain an overrides dict.
    """

    resolved = Path(path).expanduser()
    if not resolved.exists():
        raise FileNotFoundError(f"Config file not found: {resolved}")

    with resolved.open("r", encoding="utf-8") as fh:
        payload = json.load(fh)

    overrides = payload.get(CONFIG_FIELD)
    if not isinstance(overrides, dict):
        raise ValueError(f"Config file {resolved} is missing '{CONFIG_FIELD}' dict")

    return overrides


__all__ = [
    "DEFAULT_DOMAIN_VETOES",
    "DEFAULT_INITIAL_ACCURACY",
    "DEFAULT_LEARNING_TOPICS",
    "DEFAULT_QUESTION_TYPES",
    "LearningConfig",
    "load_overrides",
]
