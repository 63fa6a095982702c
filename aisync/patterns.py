"""
Records persisted by the pattern store.

- Pattern: a learned question/answer unit with accuracy and usage stats
- PersonalFact: something the user taught about themselves or the AI
- LearningSession: one batch self-training run
- FeedbackEvent: a thumbs-up/down (or neutral) signal from the UI
- LearningMetrics: aggregate view returned by ``LearningAI.get_metrics``
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class PatternSource(Enum):
    """Where a pattern's answer came from."""
    MATH = "math"
    TAUGHT = "taught"
    WIKIPEDIA = "wikipedia"
    TEACHER_LLM = "teacher_llm"
    SELF_TRAINING = "self_training"
    RELATED = "related"
    FEEDBACK = "feedback"
    UNKNOWN = "unknown"


class FactType(Enum):
    NAME = "name"
    USER_NAME = "user_name"
    IDENTITY = "identity"
    FACT = "fact"
    USER_PREFERENCE = "user_preference"
    AI_PREFERENCE = "ai_preference"


class SessionStatus(Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


FEEDBACK_TYPES = ("positive", "negative", "neutral")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


@dataclass
class Pattern:
    """A learned question/answer pair."""
    question: str
    answer: str
    tags: List[str] = field(default_factory=list)
    accuracy: float = 0.5
    usage_count: int = 0
    feedback: int = 0
    source: str = PatternSource.UNKNOWN.value
    context: List[str] = field(default_factory=list)
    id: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    last_used: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["created_at"] = _iso(self.created_at)
        data["updated_at"] = _iso(self.updated_at)
        data["last_used"] = _iso(self.last_used)
        return data


@dataclass
class PersonalFact:
    """A (type, value, timestamp) triple; latest timestamp wins on read."""
    type: str
    value: str
    timestamp: datetime = field(default_factory=datetime.now)
    id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "value": self.value,
            "timestamp": _iso(self.timestamp),
        }


@dataclass
class LearningSession:
    """
    One batch self-training run.

    Status moves running -> completed or running -> error exactly once.
    """
    id: str
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    questions_asked: int = 0
    patterns_learned: int = 0
    duplicates_skipped: int = 0
    topics: List[str] = field(default_factory=list)
    status: str = SessionStatus.RUNNING.value
    error_message: Optional[str] = None

    def finish(self, status: SessionStatus, error_message: Optional[str] = None) -> None:
        if self.status != SessionStatus.RUNNING.value:
            raise ValueError(f"Session {self.id} already finished with status {self.status}")
        self.status = status.value
        self.end_time = datetime.now()
        self.error_message = error_message

    @property
    def duration_seconds(self) -> Optional[float]:
        if not self.end_time:
            return None
        return (self.end_time - self.start_time).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["start_time"] = _iso(self.start_time)
        data["end_time"] = _iso(self.end_time)
        data["duration_seconds"] = self.duration_seconds
        return data


@dataclass
class FeedbackEvent:
    """User feedback on a single response."""
    type: str
    question: str = ""
    response_id: Optional[str] = None
    rating: Optional[int] = None
    helpful: Optional[bool] = None
    comment: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if self.type not in FEEDBACK_TYPES:
            raise ValueError(
                f"Invalid feedback type {self.type!r}; expected one of {', '.join(FEEDBACK_TYPES)}"
            )


@dataclass
class LearningMetrics:
    total_patterns: int
    average_accuracy: float
    total_interactions: int
    improvement_rate: float
    knowledge_growth: int
    personal_facts: int
    last_learning_session: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["last_learning_session"] = _iso(self.last_learning_session)
        return data


__all__ = [
    "FEEDBACK_TYPES",
    "FactType",
    "FeedbackEvent",
    "LearningMetrics",
    "LearningSession",
    "Pattern",
    "PatternSource",
    "PersonalFact",
    "SessionStatus",
    "parse_timestamp",
]
