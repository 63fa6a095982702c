"""
Intent handlers tried before pattern matching.

Each handler looks at the raw question and either answers it or returns None.
They run in priority order (teaching, personal questions, math) and the first
answer wins. Handlers never write to the store themselves: an ``IntentAnswer``
carries the fact or pattern to persist and ``LearningAI`` applies it.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence, Tuple

from .math_solver import DIVIDE_BY_ZERO, solve
from .pattern_store import PatternStore
from .patterns import FactType, PatternSource, PersonalFact
from .text_utils import extract_keywords

logger = logging.getLogger(__name__)


@dataclass
class IntentAnswer:
    """Answer produced by an intent handler, plus what should be persisted."""
    answer: str
    intent: str
    fact: Optional[PersonalFact] = None
    record_source: Optional[str] = None
    tags: List[str] = field(default_factory=list)


class IntentHandler(Protocol):
    def handle(self, question: str) -> Optional[IntentAnswer]:
        ...


# ----------------------------------------------------------------------
# Teaching input ("your name is X", "remember that Y", ...)
# ----------------------------------------------------------------------

@dataclass
class TeachingInput:
    fact_type: FactType
    value: str


_TEACHING_PATTERNS: List[Tuple[FactType, "re.Pattern[str]"]] = [
    (FactType.NAME, re.compile(
        r"^(?:your name is|you are called|you're called|i'll call you|i will call you|"
        r"let's call you|lets call you|your name should be)\s+(.+)$", re.IGNORECASE)),
    (FactType.USER_NAME, re.compile(
        r"^(?:my name is|call me|you can call me|i'm called|i am called)\s+(.+)$", re.IGNORECASE)),
    (FactType.IDENTITY, re.compile(r"^(?:you are|you're|you should be)\s+(.+)$", re.IGNORECASE)),
    (FactType.FACT, re.compile(
        r"^(?:remember that|remember|know that|you should know that|you should know|"
        r"learn that|understand that)\s+(.+)$", re.IGNORECASE)),
    (FactType.USER_PREFERENCE, re.compile(
        r"^(?:i really like|i like|i love|i prefer|i enjoy|i'm into)\s+(.+)$", re.IGNORECASE)),
    (FactType.AI_PREFERENCE, re.compile(
        r"^(?:you really like|you like|you love|you prefer|you enjoy|you're into)\s+(.+)$",
        re.IGNORECASE)),
]

_TEACHING_REPLIES = {
    FactType.NAME: "✅ Got it! I'll remember that my name is {value}. Thank you for telling me!",
    FactType.USER_NAME: "✅ Nice to meet you, {value}! I'll remember your name.",
    FactType.IDENTITY: "✅ I'll remember that I am {value}. Thanks for teaching me about myself!",
    FactType.FACT: "✅ I've learned and will remember: {value}",
    FactType.USER_PREFERENCE: "✅ I'll remember that you like {value}. Good to know!",
    FactType.AI_PREFERENCE: "✅ I'll remember that I like {value}. Thanks for telling me about my preferences!",
}


def detect_teaching(text: str) -> Optional[TeachingInput]:
    """
    Recognise a statement that teaches the AI something.

    Only statements are considered: anything ending in "?" is a question.
    """
    stripped = (text or "").strip()
    if not stripped or stripped.endswith("?"):
        return None

    for fact_type, pattern in _TEACHING_PATTERNS:
        match = pattern.match(stripped)
        if match:
            value = match.group(1).strip().rstrip(".!")
            if value:
                return TeachingInput(fact_type, value)
    return None


class TeachingHandler:
    def handle(self, question: str) -> Optional[IntentAnswer]:
        taught = detect_teaching(question)
        if taught is None:
            return None

        logger.info("Learned new %s: %s", taught.fact_type.value, taught.value)
        return IntentAnswer(
            answer=_TEACHING_REPLIES[taught.fact_type].format(value=taught.value),
            intent="teaching",
            fact=PersonalFact(type=taught.fact_type.value, value=taught.value),
            record_source=PatternSource.TAUGHT.value,
            tags=["personal", taught.fact_type.value] + extract_keywords(taught.value),
        )


# ----------------------------------------------------------------------
# Personal questions ("what is your name?", "what do I like?")
# ----------------------------------------------------------------------

_PERSONAL_PHRASES: List[Tuple[FactType, Sequence[str]]] = [
    (FactType.NAME, (
        "what is your name", "what's your name", "whats your name", "who are you",
        "tell me your name", "what are you called", "what do they call you",
        "what should i call you", "how should i address you", "your name",
    )),
    (FactType.AI_PREFERENCE, (
        "what do you like", "what are your preferences", "what do you enjoy",
        "tell me what you like", "your preferences", "your interests",
    )),
    (FactType.USER_NAME, (
        "who am i", "what is my name", "what's my name", "whats my name",
        "do you remember me", "do you know my name", "my name",
    )),
    (FactType.USER_PREFERENCE, (
        "what do i like", "my preferences", "what are my interests",
        "tell me what i like", "my interests",
    )),
    (FactType.IDENTITY, (
        "what are you", "tell me about yourself", "describe yourself",
    )),
    (FactType.FACT, (
        "what do you remember", "what have you learned", "what facts do you know",
    )),
]

# Matched only against the whole question.
_WHOLE_QUESTION_ONLY = {FactType.IDENTITY}

_UNKNOWN_REPLIES = {
    FactType.NAME: "I don't have a specific name yet. What would you like to call me? 😊",
    FactType.USER_NAME: "I don't know your name yet. What should I call you? 😊",
    FactType.AI_PREFERENCE: "I haven't learned about my preferences yet. You can teach me by telling me what I like! 😊",
    FactType.USER_PREFERENCE: "I don't know your preferences yet. Tell me what you like! 😊",
    FactType.IDENTITY: "I'm still learning who I am. Tell me \"you are ...\" to teach me! 😊",
    FactType.FACT: "Nobody has taught me any facts yet. Say \"remember that ...\" to teach me! 😊",
}


@dataclass
class PersonalQuestion:
    fact_type: FactType
    phrase: str


def detect_personal_question(text: str) -> Optional[PersonalQuestion]:
    lowered = (text or "").strip().lower()
    if not lowered:
        return None
    stripped = lowered.rstrip("?!. ")
    for fact_type, phrases in _PERSONAL_PHRASES:
        for phrase in phrases:
            if stripped == phrase:
                return PersonalQuestion(fact_type, phrase)
            if fact_type in _WHOLE_QUESTION_ONLY:
                continue
            if re.search(r"\b" + re.escape(phrase) + r"\b", lowered):
                return PersonalQuestion(fact_type, phrase)
    if stripped == "name":
        return PersonalQuestion(FactType.NAME, "name")
    return None


class PersonalQuestionHandler:
    """Answers questions about the AI or the user from stored personal facts."""

    def __init__(self, store: PatternStore):
        self.store = store

    def handle(self, question: str) -> Optional[IntentAnswer]:
        asked = detect_personal_question(question)
        if asked is None:
            return None

        fact_type = asked.fact_type
        facts = self.store.facts_of_type(fact_type.value, limit=10)
        if not facts:
            return IntentAnswer(_UNKNOWN_REPLIES[fact_type], intent="personal")

        latest = facts[0].value
        if fact_type == FactType.NAME:
            answer = f"My name is {latest}! 😊"
        elif fact_type == FactType.USER_NAME:
            answer = f"Yes, I remember you! Your name is {latest}. 😊"
        elif fact_type == FactType.AI_PREFERENCE:
            answer = f"I like {_join_unique(facts)}! 😊"
        elif fact_type == FactType.USER_PREFERENCE:
            answer = f"I remember that you like {_join_unique(facts)}! 😊"
        elif fact_type == FactType.IDENTITY:
            answer = f"I am {latest}. 😊"
        else:
            answer = "Here's what I remember: " + "; ".join(_unique(facts)) + "."

        logger.debug("Answered personal question about %s", fact_type.value)
        return IntentAnswer(answer, intent="personal")


def _unique(facts: Sequence[PersonalFact]) -> List[str]:
    values: List[str] = []
    for fact in facts:
        if fact.value not in values:
            values.append(fact.value)
    return values


def _join_unique(facts: Sequence[PersonalFact]) -> str:
    return ", ".join(_unique(facts))


# ----------------------------------------------------------------------
# Math
# ----------------------------------------------------------------------

_MATH_TAGS = ["mathematics", "calculation", "solved"]


class MathHandler:
    def handle(self, question: str) -> Optional[IntentAnswer]:
        solved = solve(question)
        if solved is None:
            return None

        # Failed calculations are answered but not remembered.
        record = None if solved.answer == DIVIDE_BY_ZERO else PatternSource.MATH.value
        return IntentAnswer(
            answer=solved.answer,
            intent="math",
            record_source=record,
            tags=_MATH_TAGS + [solved.operation],
        )


class IntentRouter:
    """Try handlers in priority order; first answer wins."""

    def __init__(self, handlers: Sequence[IntentHandler]):
        self.handlers = list(handlers)

    @classmethod
    def default(cls, store: PatternStore) -> "IntentRouter":
        return cls([TeachingHandler(), PersonalQuestionHandler(store), MathHandler()])

    def route(self, question: str) -> Optional[IntentAnswer]:
        for handler in self.handlers:
            answer = handler.handle(question)
            if answer is not None:
                return answer
        return None


__all__ = [
    "IntentAnswer",
    "IntentHandler",
    "IntentRouter",
    "MathHandler",
    "PersonalQuestion",
    "PersonalQuestionHandler",
    "TeachingHandler",
    "TeachingInput",
    "detect_personal_question",
    "detect_teaching",
]
