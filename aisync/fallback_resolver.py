"""
Fallback Resolver

Produces an answer when the pattern store has nothing trustworthy. Strategies
are tried in a fixed order and the first that answers wins:

1. Math detectors (computed directly)
2. Wikipedia summary lookup
3. Teacher LLM
4. Canned "I don't know yet" reply keyed by question type

Each network strategy gets exactly one attempt; failures fall through.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from .knowledge_augmenter import KnowledgeAugmenter
from .math_solver import solve as solve_math
from .patterns import PatternSource
from .text_utils import extract_keywords, normalize_question

logger = logging.getLogger(__name__)

CANNED_SOURCE = "canned"


@dataclass
class Resolution:
    """An answer together with where it came from."""
    answer: str
    source: str
    confidence: float
    title: Optional[str] = None

    @property
    def learnable(self) -> bool:
        """Whether the answer is worth remembering as a pattern."""
        return self.source in (PatternSource.WIKIPEDIA.value, PatternSource.TEACHER_LLM.value)


def canned_response(question: str) -> str:
    """Honest "I don't know this yet" reply, shaped by the kind of question."""
    keywords = extract_keywords(question)
    subject = ", ".join(keywords) if keywords else "that"
    words = normalize_question(question).split()

    response = f"🧠 I don't have specific information about \"{subject}\" in my knowledge base yet. "
    if "what" in words:
        response += (
            "This looks like a request for a definition or explanation. "
            "I'll try to learn more about it so I can answer similar questions in the future. "
        )
    elif "how" in words:
        response += (
            "This seems to be about a process or method, "
            "which usually needs a step-by-step explanation. "
        )
    elif "why" in words:
        response += (
            "You're looking for reasons or causes. "
            "Questions like this help me understand underlying principles. "
        )
    elif "when" in words or "where" in words:
        response += (
            "This asks for a time or place, which is specific factual information "
            "I still need to gather. "
        )
    elif "who" in words:
        response += "This asks about people or organisations, which needs detailed knowledge. "
    else:
        response += "I'm analysing the shape of your question to improve my understanding. "

    response += (
        "\n\n🔄 I couldn't find this in my external sources right now. "
        "Could you add some context or rephrase the question?"
        "\n\n💡 Every conversation helps me learn!"
    )
    return response


class FallbackResolver:
    """Resolve a question the pattern store could not answer."""

    def __init__(self, augmenter: Optional[KnowledgeAugmenter] = None):
        self.augmenter = augmenter

    def resolve(self, question: str) -> str:
        return self.resolve_with_source(question).answer

    def resolve_with_source(self, question: str, context: Sequence[str] = ()) -> Resolution:
        """
        Run the strategies in order.

        Args:
            question: The user's question
            context: Recent conversation turns, used for disambiguation

        Returns:
            Resolution; never None, the canned reply is the last resort
        """
        solved = solve_math(question)
        if solved is not None:
            logger.debug("Resolved %r arithmetically", question)
            return Resolution(solved.answer, PatternSource.MATH.value, 1.0)

        if self.augmenter is not None:
            found = self.augmenter.lookup_wikipedia(question, context=" ".join(context))
            if found:
                logger.info("Resolved %r from Wikipedia article %r", question, found.title)
                answer = f"📖 **{found.title}**\n\n{found.extract}\n\n📚 Source: Wikipedia ({found.title})"
                return Resolution(answer, PatternSource.WIKIPEDIA.value, found.confidence, found.title)

            taught = self.augmenter.ask_teacher(question)
            if taught:
                logger.info("Resolved %r from the teacher LLM", question)
                return Resolution(taught, PatternSource.TEACHER_LLM.value, 0.9)

        logger.info("No source could answer %r, using canned reply", question)
        return Resolution(canned_response(question), CANNED_SOURCE, 0.0)


__all__ = ["CANNED_SOURCE", "FallbackResolver", "Resolution", "canned_response"]
