"""Tokenising and overlap helpers shared by the matcher, writer and feedback updater."""

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Sequence, Set

__all__ = [
    "QUESTION_WORDS",
    "STOP_WORDS",
    "extract_keywords",
    "extract_primary_topic",
    "jaccard",
    "leading_question_word",
    "normalize_question",
    "significant_words",
    "tokenize",
    "word_overlap",
]


QUESTION_WORDS = ("what", "how", "why", "when", "where", "who", "which")

STOP_WORDS: Set[str] = {
    "the", "is", "at", "which", "on", "a", "an", "and", "or", "but", "in",
    "with", "to", "for", "of", "as", "by", "from", "into", "about", "that",
    "this", "these", "those", "it", "its", "be", "been", "are", "was", "were",
    "am", "do", "does", "did", "can", "could", "would", "should", "will",
    "has", "have", "had", "not", "you", "your", "me", "my", "our", "they",
    "them", "their", "there", "then", "than", "some", "any", "all", "also",
    "just", "very", "please", "tell", "explain", "describe", "know",
    "what", "how", "why", "when", "where", "who", "whom",
}

_PUNCTUATION = re.compile(r"[^\w\s]")
_MULTI_WHITESPACE = re.compile(r"\s+")
_NON_LETTER = re.compile(r"[^a-z]")


def normalize_question(text: str) -> str:
    """Lowercase, drop punctuation and collapse whitespace."""
    cleaned = _PUNCTUATION.sub(" ", (text or "").lower())
    return _MULTI_WHITESPACE.sub(" ", cleaned).strip()


def extract_keywords(text: str, limit: Optional[int] = 10) -> List[str]:
    """
    Significant words of ``text`` in order of first appearance.

    Stop-words and tokens of two characters or fewer are dropped.
    """
    keywords: List[str] = []
    seen: Set[str] = set()
    for word in normalize_question(text).split():
        if len(word) <= 2 or word in STOP_WORDS or word in seen:
            continue
        seen.add(word)
        keywords.append(word)
        if limit is not None and len(keywords) >= limit:
            break
    return keywords


def tokenize(text: str) -> Set[str]:
    return set(extract_keywords(text, limit=None))


def significant_words(text: str, limit: int = 4) -> List[str]:
    """First ``limit`` words longer than two characters, stop-words included."""
    words = [w for w in normalize_question(text).split() if len(w) > 2]
    return words[:limit]


def leading_question_word(text: str) -> Optional[str]:
    words = normalize_question(text).split()
    if words and words[0] in QUESTION_WORDS:
        return words[0]
    return None


def jaccard(a: Iterable[str], b: Iterable[str]) -> float:
    left, right = set(a), set(b)
    if not left and not right:
        return 0.0
    return len(left & right) / len(left | right)


def word_overlap(a: str, b: str) -> float:
    """Shared words over the larger word set (both sides lowercased)."""
    left = {w for w in normalize_question(a).split() if len(w) > 2}
    right = {w for w in normalize_question(b).split() if len(w) > 2}
    if not left or not right:
        return 0.0
    return len(left & right) / max(len(left), len(right))


def extract_primary_topic(question: str, known_topics: Sequence[str] = ()) -> str:
    """
    Main subject of a question.

    A known topic mentioned in the question wins; otherwise the last keyword
    longer than three characters; otherwise the last word.
    """
    lowered = normalize_question(question)
    for topic in known_topics:
        if re.search(r"\b" + re.escape(topic.lower()) + r"\b", lowered):
            return topic.lower()

    keywords = [k for k in extract_keywords(question, limit=None) if len(k) > 3]
    if keywords:
        return keywords[-1]

    words = lowered.split()
    return _NON_LETTER.sub("", words[-1]) if words else ""
