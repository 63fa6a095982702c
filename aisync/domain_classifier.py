"""
Domain Classifier - coarse subject-area tagging for questions and answers

Used by the similarity matcher to keep answers from one subject area from
leaking into another (e.g. a grammar explanation answering "how do they make
TVs?"). Classification is a keyword lookup; cross-domain blocking is an
explicit, configurable veto matrix.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .text_utils import normalize_question


class Domain(Enum):
    """Subject areas, in tie-break order."""
    TECHNOLOGY = "technology"
    SCIENCE = "science"
    GRAMMAR = "grammar"
    MATHEMATICS = "mathematics"
    MANUFACTURING = "manufacturing"
    GENERAL = "general"


DOMAIN_KEYWORDS: Dict[Domain, Tuple[str, ...]] = {
    Domain.TECHNOLOGY: (
        "tv", "television", "computer", "phone", "device", "electronic", "digital",
        "software", "hardware", "build", "manufacture", "assembly", "factory",
        "make", "create", "produce", "construct", "screen", "display",
    ),
    Domain.SCIENCE: (
        "chemical", "physics", "biology", "scientific", "experiment", "theory",
        "research", "study", "atom", "molecule", "energy",
    ),
    Domain.GRAMMAR: (
        "pronoun", "grammatical", "subject", "english", "language", "grammar",
        "linguistic", "syntax", "third-person", "verb", "noun", "adjective",
        "modern english",
    ),
    Domain.MATHEMATICS: (
        "calculate", "equation", "number", "math", "arithmetic", "solve", "plus",
        "minus", "times", "divide", "percent",
    ),
    Domain.MANUFACTURING: (
        "how to make", "how do they make", "how to build", "how do they build",
        "production", "assembly line", "factory", "manufacturing process",
    ),
    Domain.GENERAL: (
        "person", "people", "human", "society", "culture", "history",
    ),
}

_MANUFACTURING_PHRASES = [
    re.compile(r"how\s+do\s+they\s+(make|build|create|manufacture|produce|construct)"),
    re.compile(r"how\s+to\s+(make|build|create|manufacture|produce|construct)"),
    re.compile(r"how\s+are\s+\w+\s+(made|built|created|manufactured|produced|constructed)"),
    re.compile(r"how\s+is\s+a?\s*\w+\s+(made|built|created|manufactured|produced|constructed)"),
    re.compile(r"what\s+is\s+the\s+process\s+(of|to)\s+(making|building|creating)"),
]

_MANUFACTURING_VERBS = ("make", "build", "create", "manufacture", "produce", "construct", "assembly", "factory")
_PRODUCT_NOUNS = ("tv", "television", "phone", "computer", "car", "house", "building", "device", "machine", "product")


@dataclass(frozen=True)
class DomainClassification:
    """Result of classifying one piece of text."""
    domain: Domain
    matches: Tuple[str, ...] = ()
    score: int = 0


def is_manufacturing_question(question: str) -> bool:
    """True for "how do they make X" phrasing or a make-verb plus a product noun."""
    lowered = (question or "").lower().strip()
    if any(p.search(lowered) for p in _MANUFACTURING_PHRASES):
        return True
    words = set(normalize_question(lowered).split())
    has_verb = any(v in words for v in _MANUFACTURING_VERBS)
    has_product = any(p in words for p in _PRODUCT_NOUNS)
    return has_verb and has_product


def _keyword_hits(keywords: Iterable[str], words: Set[str], text: str) -> List[str]:
    hits = []
    for keyword in keywords:
        if " " in keyword or "-" in keyword:
            if keyword in text:
                hits.append(keyword)
        elif keyword in words:
            hits.append(keyword)
    return hits


class DomainClassifier:
    """Keyword-table classifier returning a tagged ``DomainClassification``."""

    def __init__(self, keywords: Optional[Dict[Domain, Tuple[str, ...]]] = None):
        self.keywords = keywords or DOMAIN_KEYWORDS

    def classify(self, text: str) -> DomainClassification:
        lowered = (text or "").lower()
        if any(p.search(lowered) for p in _MANUFACTURING_PHRASES[:2]):
            return DomainClassification(Domain.MANUFACTURING, ("manufacturing phrasing",), 1)

        words = set(normalize_question(lowered).split())
        best: Optional[DomainClassification] = None
        for domain in Domain:
            hits = _keyword_hits(self.keywords.get(domain, ()), words, lowered)
            if hits and (best is None or len(hits) > best.score):
                best = DomainClassification(domain, tuple(hits), len(hits))

        return best or DomainClassification(Domain.GENERAL)


@dataclass
class VetoMatrix:
    """
    (question domain, pattern domain) pairs that may never match.

    Pairs are directional; add both orders to block a pair completely.
    """
    pairs: Set[Tuple[Domain, Domain]] = field(default_factory=set)

    @classmethod
    def from_names(cls, pairs: Iterable[Tuple[str, str]]) -> "VetoMatrix":
        return cls({(Domain(q), Domain(p)) for q, p in pairs})

    def is_vetoed(self, question_domain: Domain, pattern_domain: Domain) -> bool:
        return (question_domain, pattern_domain) in self.pairs

    def add(self, question_domain: Domain, pattern_domain: Domain) -> None:
        self.pairs.add((question_domain, pattern_domain))


__all__ = [
    "DOMAIN_KEYWORDS",
    "Domain",
    "DomainClassification",
    "DomainClassifier",
    "VetoMatrix",
    "is_manufacturing_question",
]
