"""
Knowledge Augmentation Module

External knowledge sources used when the pattern store has no confident
answer:

- WikipediaLookup: article summaries from Wikipedia's REST API
- TeacherLLM: a chat-completion model prompted to teach AISync

Both make a single attempt bounded by a timeout. Any network or payload
problem is logged and reported as "no answer" so the caller can move on to
its next strategy.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import requests
from nltk.stem import PorterStemmer

from .config import LearningConfig

logger = logging.getLogger(__name__)


TEACHER_SYSTEM_PROMPT = (
    "You are a knowledgeable teacher helping an AI named AISync learn about various topics. "
    "Provide clear, accurate, and comprehensive answers that will help AISync understand "
    "and remember the information. Keep responses informative but concise "
    "(2-3 paragraphs maximum)."
)

_QUESTION_PREFIX_WORDS = {
    "what", "whats", "what's", "how", "why", "when", "where", "who", "which",
    "is", "are", "was", "were", "am", "do", "does", "did", "can", "could",
    "would", "should", "tell", "me", "about", "know", "you", "your",
    "a", "an", "the", "explain", "describe", "define",
}

_TERM_STOP_WORDS = {
    "what", "whats", "what's", "how", "why", "when", "where", "who", "is",
    "are", "the", "and", "made", "does", "tell", "about", "explain",
    "describe", "with", "from", "that", "this",
}

_DISAMBIGUATION_MARKERS = (
    "may refer to:",
    "may also refer to:",
    "can refer to:",
    "is the name of:",
    "disambiguation",
)


@dataclass
class KnowledgeResult:
    """A fact fetched from an external source."""
    title: str
    extract: str
    url: str = ""
    confidence: float = 0.75
    source: str = "wikipedia"


class WikipediaLookup:
    """
    Wikipedia API interface for knowledge extraction.

    Uses the REST summary endpoint (no authentication). Several search terms
    are tried in turn; when none names an article directly, the opensearch
    API picks the closest title. Disambiguation pages are resolved against
    the words of the original question.
    """

    summary_url = "https://en.wikipedia.org/api/rest_v1/page/summary/"
    search_url = "https://en.wikipedia.org/w/api.php"

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
        user_agent: str = "AISync/1.0 (Self-learning pattern store)",
        max_sentences: int = 3,
        max_terms: int = 4,
    ):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.user_agent = user_agent
        self.max_sentences = max_sentences
        self.max_terms = max_terms
        self.stemmer = PorterStemmer()

    def lookup(self, query: str, context: str = "") -> Optional[KnowledgeResult]:
        """
        Look up a question on Wikipedia.

        Args:
            query: The user's question
            context: Recent conversation text, used for disambiguation

        Returns:
            KnowledgeResult or None if nothing useful was found
        """
        terms = self.search_terms(query)
        if not terms:
            return None

        full_context = f"{context} {query}".strip()
        for term in terms[: self.max_terms]:
            result = self._fetch_article(term, context=full_context)
            if result:
                return result

        return self._search_and_fetch(terms[0], context=full_context)

    def search_terms(self, query: str) -> List[str]:
        """
        Candidate article titles, most specific first.

        1. The question with question words and articles removed
        2. The original question
        3. Individual significant words
        """
        terms: List[str] = []
        cleaned = self._clean_query(query)
        if len(cleaned) > 2:
            terms.append(cleaned)

        original = query.strip().rstrip("?!.")
        if original:
            terms.append(original)

        for word in re.findall(r"[\w'-]+", query):
            if len(word) > 3 and word.lower() not in _TERM_STOP_WORDS:
                terms.append(word.title())

        unique: List[str] = []
        for term in terms:
            if term.lower() not in (t.lower() for t in unique):
                unique.append(term)
        return unique

    def _clean_query(self, query: str) -> str:
        """
        Turn a question into an article title.

        Examples:
            "What is machine learning?" -> "Machine Learning"
            "Tell me about Python" -> "Python"
            "Who is Ada Lovelace?" -> "Ada Lovelace"
        """
        query_lower = query.lower().strip().strip("?!.")

        about = re.match(
            r"^(?:do\s+you\s+know\s+(?:about|of)|tell\s+me\s+about|what\s+(?:is|are)|who\s+(?:is|was))\s+(.+)$",
            query_lower,
        )
        if about:
            subject = re.sub(r"^(?:a|an|the)\s+", "", about.group(1).strip())
            if subject and subject not in ("it", "this", "that"):
                return subject.title()

        words = [w for w in query_lower.split() if w not in _QUESTION_PREFIX_WORDS]
        return " ".join(words).title()

    def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Optional[Any]:
        try:
            response = self.session.get(
                url,
                params=params,
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("Wikipedia request failed for %s: %s", url, e)
            return None

        if response.status_code != 200:
            logger.debug("Wikipedia returned %s for %s", response.status_code, url)
            return None

        try:
            return response.json()
        except ValueError as e:
            logger.warning("Wikipedia returned invalid JSON for %s: %s", url, e)
            return None

    def _fetch_article(
        self,
        title: str,
        context: str = "",
        resolve_disambiguation: bool = True,
    ) -> Optional[KnowledgeResult]:
        """
        Fetch an article summary by exact title.

        Args:
            title: Article title to fetch
            context: Question text used to pick a meaning on disambiguation pages
            resolve_disambiguation: Follow disambiguation pages (one level only)
        """
        data = self._get(self.summary_url + quote(title.replace(" ", "_")))
        if not isinstance(data, dict):
            return None

        extract = data.get("extract", "")
        if data.get("type") == "disambiguation" or self._is_disambiguation_page(extract):
            logger.debug("Disambiguation page for %r", title)
            if resolve_disambiguation:
                return self._resolve_disambiguation(title, context, extract)
            return None

        clean_extract = self._extract_summary(extract)
        if not clean_extract:
            return None

        return KnowledgeResult(
            title=data.get("title", title),
            extract=clean_extract,
            url=data.get("content_urls", {}).get("desktop", {}).get("page", ""),
            confidence=0.75,
            source="wikipedia",
        )

    def _is_disambiguation_page(self, text: str) -> bool:
        if not text:
            return False
        text_lower = text.lower()
        return any(marker in text_lower for marker in _DISAMBIGUATION_MARKERS)

    def _resolve_disambiguation(self, title: str, context: str, disambig_text: str) -> Optional[KnowledgeResult]:
        """
        Pick the meaning of an ambiguous title that best fits the question.

        Options come from the disambiguation text itself and from an
        opensearch for the title; each is scored by stemmed word overlap
        with the question.
        """
        options = self._parse_disambiguation_options(disambig_text)
        options.extend(self._opensearch(title, limit=8))

        context_words = {
            w for w in re.findall(r"[a-z']+", context.lower())
            if w not in _QUESTION_PREFIX_WORDS and w.lower() not in title.lower().split()
        }
        if not options or not context_words:
            return None

        context_stems = {self.stemmer.stem(w) for w in context_words}
        scored: List[Tuple[int, str]] = []
        for option_title, option_desc in options:
            if option_title.lower() == title.lower():
                continue
            tokens = re.findall(r"[a-z']+", f"{option_title} {option_desc}".lower())
            score = 0
            for token in tokens:
                if self.stemmer.stem(token) in context_stems:
                    score += 3
                elif token in context_words:
                    score += 2
            scored.append((score, option_title))

        scored.sort(key=lambda item: item[0], reverse=True)
        if not scored or scored[0][0] <= 0:
            return None

        best_title = scored[0][1]
        logger.info("Resolved disambiguation %r -> %r (score %d)", title, best_title, scored[0][0])
        return self._fetch_article(best_title, context="", resolve_disambiguation=False)

    def _parse_disambiguation_options(self, text: str) -> List[Tuple[str, str]]:
        """
        Extract "Title, description" lines from a disambiguation extract.

        Returns:
            List of (title, description) tuples
        """
        options = []
        for line in text.split("\n"):
            match = re.match(r"^[•\-\*]?\s*(.+?)\s*[,\-]\s*(.+)$", line.strip())
            if match:
                title_part, desc_part = match.group(1).strip(), match.group(2).strip()
                if title_part and desc_part:
                    options.append((title_part, desc_part))
        return options[:10]

    def _opensearch(self, query: str, limit: int = 1) -> List[Tuple[str, str]]:
        data = self._get(
            self.search_url,
            params={"action": "opensearch", "search": query, "limit": limit, "format": "json"},
        )
        if not isinstance(data, list) or len(data) < 2 or not data[1]:
            return []
        titles = data[1]
        descriptions = data[2] if len(data) > 2 else []
        return [
            (t, descriptions[i] if i < len(descriptions) else "")
            for i, t in enumerate(titles)
        ]

    def _search_and_fetch(self, query: str, context: str = "") -> Optional[KnowledgeResult]:
        """Search Wikipedia and fetch the top result."""
        results = self._opensearch(query, limit=1)
        if not results:
            return None
        return self._fetch_article(results[0][0], context=context)

    def _extract_summary(self, text: str) -> str:
        """
        First few sentences of an extract, capped at 60 words.

        Patterns should hold factual nuggets, not whole articles.
        """
        if not text:
            return ""

        sentences = [s.strip() for s in re.split(r"(?<=[.!?])\s+", text.strip()) if s.strip()]
        summary = " ".join(sentences[: self.max_sentences])

        words = summary.split()
        if len(words) > 60:
            summary = " ".join(words[:60]) + "..."
        elif summary and summary[-1] not in ".!?":
            summary += "."
        return summary


class TeacherLLM:
    """
    Chat-completion client used as AISync's teacher.

    Disabled (``ask`` returns None) when no API key is configured.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-3.5-turbo",
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 30.0,
        max_tokens: int = 500,
        temperature: float = 0.7,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.session = session or requests.Session()

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    def ask(self, question: str, system_prompt: str = TEACHER_SYSTEM_PROMPT) -> Optional[str]:
        """
        Ask the teacher a question.

        Returns:
            The teacher's answer, or None on any failure
        """
        if not self.available:
            logger.debug("Teacher LLM disabled: no API key configured")
            return None

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": question},
            ],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = self.session.post(
                f"{self.base_url}/chat/completions",
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.Timeout:
            logger.warning("Teacher LLM timed out after %.0fs", self.timeout)
            return None
        except requests.RequestException as e:
            logger.warning("Teacher LLM request failed: %s", e)
            return None

        if response.status_code != 200:
            logger.warning("Teacher LLM returned HTTP %s", response.status_code)
            return None

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.warning("Teacher LLM returned an unexpected payload: %s", e)
            return None

        content = (content or "").strip()
        return content or None


class KnowledgeAugmenter:
    """
    Coordinates the external knowledge sources and keeps lookup statistics.
    """

    def __init__(
        self,
        wikipedia: Optional[WikipediaLookup] = None,
        teacher: Optional[TeacherLLM] = None,
        enable_wikipedia: bool = True,
        enable_teacher: bool = True,
    ):
        self.wikipedia = wikipedia
        self.teacher = teacher
        self.enable_wikipedia = enable_wikipedia and wikipedia is not None
        self.enable_teacher = enable_teacher and teacher is not None

        self.lookup_count = 0
        self.success_count = 0
        self.source_stats = {"wikipedia": 0, "teacher_llm": 0}

    @classmethod
    def from_config(cls, config: LearningConfig, session: Optional[requests.Session] = None) -> "KnowledgeAugmenter":
        session = session or requests.Session()
        wikipedia = WikipediaLookup(
            session=session,
            timeout=config.http_timeout,
            user_agent=config.wikipedia_user_agent,
            max_sentences=config.summary_sentences,
        )
        teacher = TeacherLLM(
            api_key=config.openai_api_key,
            model=config.teacher_model,
            base_url=config.teacher_base_url,
            timeout=config.http_timeout,
            max_tokens=config.teacher_max_tokens,
            temperature=config.teacher_temperature,
            session=session,
        )
        return cls(
            wikipedia=wikipedia,
            teacher=teacher,
            enable_wikipedia=config.enable_web_search,
            enable_teacher=config.enable_teacher_llm,
        )

    def lookup_wikipedia(self, question: str, context: str = "") -> Optional[KnowledgeResult]:
        if not self.enable_wikipedia:
            return None
        self.lookup_count += 1
        result = self.wikipedia.lookup(question, context=context)
        if result:
            self.success_count += 1
            self.source_stats["wikipedia"] += 1
        return result

    def ask_teacher(self, question: str) -> Optional[str]:
        if not self.enable_teacher:
            return None
        self.lookup_count += 1
        answer = self.teacher.ask(question)
        if answer:
            self.success_count += 1
            self.source_stats["teacher_llm"] += 1
        return answer

    def get_stats(self) -> Dict[str, Any]:
        return {
            "lookups": self.lookup_count,
            "successes": self.success_count,
            "success_rate": self.success_count / self.lookup_count if self.lookup_count else 0.0,
            "by_source": dict(self.source_stats),
        }


__all__ = [
    "KnowledgeAugmenter",
    "KnowledgeResult",
    "TEACHER_SYSTEM_PROMPT",
    "TeacherLLM",
    "WikipediaLookup",
]
