from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote

import pytest

from aisync.config import LearningConfig
from aisync.knowledge_augmenter import WikipediaLookup
from aisync.learning_ai import LearningAI
from aisync.pattern_store import PatternStore


PHOTOSYNTHESIS_EXTRACT = (
    "Photosynthesis is a biological process by which plants, algae and some bacteria "
    "convert light energy into chemical energy. "
    "The chemical energy is stored in sugars made from carbon dioxide and water. "
    "Most life on Earth depends on photosynthesis for food and oxygen. "
    "It was first studied in the eighteenth century."
)


class FakeResponse:
    """Just enough of ``requests.Response`` for the knowledge sources."""

    def __init__(self, payload: Any = None, status_code: int = 200):
        self.payload = payload
        self.status_code = status_code

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    """
    Stand-in for ``requests.Session``.

    ``pages`` maps article titles to summary payloads, ``search`` maps
    opensearch queries to lists of (title, description) and ``completion``
    is the teacher LLM's reply text (None for HTTP 500).
    """

    def __init__(
        self,
        pages: Optional[Dict[str, Dict[str, Any]]] = None,
        search: Optional[Dict[str, List[Tuple[str, str]]]] = None,
        completion: Optional[str] = None,
        error: Optional[Exception] = None,
    ):
        self.pages = pages or {}
        self.search = search or {}
        self.completion = completion
        self.error = error
        self.get_calls: List[Tuple[str, Optional[Dict[str, Any]]]] = []
        self.post_calls: List[Tuple[str, Dict[str, Any]]] = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.get_calls.append((url, params))
        if self.error is not None:
            raise self.error
        if url.startswith(WikipediaLookup.summary_url):
            title = unquote(url[len(WikipediaLookup.summary_url):]).replace("_", " ")
            if title in self.pages:
                return FakeResponse(self.pages[title])
            return FakeResponse({"title": "Not found"}, status_code=404)
        if url == WikipediaLookup.search_url:
            results = self.search.get(params["search"], [])
            return FakeResponse([
                params["search"],
                [title for title, _ in results],
                [desc for _, desc in results],
                [],
            ])
        return FakeResponse(None, status_code=404)

    def post(self, url, json=None, headers=None, timeout=None):
        self.post_calls.append((url, json))
        if self.error is not None:
            raise self.error
        if self.completion is None:
            return FakeResponse({"error": "unavailable"}, status_code=500)
        return FakeResponse({"choices": [{"message": {"role": "assistant", "content": self.completion}}]})

    @property
    def summary_calls(self) -> List[str]:
        return [url for url, _ in self.get_calls if url.startswith(WikipediaLookup.summary_url)]


def article(title: str, extract: str, page_type: str = "standard") -> Dict[str, Any]:
    return {
        "type": page_type,
        "title": title,
        "extract": extract,
        "content_urls": {"desktop": {"page": f"https://en.wikipedia.org/wiki/{title.replace(' ', '_')}"}},
    }


@pytest.fixture
def store(tmp_path):
    """PatternStore backed by a throwaway SQLite file."""
    return PatternStore(str(tmp_path / "aisync.db"))


@pytest.fixture
def config(tmp_path):
    return LearningConfig(
        db_path=str(tmp_path / "aisync.db"),
        enable_teacher_llm=False,
        decorate_responses=False,
        inter_question_delay=0.0,
        error_delay=0.0,
    )


@pytest.fixture
def wiki_session():
    return FakeSession(pages={"Photosynthesis": article("Photosynthesis", PHOTOSYNTHESIS_EXTRACT)})


@pytest.fixture
def ai(store, config, wiki_session):
    """LearningAI wired to the temp store and the fake Wikipedia."""
    return LearningAI.from_config(config, store=store, session=wiki_session)
