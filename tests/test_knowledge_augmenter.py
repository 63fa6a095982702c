from __future__ import annotations

import requests

from aisync.config import LearningConfig
from aisync.knowledge_augmenter import KnowledgeAugmenter, TeacherLLM, WikipediaLookup

from conftest import FakeSession, article

MERCURY_DISAMBIGUATION = (
    "Mercury may refer to:\n"
    "Mercury (planet), the closest planet to the Sun\n"
    "Mercury (element), a chemical element"
)


def test_search_terms_clean_question_first():
    wiki = WikipediaLookup(session=FakeSession())

    terms = wiki.search_terms("What is photosynthesis?")

    assert terms[0] == "Photosynthesis"
    assert "What is photosynthesis" in terms


def test_lookup_returns_short_summary(wiki_session):
    wiki = WikipediaLookup(session=wiki_session)

    result = wiki.lookup("What is photosynthesis?")

    assert result.title == "Photosynthesis"
    assert result.source == "wikipedia"
    assert result.extract.startswith("Photosynthesis is a biological process")
    assert "eighteenth century" not in result.extract
    assert result.url.endswith("/Photosynthesis")
    assert len(wiki_session.summary_calls) == 1


def test_disambiguation_resolved_from_question_words():
    session = FakeSession(pages={
        "Mercury": article("Mercury", MERCURY_DISAMBIGUATION, page_type="disambiguation"),
        "Mercury (planet)": article("Mercury (planet)", "Mercury is the smallest planet in the Solar System."),
        "Mercury (element)": article("Mercury (element)", "Mercury is a chemical element with symbol Hg."),
    })
    wiki = WikipediaLookup(session=session)

    result = wiki.lookup("Tell me about the planet Mercury")

    assert result.title == "Mercury (planet)"
    assert "planet" in result.extract


def test_unresolvable_disambiguation_gives_nothing():
    session = FakeSession(pages={
        "Mercury": article("Mercury", MERCURY_DISAMBIGUATION, page_type="disambiguation"),
    })
    wiki = WikipediaLookup(session=session, max_terms=1)

    assert wiki.lookup("Mercury") is None


def test_network_failure_is_not_fatal():
    wiki = WikipediaLookup(session=FakeSession(error=requests.ConnectionError("offline")))

    assert wiki.lookup("What is photosynthesis?") is None


def test_teacher_posts_chat_completion():
    session = FakeSession(completion="Gravity pulls masses together.")
    teacher = TeacherLLM(api_key="sk-test", base_url="http://teacher.local/v1/", session=session)

    answer = teacher.ask("What is gravity?")

    assert answer == "Gravity pulls masses together."
    url, payload = session.post_calls[0]
    assert url == "http://teacher.local/v1/chat/completions"
    assert payload["messages"][-1] == {"role": "user", "content": "What is gravity?"}


def test_teacher_without_key_or_on_error_returns_none():
    session = FakeSession(completion=None)

    assert TeacherLLM(api_key=None, session=session).ask("q") is None
    assert session.post_calls == []

    assert TeacherLLM(api_key="sk-test", session=session).ask("q") is None
    assert TeacherLLM(
        api_key="sk-test", session=FakeSession(error=requests.Timeout("slow"))
    ).ask("q") is None


def test_augmenter_respects_switches_and_counts(wiki_session):
    config = LearningConfig(enable_teacher_llm=False)
    augmenter = KnowledgeAugmenter.from_config(config, session=wiki_session)

    assert augmenter.lookup_wikipedia("What is photosynthesis?").title == "Photosynthesis"
    assert augmenter.ask_teacher("anything") is None

    stats = augmenter.get_stats()
    assert stats["lookups"] == 1
    assert stats["by_source"]["wikipedia"] == 1
