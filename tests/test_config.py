from __future__ import annotations

import json

import pytest

from aisync.config import LearningConfig, load_overrides


def test_defaults_match_documented_thresholds():
    cfg = LearningConfig()

    assert cfg.similarity_threshold == 0.7
    assert cfg.accuracy_threshold == 0.8
    assert cfg.relevance_threshold == 0.7
    assert (cfg.text_weight, cfg.tag_weight, cfg.semantic_weight) == (0.4, 0.3, 0.3)
    assert cfg.accuracy_for("wikipedia") == 0.85
    assert cfg.accuracy_for("something-new") == 0.5


def test_delta_for_rejects_unknown_type():
    cfg = LearningConfig()

    assert cfg.delta_for("positive") == pytest.approx(0.10)
    assert cfg.delta_for("negative") == pytest.approx(-0.15)
    assert cfg.delta_for("neutral") == pytest.approx(0.02)
    with pytest.raises(ValueError):
        cfg.delta_for("meh")


def test_from_env_reads_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("AISYNC_DB_PATH", str(tmp_path / "env.db"))
    monkeypatch.setenv("AISYNC_TEACHER_URL", "http://localhost:8080/v1/")
    monkeypatch.setenv("AISYNC_HTTP_TIMEOUT", "5")
    monkeypatch.setenv("AISYNC_ENABLE_WEB_SEARCH", "no")

    cfg = LearningConfig.from_env()

    assert cfg.db_path == str(tmp_path / "env.db")
    assert cfg.teacher_base_url == "http://localhost:8080/v1"
    assert cfg.http_timeout == 5.0
    assert cfg.enable_web_search is False


def test_with_overrides_coerces_types():
    cfg = LearningConfig().with_overrides({
        "similarity_threshold": "0.65",
        "max_related_patterns": "2",
        "decorate_responses": "false",
        "domain_vetoes": [["science", "grammar"]],
        "initial_accuracy": {"wikipedia": 0.9},
    })

    assert cfg.similarity_threshold == 0.65
    assert cfg.max_related_patterns == 2
    assert cfg.decorate_responses is False
    assert cfg.domain_vetoes == [("science", "grammar")]
    assert cfg.accuracy_for("wikipedia") == 0.9
    assert cfg.accuracy_for("math") == 1.0


def test_with_overrides_rejects_unknown_key():
    with pytest.raises(ValueError):
        LearningConfig().with_overrides({"no_such_knob": 1})


def test_load_overrides(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"overrides": {"max_patterns": 100}}), encoding="utf-8")

    assert load_overrides(path) == {"max_patterns": 100}


def test_load_overrides_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_overrides(tmp_path / "missing.json")


def test_load_overrides_missing_section(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"label": "demo"}), encoding="utf-8")

    with pytest.raises(ValueError):
        load_overrides(path)
