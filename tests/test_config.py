import pytest

from lecturenotes.config import ConfigManager


def test_precedence(monkeypatch):
    monkeypatch.delenv("LLM_MODEL", raising=False)
    assert ConfigManager().get("LLM_MODEL") == "gpt-4o-mini"
    assert ConfigManager().get_source("LLM_MODEL") == "default"

    monkeypatch.setenv("LLM_MODEL", "gpt-4o")
    assert ConfigManager().get("LLM_MODEL") == "gpt-4o"
    assert ConfigManager().get_source("LLM_MODEL") == "env"

    config = ConfigManager({"LLM_MODEL": "local-model"})
    assert config.get("LLM_MODEL") == "local-model"
    assert config.get_source("LLM_MODEL") == "override"
    assert config.get("LLM_MODEL", override="call-site") == "call-site"


def test_empty_values_fall_through(monkeypatch):
    monkeypatch.setenv("JOBS_DIR", "")
    assert ConfigManager({"JOBS_DIR": ""}).get("JOBS_DIR") == "lectures"


def test_get_int(monkeypatch):
    monkeypatch.delenv("PIPELINE_WORKERS", raising=False)
    monkeypatch.delenv("PORT", raising=False)
    assert ConfigManager().get_int("PIPELINE_WORKERS") is None
    assert ConfigManager().get_int("PORT") == 5001
    assert ConfigManager({"PIPELINE_WORKERS": "4"}).get_int("PIPELINE_WORKERS") == 4

    with pytest.raises(ValueError):
        ConfigManager({"PORT": "eighty"}).get_int("PORT")


def test_get_float():
    config = ConfigManager({"RETRY_DELAY": "2.5"})
    assert config.get_float("RETRY_DELAY") == 2.5
    assert config.get_float("UNSET_KEY", 1.0) == 1.0
