"""Test configuration loading and strategy persistence."""

import json

import pytest
from pydantic import ValidationError

from llm_router.config import STRATEGY_KEY, Settings, StrategyStore


def test_default_settings():
    settings = Settings(_env_file=None)

    assert settings.strategy is None
    assert settings.health_cache_ttl == 5.0
    assert settings.health_check_timeout == 5.0
    assert settings.request_timeout == 30.0
    assert settings.ollama_base_url == "http://localhost:11434/api"
    assert settings.lmstudio_base_url == "http://localhost:1234/v1"
    assert settings.ollama_max_retries == 3
    assert settings.stream_fallback_after_output is True


def test_env_override(monkeypatch):
    monkeypatch.setenv("LLM_STRATEGY", "local-only")
    monkeypatch.setenv("OLLAMA_BASE_URL", "http://gpu-box:11434/api/")
    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or-123")
    monkeypatch.setenv("STREAM_FALLBACK_AFTER_OUTPUT", "false")

    settings = Settings(_env_file=None)

    assert settings.strategy == "local-only"
    assert settings.ollama_base_url == "http://gpu-box:11434/api"
    assert settings.openrouter_api_key.get_secret_value() == "sk-or-123"
    assert settings.stream_fallback_after_output is False


def test_api_keys_are_secret(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "AIza-secret")

    settings = Settings(_env_file=None)

    assert "AIza-secret" not in repr(settings)


def test_notebooklm_key_falls_back_to_gemini(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "gemini-key")
    assert Settings(_env_file=None).effective_notebooklm_key.get_secret_value() == "gemini-key"

    monkeypatch.setenv("NOTEBOOKLM_API_KEY", "notebook-key")
    assert Settings(_env_file=None).effective_notebooklm_key.get_secret_value() == "notebook-key"


def test_invalid_log_format(monkeypatch):
    monkeypatch.setenv("LOG_FORMAT", "xml")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


class TestStrategyStore:
    def test_missing_file_loads_nothing(self, tmp_path):
        assert StrategyStore(tmp_path / "state.json").load() is None

    def test_save_then_load(self, tmp_path):
        store = StrategyStore(tmp_path / "nested" / "state.json")

        store.save("local-first")

        assert store.load() == "local-first"

    def test_save_preserves_other_keys(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"theme": "dark"}))

        StrategyStore(path).save("hybrid")

        assert json.loads(path.read_text()) == {"theme": "dark", STRATEGY_KEY: "hybrid"}

    def test_corrupt_file_ignored(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{oops")

        assert StrategyStore(path).load() is None

    def test_non_string_value_ignored(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({STRATEGY_KEY: 3}))

        assert StrategyStore(path).load() is None
