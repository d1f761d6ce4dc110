"""Tests for the backend registry."""

import pytest

from fakes import FakeBackend
from llm_router.backends import (
    BackendKind,
    GeminiBackend,
    LMStudioBackend,
    NotebookLMBackend,
    OllamaBackend,
    OpenRouterBackend,
)
from llm_router.config import Settings
from llm_router.exceptions import ConfigurationError
from llm_router.orchestrator.registry import BackendRegistry, build_default_registry


class TestBackendRegistry:
    def test_mapping_interface(self, backends, registry):
        assert len(registry) == 5
        assert registry["gemini"] is backends["gemini"]
        assert "claude" not in registry
        assert list(registry) == ["ollama", "lmstudio", "gemini", "notebooklm", "openrouter"]

    def test_roles(self, backends, registry):
        assert registry.local_backends() == [backends["ollama"], backends["lmstudio"]]
        assert registry.get_designated_cloud() is backends["gemini"]
        assert registry.get_aggregator() is backends["openrouter"]

    def test_configurable_names(self, registry):
        assert registry.configurable_names() == ["Ollama", "LM Studio", "OpenRouter"]

    def test_duplicate_names_rejected(self):
        with pytest.raises(ConfigurationError, match="Duplicate"):
            BackendRegistry([FakeBackend("ollama"), FakeBackend("ollama")], local_priority=["ollama"])

    def test_unknown_role_rejected(self):
        with pytest.raises(ConfigurationError):
            BackendRegistry([FakeBackend("ollama")], local_priority=["ollama"], aggregator="openrouter")

    def test_cloud_in_local_priority_rejected(self):
        cloud = FakeBackend("gemini", kind=BackendKind.CLOUD)

        with pytest.raises(ConfigurationError, match="not local"):
            BackendRegistry([cloud], local_priority=["gemini"])

    def test_local_aggregator_rejected(self):
        with pytest.raises(ConfigurationError, match="cloud backend"):
            BackendRegistry([FakeBackend("ollama")], local_priority=["ollama"], aggregator="ollama")

    @pytest.mark.asyncio
    async def test_aclose(self, backends, registry):
        await registry.aclose()

        assert all(backend.closed for backend in backends.values())


class TestDefaultRegistry:
    def test_builds_standard_backends(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "gemini-key")
        monkeypatch.setenv("OLLAMA_BASE_URL", "http://gpu-box:11434/api")

        registry = build_default_registry(Settings(_env_file=None))

        assert isinstance(registry["ollama"], OllamaBackend)
        assert isinstance(registry["lmstudio"], LMStudioBackend)
        assert isinstance(registry["gemini"], GeminiBackend)
        assert isinstance(registry["notebooklm"], NotebookLMBackend)
        assert isinstance(registry["openrouter"], OpenRouterBackend)
        assert registry.local_priority == ("ollama", "lmstudio")
        assert registry["ollama"].base_url == "http://gpu-box:11434/api"
        assert registry["ollama"].retry_policy.max_attempts == 3
        assert registry["notebooklm"].api_key == "gemini-key"
        assert registry["openrouter"].api_key is None
