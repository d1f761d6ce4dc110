"""Fixed registry of named backends."""

from collections.abc import Iterator, Mapping, Sequence
from types import MappingProxyType
from typing import Optional

import httpx

from llm_router.backends import (
    Backend,
    GeminiBackend,
    LMStudioBackend,
    NotebookLMBackend,
    OllamaBackend,
    OpenRouterBackend,
    RetryPolicy,
)
from llm_router.config.settings import Settings
from llm_router.exceptions import ConfigurationError


class BackendRegistry(Mapping[str, Backend]):
    """Read-only name -> backend mapping, populated once at construction.

    Besides the mapping it records the roles the strategies rely on:
    ``local_priority`` (local backends in probing order),
    ``designated_cloud`` (the single cloud backend ``local-first`` may use)
    and ``aggregator`` (the cloud backend ``cloud-fallback`` trusts without a
    probe).
    """

    def __init__(
        self,
        backends: Sequence[Backend],
        local_priority: Sequence[str],
        designated_cloud: Optional[str] = None,
        aggregator: Optional[str] = None,
    ):
        by_name: dict[str, Backend] = {}
        for backend in backends:
            if not backend.name:
                raise ConfigurationError(f"Backend {backend!r} has no name")
            if backend.name in by_name:
                raise ConfigurationError(f"Duplicate backend name: {backend.name}")
            by_name[backend.name] = backend
        self._backends = MappingProxyType(by_name)

        for name in local_priority:
            if name not in by_name:
                raise ConfigurationError(f"Unknown local backend: {name}")
            if not by_name[name].is_local:
                raise ConfigurationError(f"Backend {name} is not local")
        for role, name in (("designated cloud", designated_cloud), ("aggregator", aggregator)):
            if name is None:
                continue
            if name not in by_name:
                raise ConfigurationError(f"Unknown {role} backend: {name}")
            if by_name[name].is_local:
                raise ConfigurationError(f"The {role} backend {name} must be a cloud backend")

        self.local_priority: tuple[str, ...] = tuple(local_priority)
        self.designated_cloud = designated_cloud
        self.aggregator = aggregator

    def __getitem__(self, name: str) -> Backend:
        return self._backends[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._backends)

    def __len__(self) -> int:
        return len(self._backends)

    def local_backends(self) -> list[Backend]:
        return [self._backends[name] for name in self.local_priority]

    def get_aggregator(self) -> Optional[Backend]:
        return self._backends.get(self.aggregator) if self.aggregator else None

    def get_designated_cloud(self) -> Optional[Backend]:
        return self._backends.get(self.designated_cloud) if self.designated_cloud else None

    def configurable_names(self) -> list[str]:
        """Display names a user can configure to make routing possible."""
        names = [backend.display_name for backend in self.local_backends()]
        aggregator = self.get_aggregator()
        if aggregator is not None:
            names.append(aggregator.display_name)
        return names

    async def aclose(self) -> None:
        for backend in self._backends.values():
            await backend.aclose()


def _secret(value) -> Optional[str]:
    return value.get_secret_value() if value is not None else None


def build_default_registry(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> BackendRegistry:
    """Ollama, LM Studio, Gemini, NotebookLM and OpenRouter wired from settings."""
    timeouts = {
        "health_check_timeout": settings.health_check_timeout,
        "request_timeout": settings.request_timeout,
        "transport": transport,
    }
    backends = [
        OllamaBackend(
            settings.ollama_base_url,
            retry_policy=RetryPolicy.with_exponential_backoff(
                max_attempts=settings.ollama_max_retries,
                base_delay=settings.retry_base_delay,
                backoff_multiplier=settings.retry_backoff_multiplier,
            ),
            **timeouts,
        ),
        LMStudioBackend(settings.lmstudio_base_url, **timeouts),
        GeminiBackend(
            settings.gemini_base_url,
            api_key=_secret(settings.gemini_api_key),
            default_model=settings.gemini_model,
            **timeouts,
        ),
        NotebookLMBackend(
            settings.gemini_base_url,
            api_key=_secret(settings.effective_notebooklm_key),
            default_model=settings.gemini_model,
            **timeouts,
        ),
        OpenRouterBackend(
            settings.openrouter_base_url,
            api_key=_secret(settings.openrouter_api_key),
            default_model=settings.openrouter_model,
            **timeouts,
        ),
    ]
    return BackendRegistry(
        backends,
        local_priority=("ollama", "lmstudio"),
        designated_cloud="gemini",
        aggregator="openrouter",
    )
