"""Pytest configuration and fixtures."""

from typing import Dict

import pytest
import structlog

from fakes import FakeBackend, FakeClock, RecordingUsageTracker, make_registry
from llm_router.backends.base import BackendKind
from llm_router.orchestrator.health_cache import HealthCache
from llm_router.orchestrator.registry import BackendRegistry
from llm_router.telemetry.metrics import MetricsCollector


@pytest.fixture(autouse=True)
def _stdlib_structlog():
    """Route structlog through stdlib logging so unconfigured logs stay off stdout."""
    structlog.configure(logger_factory=structlog.stdlib.LoggerFactory())
    yield
    structlog.reset_defaults()


@pytest.fixture
def backends() -> Dict[str, FakeBackend]:
    """All five standard backends, healthy."""
    return {
        "ollama": FakeBackend("ollama"),
        "lmstudio": FakeBackend("lmstudio"),
        "gemini": FakeBackend("gemini", kind=BackendKind.CLOUD),
        "notebooklm": FakeBackend("notebooklm", kind=BackendKind.CLOUD),
        "openrouter": FakeBackend("openrouter", kind=BackendKind.CLOUD),
    }


@pytest.fixture
def registry(backends) -> BackendRegistry:
    return make_registry(backends)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector()


@pytest.fixture
def health_cache(clock, metrics) -> HealthCache:
    return HealthCache(ttl=5.0, clock=clock, metrics=metrics)


@pytest.fixture
def usage_tracker() -> RecordingUsageTracker:
    return RecordingUsageTracker()
