"""Tests for task routing and strategy-based backend selection."""

import pytest

from fakes import make_registry
from llm_router.backends.base import GenerateOptions, TaskType
from llm_router.orchestrator.router import (
    TASK_PREFERENCES,
    RoutingStrategy,
    StrategyEngine,
    TaskRouter,
)


def engine_for(registry, health_cache, metrics, strategy=RoutingStrategy.CLOUD_FALLBACK):
    return StrategyEngine(registry, health_cache, strategy=strategy, metrics=metrics)


class TestRoutingStrategy:
    def test_default_is_cloud_fallback(self):
        assert RoutingStrategy.default() is RoutingStrategy.CLOUD_FALLBACK

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("local-only", RoutingStrategy.LOCAL_ONLY),
            (" Local-First ", RoutingStrategy.LOCAL_FIRST),
            ("hybrid", RoutingStrategy.HYBRID),
            (RoutingStrategy.CLOUD_FALLBACK, RoutingStrategy.CLOUD_FALLBACK),
            ("cloud-only", None),
            (None, None),
        ],
    )
    def test_parse(self, value, expected):
        assert RoutingStrategy.parse(value) is expected

    def test_only_cloud_strategies_allow_fallback(self):
        assert RoutingStrategy.CLOUD_FALLBACK.allows_fallback
        assert RoutingStrategy.HYBRID.allows_fallback
        assert not RoutingStrategy.LOCAL_ONLY.allows_fallback
        assert not RoutingStrategy.LOCAL_FIRST.allows_fallback


class TestTaskRouter:
    def test_general_task_has_no_candidates(self, registry):
        assert TaskRouter(registry).candidates(TaskType.GENERAL, sticky="ollama") == []

    def test_sticky_first_then_preferences_deduplicated(self, registry):
        router = TaskRouter(registry)

        assert router.candidates(TaskType.CODING, sticky="lmstudio") == ["lmstudio", "ollama", "openrouter"]

    def test_candidates_restricted_to_registered_backends(self, backends):
        del backends["gemini"]
        router = TaskRouter(make_registry(backends))

        assert router.candidates(TaskType.VISION) == ["openrouter"]

    def test_default_table_covers_specialised_tasks(self):
        assert set(TASK_PREFERENCES) == {
            TaskType.CODING,
            TaskType.VISION,
            TaskType.REASONING,
            TaskType.FUNCTION_CALLING,
        }

    def test_local_only_candidates_drop_cloud_backends(self, registry):
        router = TaskRouter(registry)

        assert router.candidates(TaskType.REASONING, sticky="gemini", local_only=True) == ["ollama"]
        assert router.candidates(TaskType.VISION, local_only=True) == []

    @pytest.mark.asyncio
    async def test_first_healthy_candidate_wins(self, backends, registry, health_cache):
        backends["gemini"].healthy = False

        backend = await TaskRouter(registry).select(TaskType.VISION, health_cache)

        assert backend is backends["openrouter"]


class TestStrategyEngine:
    @pytest.mark.asyncio
    async def test_prefers_first_local(self, backends, registry, health_cache, metrics):
        engine = engine_for(registry, health_cache, metrics)

        assert await engine.select_backend() is backends["ollama"]

    @pytest.mark.asyncio
    async def test_second_local_when_first_down(self, backends, registry, health_cache, metrics):
        backends["ollama"].healthy = False
        engine = engine_for(registry, health_cache, metrics, RoutingStrategy.LOCAL_ONLY)

        assert await engine.select_backend() is backends["lmstudio"]

    @pytest.mark.asyncio
    async def test_local_only_never_touches_cloud(self, backends, registry, health_cache, metrics):
        backends["ollama"].healthy = False
        backends["lmstudio"].healthy = False
        engine = engine_for(registry, health_cache, metrics, RoutingStrategy.LOCAL_ONLY)

        assert await engine.select_backend() is None
        for name in ("gemini", "notebooklm", "openrouter"):
            assert backends[name].probe_calls == 0

    @pytest.mark.asyncio
    async def test_local_first_uses_designated_cloud(self, backends, registry, health_cache, metrics):
        backends["ollama"].healthy = False
        backends["lmstudio"].healthy = False
        engine = engine_for(registry, health_cache, metrics, RoutingStrategy.LOCAL_FIRST)

        assert await engine.select_backend() is backends["gemini"]
        assert backends["openrouter"].probe_calls == 0

    @pytest.mark.asyncio
    async def test_local_first_none_when_cloud_down(self, backends, registry, health_cache, metrics):
        for name in ("ollama", "lmstudio", "gemini"):
            backends[name].healthy = False
        engine = engine_for(registry, health_cache, metrics, RoutingStrategy.LOCAL_FIRST)

        assert await engine.select_backend() is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("strategy", [RoutingStrategy.CLOUD_FALLBACK, RoutingStrategy.HYBRID])
    async def test_aggregator_trusted_without_probe(self, backends, registry, health_cache, metrics, strategy):
        backends["ollama"].healthy = False
        backends["lmstudio"].healthy = False
        backends["openrouter"].healthy = False
        engine = engine_for(registry, health_cache, metrics, strategy)

        assert await engine.select_backend() is backends["openrouter"]
        assert backends["openrouter"].probe_calls == 0

    @pytest.mark.asyncio
    async def test_selection_sets_sticky(self, registry, health_cache, metrics):
        engine = engine_for(registry, health_cache, metrics)

        await engine.select_backend()

        assert engine.preferred_backend == "ollama"

    @pytest.mark.asyncio
    async def test_healthy_sticky_wins(self, backends, registry, health_cache, metrics):
        engine = engine_for(registry, health_cache, metrics)
        engine.preferred_backend = "gemini"

        assert await engine.select_backend() is backends["gemini"]
        assert backends["ollama"].probe_calls == 0

    @pytest.mark.asyncio
    async def test_unhealthy_sticky_falls_through(self, backends, registry, health_cache, metrics):
        backends["gemini"].healthy = False
        engine = engine_for(registry, health_cache, metrics)
        engine.preferred_backend = "gemini"

        assert await engine.select_backend() is backends["ollama"]
        assert engine.preferred_backend == "ollama"

    @pytest.mark.asyncio
    async def test_task_routing_overrides_local_priority(self, backends, registry, health_cache, metrics):
        engine = engine_for(registry, health_cache, metrics)

        backend = await engine.select_backend(GenerateOptions(task_type=TaskType.REASONING))

        assert backend is backends["openrouter"]

    @pytest.mark.asyncio
    async def test_task_routing_falls_through_when_no_candidate_healthy(
        self, backends, registry, health_cache, metrics
    ):
        backends["gemini"].healthy = False
        backends["openrouter"].healthy = False
        engine = engine_for(registry, health_cache, metrics)

        backend = await engine.select_backend(GenerateOptions(task_type=TaskType.VISION))

        assert backend is backends["ollama"]

    @pytest.mark.asyncio
    async def test_each_backend_probed_at_most_once_per_call(self, backends, registry, health_cache, metrics):
        backends["ollama"].healthy = False
        engine = engine_for(registry, health_cache, metrics)
        engine.preferred_backend = "ollama"

        await engine.select_backend(GenerateOptions(task_type=TaskType.CODING))

        assert all(backend.probe_calls <= 1 for backend in backends.values())

    @pytest.mark.asyncio
    async def test_cached_health_not_reprobed(self, backends, registry, health_cache, metrics):
        engine = engine_for(registry, health_cache, metrics)

        await engine.select_backend()
        engine.preferred_backend = None
        await engine.select_backend()

        assert backends["ollama"].probe_calls == 1


    @pytest.mark.asyncio
    async def test_coding_task_tries_unhealthy_sticky_cloud_then_local(
        self, backends, registry, health_cache, metrics
    ):
        checked = []
        for backend in backends.values():
            backend.health_log = checked
        backends["gemini"].healthy = False
        engine = engine_for(registry, health_cache, metrics)
        engine.preferred_backend = "gemini"

        backend = await engine.select_backend(GenerateOptions(task_type=TaskType.CODING))

        assert backend is backends["ollama"]
        assert checked == ["gemini", "ollama"]
        assert engine.preferred_backend == "ollama"


class TestLocalOnlyIsolation:
    @pytest.mark.asyncio
    async def test_cloud_sticky_ignored(self, backends, registry, health_cache, metrics):
        backends["ollama"].healthy = False
        backends["lmstudio"].healthy = False
        engine = engine_for(registry, health_cache, metrics, RoutingStrategy.LOCAL_ONLY)
        engine.preferred_backend = "gemini"

        assert await engine.select_backend() is None
        assert backends["gemini"].probe_calls == 0

    @pytest.mark.asyncio
    async def test_cloud_sticky_skipped_when_local_healthy(self, backends, registry, health_cache, metrics):
        engine = engine_for(registry, health_cache, metrics, RoutingStrategy.LOCAL_ONLY)
        engine.preferred_backend = "gemini"

        assert await engine.select_backend() is backends["ollama"]
        assert backends["gemini"].probe_calls == 0

    @pytest.mark.asyncio
    async def test_task_preferences_limited_to_locals(self, backends, registry, health_cache, metrics):
        engine = engine_for(registry, health_cache, metrics, RoutingStrategy.LOCAL_ONLY)

        backend = await engine.select_backend(GenerateOptions(task_type=TaskType.REASONING))

        assert backend is backends["ollama"]
        assert backends["openrouter"].probe_calls == 0
        assert backends["gemini"].probe_calls == 0

    @pytest.mark.asyncio
    async def test_cloud_only_task_with_locals_down(self, backends, registry, health_cache, metrics):
        backends["ollama"].healthy = False
        backends["lmstudio"].healthy = False
        engine = engine_for(registry, health_cache, metrics, RoutingStrategy.LOCAL_ONLY)

        assert await engine.select_backend(GenerateOptions(task_type=TaskType.VISION)) is None
        for name in ("gemini", "notebooklm", "openrouter"):
            assert backends[name].probe_calls == 0


class TestFallbackCandidate:
    @pytest.mark.asyncio
    async def test_local_failure_falls_back_to_aggregator(self, backends, registry, health_cache, metrics):
        engine = engine_for(registry, health_cache, metrics)

        assert await engine.fallback_for(backends["ollama"]) is backends["openrouter"]
        assert backends["openrouter"].probe_calls == 0

    @pytest.mark.asyncio
    async def test_cloud_failure_falls_back_to_healthy_local(self, backends, registry, health_cache, metrics):
        backends["ollama"].healthy = False
        engine = engine_for(registry, health_cache, metrics, RoutingStrategy.HYBRID)

        assert await engine.fallback_for(backends["openrouter"]) is backends["lmstudio"]

    @pytest.mark.asyncio
    async def test_no_fallback_for_local_strategies(self, backends, registry, health_cache, metrics):
        for strategy in (RoutingStrategy.LOCAL_ONLY, RoutingStrategy.LOCAL_FIRST):
            engine = engine_for(registry, health_cache, metrics, strategy)
            assert await engine.fallback_for(backends["ollama"]) is None

    @pytest.mark.asyncio
    async def test_no_fallback_when_no_local_healthy(self, backends, registry, health_cache, metrics):
        backends["ollama"].healthy = False
        backends["lmstudio"].healthy = False
        engine = engine_for(registry, health_cache, metrics)

        assert await engine.fallback_for(backends["gemini"]) is None
