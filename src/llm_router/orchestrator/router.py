"""Backend selection: task-aware routing and the routing strategies."""

from enum import Enum
from typing import Dict, List, Optional, Tuple

import structlog

from llm_router.backends.base import Backend, GenerateOptions, TaskType
from llm_router.orchestrator.health_cache import HealthCache
from llm_router.orchestrator.registry import BackendRegistry
from llm_router.telemetry.metrics import MetricsCollector, metrics_collector

logger = structlog.get_logger()


class RoutingStrategy(str, Enum):
    """Overall local-vs-cloud routing policies."""

    LOCAL_ONLY = "local-only"
    LOCAL_FIRST = "local-first"
    CLOUD_FALLBACK = "cloud-fallback"
    HYBRID = "hybrid"

    @classmethod
    def default(cls) -> "RoutingStrategy":
        return cls.CLOUD_FALLBACK

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["RoutingStrategy"]:
        """Return the strategy named by ``value``, or None if it names none."""
        if isinstance(value, cls):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return None

    @property
    def allows_fallback(self) -> bool:
        return self in (RoutingStrategy.CLOUD_FALLBACK, RoutingStrategy.HYBRID)


# Static per-task backend preferences, best first.
TASK_PREFERENCES: Dict[TaskType, Tuple[str, ...]] = {
    TaskType.CODING: ("ollama", "lmstudio", "openrouter"),
    TaskType.VISION: ("gemini", "openrouter"),
    TaskType.REASONING: ("openrouter", "gemini", "ollama"),
    TaskType.FUNCTION_CALLING: ("gemini", "openrouter"),
}


class TaskRouter:
    """Maps a task category to an ordered list of backend names."""

    def __init__(self, registry: BackendRegistry, preferences: Optional[Dict[TaskType, Tuple[str, ...]]] = None):
        self.registry = registry
        self.preferences = preferences if preferences is not None else TASK_PREFERENCES

    def candidates(self, task_type: TaskType, sticky: Optional[str] = None, local_only: bool = False) -> List[str]:
        """Sticky backend first, then the task's preferences, de-duplicated.

        With ``local_only`` every non-local backend is dropped, sticky included.
        """
        if task_type == TaskType.GENERAL:
            return []
        ordered = ([sticky] if sticky else []) + list(self.preferences.get(task_type, ()))
        seen = set()
        result = []
        for name in ordered:
            if name in seen or name not in self.registry:
                continue
            if local_only and not self.registry[name].is_local:
                continue
            seen.add(name)
            result.append(name)
        return result

    async def select(
        self,
        task_type: TaskType,
        health: HealthCache,
        sticky: Optional[str] = None,
        local_only: bool = False,
    ) -> Optional[Backend]:
        for name in self.candidates(task_type, sticky, local_only=local_only):
            backend = self.registry[name]
            if await health.is_healthy(backend):
                return backend
        return None


class StrategyEngine:
    """Owns the routing strategy and sticky preferred backend; picks one backend per call."""

    def __init__(
        self,
        registry: BackendRegistry,
        health: HealthCache,
        strategy: RoutingStrategy = RoutingStrategy.CLOUD_FALLBACK,
        task_router: Optional[TaskRouter] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.registry = registry
        self.health = health
        self.strategy = strategy
        self.task_router = task_router or TaskRouter(registry)
        self.preferred_backend: Optional[str] = None
        self._metrics = metrics or metrics_collector

    async def select_backend(self, options: Optional[GenerateOptions] = None) -> Optional[Backend]:
        backend, reason = await self._select(options or GenerateOptions())
        if backend is None:
            logger.warning("No backend selectable", strategy=self.strategy.value)
            return None

        self.preferred_backend = backend.name
        self._metrics.record_selection(backend.name, self.strategy.value, reason)
        logger.info("Backend selected", backend=backend.name, strategy=self.strategy.value, reason=reason)
        return backend

    async def _select(self, options: GenerateOptions) -> Tuple[Optional[Backend], str]:
        local_only = self.strategy == RoutingStrategy.LOCAL_ONLY
        task_type = options.task_type
        if task_type is not None and task_type != TaskType.GENERAL:
            backend = await self.task_router.select(
                task_type, self.health, self.preferred_backend, local_only=local_only
            )
            if backend is not None:
                return backend, f"task:{task_type.value}"

        sticky = self.registry.get(self.preferred_backend) if self.preferred_backend else None
        if sticky is not None and local_only and not sticky.is_local:
            sticky = None
        if sticky is not None and await self.health.is_healthy(sticky):
            return sticky, "sticky"

        local = await self.first_healthy_local()
        if local is not None:
            return local, "local"

        if local_only:
            return None, "none"

        if self.strategy == RoutingStrategy.LOCAL_FIRST:
            cloud = self.registry.get_designated_cloud()
            if cloud is not None and await self.health.is_healthy(cloud):
                return cloud, "cloud"
            return None, "none"

        # cloud-fallback and hybrid: the aggregator surfaces its own errors at call time.
        # TODO: weight hybrid selection by task once per-backend quality data exists.
        return self.registry.get_aggregator(), "aggregator"

    async def first_healthy_local(self) -> Optional[Backend]:
        for backend in self.registry.local_backends():
            if await self.health.is_healthy(backend):
                return backend
        return None

    async def fallback_for(self, failed: Backend) -> Optional[Backend]:
        """The single alternate backend to retry after ``failed`` errored, if any."""
        if not self.strategy.allows_fallback:
            return None
        if failed.is_local:
            candidate = self.registry.get_aggregator()
        else:
            candidate = await self.first_healthy_local()
        if candidate is None or candidate.name == failed.name:
            return None
        return candidate
