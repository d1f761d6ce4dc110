"""Backend selection, failover and streaming."""

from llm_router.orchestrator.health_cache import HealthCache, HealthCacheEntry
from llm_router.orchestrator.orchestrator import BackendStatus, LLMRouter
from llm_router.orchestrator.registry import BackendRegistry, build_default_registry
from llm_router.orchestrator.router import (
    TASK_PREFERENCES,
    RoutingStrategy,
    StrategyEngine,
    TaskRouter,
)
from llm_router.orchestrator.streaming import GenerationStream

__all__ = [
    "BackendRegistry",
    "BackendStatus",
    "GenerationStream",
    "HealthCache",
    "HealthCacheEntry",
    "LLMRouter",
    "RoutingStrategy",
    "StrategyEngine",
    "TASK_PREFERENCES",
    "TaskRouter",
    "build_default_registry",
]
