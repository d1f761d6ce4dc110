"""Router orchestrating generation across backends with one-step failover."""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, Dict, List, Optional

import structlog

from llm_router.backends.base import (
    Backend,
    GenerateOptions,
    GenerateResponse,
    ModelDescriptor,
    StreamChunk,
)
from llm_router.config.settings import Settings
from llm_router.config.store import StrategyStore
from llm_router.exceptions import BackendError, ConfigurationError, NoProviderAvailable
from llm_router.orchestrator.health_cache import HealthCache
from llm_router.orchestrator.registry import BackendRegistry, build_default_registry
from llm_router.orchestrator.router import RoutingStrategy, StrategyEngine, TaskRouter
from llm_router.orchestrator.streaming import GenerationStream
from llm_router.telemetry.logger import RequestContext, request_id_var
from llm_router.telemetry.metrics import MetricsCollector, metrics_collector
from llm_router.usage import UsageTracker

logger = structlog.get_logger()


@dataclass
class BackendStatus:
    """Discovery result for one backend."""

    backend: str
    display_name: str
    kind: str
    available: bool
    models: List[ModelDescriptor] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "backend": self.backend,
            "display_name": self.display_name,
            "kind": self.kind,
            "available": self.available,
            "models": [model.model_dump(exclude_none=True) for model in self.models],
        }


class LLMRouter:
    """Routes generation requests to one backend per call.

    Owns the registry, health cache, strategy and sticky preferred backend;
    nothing here is module-global, so independent routers can coexist.
    """

    def __init__(
        self,
        registry: BackendRegistry,
        usage_tracker: Optional[UsageTracker] = None,
        strategy_store: Optional[StrategyStore] = None,
        health_cache: Optional[HealthCache] = None,
        strategy: Optional[RoutingStrategy] = None,
        task_router: Optional[TaskRouter] = None,
        stream_fallback_after_output: bool = True,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.registry = registry
        self.usage_tracker = usage_tracker
        self.strategy_store = strategy_store
        self.health = health_cache or HealthCache()
        self.stream_fallback_after_output = stream_fallback_after_output
        self._metrics = metrics or metrics_collector
        self.engine = StrategyEngine(
            registry,
            self.health,
            strategy=strategy or self._load_strategy(),
            task_router=task_router,
            metrics=self._metrics,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        usage_tracker: Optional[UsageTracker] = None,
        registry: Optional[BackendRegistry] = None,
    ) -> "LLMRouter":
        """Build a router with the default backends, persisted strategy and cache TTL."""
        strategy = RoutingStrategy.parse(settings.strategy)
        if settings.strategy and strategy is None:
            logger.warning("Ignoring invalid LLM_STRATEGY", value=settings.strategy)
        return cls(
            registry or build_default_registry(settings),
            usage_tracker=usage_tracker,
            strategy_store=StrategyStore(settings.state_file),
            health_cache=HealthCache(ttl=settings.health_cache_ttl),
            strategy=strategy,
            stream_fallback_after_output=settings.stream_fallback_after_output,
        )

    def _load_strategy(self) -> RoutingStrategy:
        if self.strategy_store is None:
            return RoutingStrategy.default()
        try:
            saved = self.strategy_store.load()
        except OSError as e:
            logger.warning("Failed to load strategy", error=str(e))
            return RoutingStrategy.default()
        strategy = RoutingStrategy.parse(saved)
        if strategy is None:
            if saved is not None:
                logger.warning("Ignoring invalid saved strategy", value=saved)
            return RoutingStrategy.default()
        return strategy

    # Strategy and sticky state

    def get_strategy(self) -> RoutingStrategy:
        return self.engine.strategy

    def set_strategy(self, strategy: RoutingStrategy | str) -> RoutingStrategy:
        """Change the strategy and persist it."""
        parsed = RoutingStrategy.parse(strategy)
        if parsed is None:
            raise ConfigurationError(
                f"Unknown strategy {strategy!r}; expected one of "
                + ", ".join(s.value for s in RoutingStrategy)
            )
        self.engine.strategy = parsed
        if self.strategy_store is not None:
            try:
                self.strategy_store.save(parsed.value)
            except OSError as e:
                logger.warning("Failed to persist strategy", strategy=parsed.value, error=str(e))
        logger.info("Strategy changed", strategy=parsed.value)
        return parsed

    def get_preferred_backend(self) -> Optional[str]:
        return self.engine.preferred_backend

    def set_preferred_backend(self, name: Optional[str]) -> None:
        """Force the sticky backend, or clear it with ``None``."""
        if name is not None and name not in self.registry:
            raise ConfigurationError(f"Unknown backend: {name}")
        self.engine.preferred_backend = name

    def set_studio_context(self, active: bool) -> None:
        """Pin the designated cloud backend while a studio session is active.

        Leaving the session clears the pin unless another backend has since
        become sticky.
        """
        cloud = self.registry.get_designated_cloud()
        if cloud is None:
            logger.warning("Studio context ignored: no designated cloud backend")
            return
        if active:
            self.engine.preferred_backend = cloud.name
        elif self.engine.preferred_backend == cloud.name:
            self.engine.preferred_backend = None
        logger.info("Studio context changed", active=active, backend=cloud.name)

    def get_backend(self, name: str) -> Optional[Backend]:
        return self.registry.get(name)

    async def select_backend(self, options: Optional[GenerateOptions] = None) -> Optional[Backend]:
        return await self.engine.select_backend(options)

    # Generation

    async def generate(self, prompt: str, options: Optional[GenerateOptions] = None) -> GenerateResponse:
        """Generate with the selected backend, retrying once on a fallback backend.

        Log lines of the call share one request id; a caller's id is kept.
        """
        with RequestContext(request_id_var.get() or None):
            return await self._generate(prompt, options or GenerateOptions())

    async def _generate(self, prompt: str, options: GenerateOptions) -> GenerateResponse:
        backend = await self.engine.select_backend(options)
        if backend is None:
            raise NoProviderAvailable(self.registry.configurable_names())

        try:
            return await self._invoke(backend, prompt, options)
        except BackendError as e:
            self._metrics.record_error(backend.name, e)
            logger.error("Backend failed", backend=backend.name, error=str(e))
            fallback = await self.engine.fallback_for(backend)
            if fallback is None:
                raise

        logger.info("Falling back", failed=backend.name, fallback=fallback.name)
        self._metrics.record_fallback(backend.name, fallback.name, "generate")
        try:
            return await self._invoke(fallback, prompt, options)
        except BackendError as e:
            self._metrics.record_error(fallback.name, e)
            logger.error("Fallback backend failed", backend=fallback.name, error=str(e))
            raise

    async def _invoke(self, backend: Backend, prompt: str, options: GenerateOptions) -> GenerateResponse:
        start = time.perf_counter()
        response = await backend.generate(prompt, options)
        self._metrics.record_generation(
            backend.name, "generate", time.perf_counter() - start, response.tokens_used
        )
        if response.tokens_used and response.tokens_used > 0:
            self._record_usage(backend, response.tokens_used, options.model)
        return response

    def _record_usage(self, backend: Backend, tokens: int, model: Optional[str]) -> None:
        if self.usage_tracker is None:
            return
        try:
            self.usage_tracker.record_usage(backend.name, tokens, None, model)
        except Exception as e:
            logger.warning("Failed to record token usage", backend=backend.name, error=str(e))

    # Streaming

    def stream_generate(self, prompt: str, options: Optional[GenerateOptions] = None) -> GenerationStream:
        """Stream with the selected backend; see ``_stream_chunks`` for failover."""
        return GenerationStream(
            self._stream_chunks(prompt, options or GenerateOptions()),
            request_id=request_id_var.get() or None,
        )

    async def _stream_chunks(self, prompt: str, options: GenerateOptions) -> AsyncGenerator[StreamChunk, None]:
        backend = await self.engine.select_backend(options)
        if backend is None:
            raise NoProviderAvailable(self.registry.configurable_names())

        fell_back = False
        yielded_text = False
        while True:
            chunks = backend.stream_generate(prompt, options)
            start = time.perf_counter()
            try:
                async for chunk in chunks:
                    if chunk.text:
                        yielded_text = True
                        yield StreamChunk(text=chunk.text)
                    if chunk.done:
                        break
                self._metrics.record_generation(backend.name, "stream", time.perf_counter() - start)
                yield StreamChunk.final()
                return
            except BackendError as e:
                self._metrics.record_error(backend.name, e)
                logger.error("Streaming backend failed", backend=backend.name, error=str(e))
                if fell_back or (yielded_text and not self.stream_fallback_after_output):
                    raise
                fallback = await self.engine.fallback_for(backend)
                if fallback is None:
                    raise
                # Partial text already yielded stays with the consumer; the
                # fallback restarts from the unchanged prompt.
                logger.info(
                    "Streaming falling back",
                    failed=backend.name,
                    fallback=fallback.name,
                    partial_output=yielded_text,
                )
                self._metrics.record_fallback(backend.name, fallback.name, "stream")
                fell_back = True
                backend = fallback
            finally:
                await chunks.aclose()

    # Discovery

    async def discover_backends(self) -> List[BackendStatus]:
        """Health of every backend and, for healthy ones, their models."""

        async def discover(backend: Backend) -> BackendStatus:
            available = await self.health.is_healthy(backend)
            models = await backend.list_models() if available else []
            return BackendStatus(
                backend=backend.name,
                display_name=backend.display_name,
                kind=backend.kind.value,
                available=available,
                models=models,
            )

        return list(await asyncio.gather(*(discover(b) for b in self.registry.values())))

    async def list_all_models(self) -> List[ModelDescriptor]:
        models: List[ModelDescriptor] = []
        for status in await self.discover_backends():
            models.extend(status.models)
        return models

    async def aclose(self) -> None:
        await self.registry.aclose()

    async def __aenter__(self) -> "LLMRouter":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False
