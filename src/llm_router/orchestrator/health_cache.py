"""Short-TTL memoization of backend reachability."""

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Dict, Optional

import structlog

from llm_router.backends.base import Backend
from llm_router.telemetry.metrics import MetricsCollector, metrics_collector

logger = structlog.get_logger()

DEFAULT_TTL = 5.0


@dataclass(frozen=True)
class HealthCacheEntry:
    """Result of one probe."""

    backend_name: str
    is_healthy: bool
    probed_at: float


class HealthCache:
    """Caches probe results per backend for ``ttl`` seconds.

    Failed probes are cached too, so a backend known to be down is not
    re-probed inside the window. Concurrent lookups for the same backend
    share one in-flight probe; lookups for different backends are
    independent.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.ttl = ttl
        self._clock = clock
        self._metrics = metrics or metrics_collector
        self._entries: Dict[str, HealthCacheEntry] = {}
        self._inflight: Dict[str, asyncio.Task] = {}

    def get(self, backend_name: str) -> Optional[HealthCacheEntry]:
        """Return the entry if it is still fresh; stale entries count as absent."""
        entry = self._entries.get(backend_name)
        if entry is None or self._clock() - entry.probed_at >= self.ttl:
            return None
        return entry

    async def is_healthy(self, backend: Backend) -> bool:
        entry = self.get(backend.name)
        if entry is not None:
            return entry.is_healthy

        task = self._inflight.get(backend.name)
        if task is None:
            task = asyncio.ensure_future(self._probe(backend))
            self._inflight[backend.name] = task
        # A cancelled caller must not cancel the probe other callers share.
        return await asyncio.shield(task)

    async def _probe(self, backend: Backend) -> bool:
        try:
            try:
                healthy = await backend.health_check()
            except Exception as e:
                logger.warning("Health probe raised", backend=backend.name, error=str(e))
                healthy = False
            self._entries[backend.name] = HealthCacheEntry(
                backend_name=backend.name,
                is_healthy=healthy,
                probed_at=self._clock(),
            )
            self._metrics.record_probe(backend.name, healthy)
            logger.debug("Health probed", backend=backend.name, healthy=healthy)
            return healthy
        finally:
            self._inflight.pop(backend.name, None)

    def invalidate(self, backend_name: Optional[str] = None) -> None:
        """Drop one entry, or all entries when no name is given."""
        if backend_name is None:
            self._entries.clear()
        else:
            self._entries.pop(backend_name, None)

    def snapshot(self) -> Dict[str, HealthCacheEntry]:
        """Fresh entries only."""
        return {name: entry for name in list(self._entries) if (entry := self.get(name)) is not None}
