"""Routing metrics with Prometheus integration."""

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest


class MetricsCollector:
    """Counters and histograms describing routing decisions."""

    def __init__(self, namespace: str = "llm_router", registry: CollectorRegistry | None = None):
        """Initialize metrics collector."""
        self.namespace = namespace
        self.registry = registry or CollectorRegistry()
        self.enabled = True

        self.selections = Counter(
            f"{namespace}_selections_total",
            "Backends selected for a request",
            ["backend", "strategy", "reason"],
            registry=self.registry,
        )
        self.fallbacks = Counter(
            f"{namespace}_fallbacks_total",
            "Fallback attempts after a backend failure",
            ["failed_backend", "fallback_backend", "mode"],
            registry=self.registry,
        )
        self.probes = Counter(
            f"{namespace}_health_probes_total",
            "Health probes issued",
            ["backend", "healthy"],
            registry=self.registry,
        )
        self.backend_errors = Counter(
            f"{namespace}_backend_errors_total",
            "Backend generation errors",
            ["backend", "error_type"],
            registry=self.registry,
        )
        self.tokens = Counter(
            f"{namespace}_tokens_total",
            "Tokens reported by successful generations",
            ["backend"],
            registry=self.registry,
        )
        self.latency = Histogram(
            f"{namespace}_generation_latency_seconds",
            "Backend generation latency",
            ["backend", "mode"],
            buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
            registry=self.registry,
        )

    def record_selection(self, backend: str, strategy: str, reason: str):
        if self.enabled:
            self.selections.labels(backend=backend, strategy=strategy, reason=reason).inc()

    def record_fallback(self, failed_backend: str, fallback_backend: str, mode: str):
        if self.enabled:
            self.fallbacks.labels(
                failed_backend=failed_backend, fallback_backend=fallback_backend, mode=mode
            ).inc()

    def record_probe(self, backend: str, healthy: bool):
        if self.enabled:
            self.probes.labels(backend=backend, healthy=str(healthy).lower()).inc()

    def record_error(self, backend: str, error: Exception):
        if self.enabled:
            self.backend_errors.labels(backend=backend, error_type=type(error).__name__).inc()

    def record_generation(self, backend: str, mode: str, latency_s: float, tokens: int | None = None):
        if not self.enabled:
            return
        self.latency.labels(backend=backend, mode=mode).observe(latency_s)
        if tokens:
            self.tokens.labels(backend=backend).inc(tokens)

    def export(self) -> bytes:
        """Render metrics in Prometheus text format."""
        return generate_latest(self.registry)


metrics_collector = MetricsCollector()
