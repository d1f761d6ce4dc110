"""Telemetry: structured logging and routing metrics."""

from llm_router.telemetry.logger import RequestContext, request_id_var, setup_logging
from llm_router.telemetry.metrics import MetricsCollector, metrics_collector

__all__ = ["RequestContext", "request_id_var", "setup_logging", "MetricsCollector", "metrics_collector"]
