__version__ = "1.0.0"

from llm_router.backends import (  # noqa: E402
    Backend,
    BackendKind,
    GenerateOptions,
    GenerateResponse,
    ModelDescriptor,
    StreamChunk,
    TaskType,
)
from llm_router.exceptions import (  # noqa: E402
    BackendError,
    BackendHTTPError,
    ConfigurationError,
    NoProviderAvailable,
    RouterError,
    StreamParseError,
    TransportError,
)
from llm_router.orchestrator import (  # noqa: E402
    BackendRegistry,
    GenerationStream,
    HealthCache,
    LLMRouter,
    RoutingStrategy,
    build_default_registry,
)
from llm_router.usage import InMemoryUsageTracker, UsageTracker  # noqa: E402

__all__ = [
    "__version__",
    "Backend",
    "BackendError",
    "BackendHTTPError",
    "BackendKind",
    "BackendRegistry",
    "ConfigurationError",
    "GenerateOptions",
    "GenerateResponse",
    "GenerationStream",
    "HealthCache",
    "InMemoryUsageTracker",
    "LLMRouter",
    "ModelDescriptor",
    "NoProviderAvailable",
    "RouterError",
    "RoutingStrategy",
    "StreamChunk",
    "StreamParseError",
    "TaskType",
    "TransportError",
    "UsageTracker",
    "build_default_registry",
]
