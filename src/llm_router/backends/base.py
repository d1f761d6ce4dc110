"""
Backend abstract class and common models for text-generation backends.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import AsyncIterator, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from llm_router.exceptions import ProbeFailure

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.91
DEFAULT_MAX_TOKENS = 2048


class BackendKind(str, Enum):
    """Where a backend runs."""

    LOCAL = "local"
    CLOUD = "cloud"


class TaskType(str, Enum):
    """Task categories used for task-aware routing."""

    GENERAL = "general"
    CODING = "coding"
    VISION = "vision"
    REASONING = "reasoning"
    FUNCTION_CALLING = "function-calling"


class GenerateOptions(BaseModel):
    """Options for a single generation request."""

    model: Optional[str] = Field(default=None, description="Model identifier")
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0, description="Sampling temperature")
    max_tokens: Optional[int] = Field(default=None, gt=0, description="Maximum tokens in response")
    system_prompt: Optional[str] = Field(default=None, description="System prompt")
    task_type: Optional[TaskType] = Field(default=None, description="Task category for routing")

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "model": "qwen2.5-coder:7b",
                "temperature": 0.7,
                "max_tokens": 1024,
                "task_type": "coding",
            }
        },
    )

    @property
    def effective_temperature(self) -> float:
        return DEFAULT_TEMPERATURE if self.temperature is None else self.temperature

    @property
    def effective_max_tokens(self) -> int:
        return self.max_tokens or DEFAULT_MAX_TOKENS


class GenerateResponse(BaseModel):
    """Response from a non-streaming generation."""

    text: str = Field(..., description="Generated text")
    tokens_used: Optional[int] = Field(default=None, description="Total tokens reported by the backend")
    finish_reason: Optional[str] = Field(default=None, description="Reason the generation stopped")


class StreamChunk(BaseModel):
    """A chunk of a streamed response."""

    text: str = Field(default="", description="Chunk text")
    done: bool = Field(default=False, description="Whether this is the final chunk")

    model_config = ConfigDict(frozen=True)

    @classmethod
    def final(cls) -> "StreamChunk":
        return cls(text="", done=True)


class ModelDescriptor(BaseModel):
    """A model offered by a backend."""

    id: str = Field(..., description="Model identifier")
    name: str = Field(..., description="Display name")
    backend: str = Field(..., description="Backend name")
    size: Optional[str] = Field(default=None, description="Size on disk")
    context_window: Optional[int] = Field(default=None, description="Context window in tokens")
    description: Optional[str] = Field(default=None, description="Model description")
    quantization: Optional[str] = Field(default=None, description="Quantization level")


def detect_context_window(name: str, reported: Optional[int] = None) -> int:
    """Context window from metadata, else guessed from the parameter count in the name."""
    if reported:
        return reported
    lower = name.lower()
    if "32b" in lower:
        return 32768
    if "16b" in lower or "14b" in lower:
        return 16384
    if "7b" in lower or "8b" in lower:
        return 8192
    return 4096


def detect_quantization(name: str) -> Optional[str]:
    lower = name.lower()
    for level in ("q8", "q6", "q5", "q4", "q3", "q2"):
        if level in lower:
            return level.upper()
    return None


def format_size(num_bytes: Optional[int]) -> Optional[str]:
    if not num_bytes:
        return None
    gb = num_bytes / (1024 ** 3)
    if gb < 1:
        return f"{num_bytes / (1024 ** 2):.0f}MB"
    return f"{gb:.1f}GB"


class Backend(ABC):
    """Capability contract every backend implements.

    Subclasses set ``name``, ``display_name`` and ``kind`` and implement
    ``_probe``, ``list_models``, ``generate`` and ``stream_generate``.
    """

    name: str = ""
    display_name: str = ""
    kind: BackendKind = BackendKind.LOCAL

    def __init__(self, health_check_timeout: float = 5.0, request_timeout: float = 30.0):
        """
        Initialize the backend.

        Args:
            health_check_timeout: Upper bound for a health probe in seconds
            request_timeout: Upper bound for a generation request in seconds
        """
        self.health_check_timeout = health_check_timeout
        self.request_timeout = request_timeout

    @property
    def is_local(self) -> bool:
        return self.kind == BackendKind.LOCAL

    async def health_check(self) -> bool:
        """Probe reachability. Never raises; any failure reports ``False``."""
        try:
            healthy = await asyncio.wait_for(self._probe(), timeout=self.health_check_timeout)
        except Exception as e:
            failure = e if isinstance(e, ProbeFailure) else ProbeFailure(f"{type(e).__name__}: {e}")
            logger.warning(
                f"Backend {self.name} health check failed",
                extra={"backend": self.name, "error": str(failure)},
            )
            return False
        logger.info(
            f"Backend {self.name} health check: {'online' if healthy else 'offline'}",
            extra={"backend": self.name, "healthy": healthy},
        )
        return bool(healthy)

    @abstractmethod
    async def _probe(self) -> bool:
        """
        Perform one reachability check.

        Returns:
            bool: True if the backend can serve requests

        Raises:
            ProbeFailure: Or any transport exception; both are swallowed by
                ``health_check``
        """

    @abstractmethod
    async def list_models(self) -> List[ModelDescriptor]:
        """
        List the models this backend offers. Best-effort: returns an empty
        list on failure.
        """

    @abstractmethod
    async def generate(self, prompt: str, options: Optional[GenerateOptions] = None) -> GenerateResponse:
        """
        Generate a completion.

        Args:
            prompt: User prompt
            options: Generation options

        Returns:
            GenerateResponse: The completion

        Raises:
            BackendError: On transport failure or a non-success HTTP status
        """

    @abstractmethod
    def stream_generate(
        self, prompt: str, options: Optional[GenerateOptions] = None
    ) -> AsyncIterator[StreamChunk]:
        """
        Stream a completion as it is produced.

        Yields:
            StreamChunk: Text chunks, then one final ``done=True`` chunk

        Raises:
            BackendError: If the request or the stream fails
        """

    async def aclose(self) -> None:
        """Release network resources."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r} kind={self.kind.value}>"
