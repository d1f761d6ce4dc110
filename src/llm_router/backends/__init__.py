from .base import (
    Backend,
    BackendKind,
    GenerateOptions,
    GenerateResponse,
    ModelDescriptor,
    StreamChunk,
    TaskType,
)
from .gemini import GeminiBackend, NotebookLMBackend
from .lmstudio import LMStudioBackend
from .ollama import OllamaBackend
from .openrouter import OpenRouterBackend
from .retry import RetryPolicy

__all__ = [
    "Backend",
    "BackendKind",
    "GenerateOptions",
    "GenerateResponse",
    "ModelDescriptor",
    "StreamChunk",
    "TaskType",
    "GeminiBackend",
    "NotebookLMBackend",
    "LMStudioBackend",
    "OllamaBackend",
    "OpenRouterBackend",
    "RetryPolicy",
]
