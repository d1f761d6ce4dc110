"""OpenRouter backend (cloud aggregator)."""

import logging
from typing import Any, Dict, List, Optional

from llm_router.backends.base import (
    BackendKind,
    GenerateOptions,
    ModelDescriptor,
    detect_context_window,
)
from llm_router.backends.openai_compat import OpenAICompatibleBackend
from llm_router.exceptions import BackendError

logger = logging.getLogger(__name__)

CURATED_FAMILIES = ("gpt-4", "claude", "llama", "mistral", "qwen")
MAX_LISTED_MODELS = 20


class OpenRouterBackend(OpenAICompatibleBackend):
    """OpenRouter's unified API; reaches many hosted model families."""

    name = "openrouter"
    display_name = "OpenRouter"
    kind = BackendKind.CLOUD

    def __init__(
        self,
        base_url: str = "https://openrouter.ai/api/v1",
        api_key: Optional[str] = None,
        default_model: str = "openai/gpt-3.5-turbo",
        **kwargs: Any,
    ):
        super().__init__(base_url, api_key=api_key, **kwargs)
        self.default_model = default_model

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        headers["X-Title"] = "llm-router"
        return headers

    async def _probe(self) -> bool:
        if not self.api_key:
            return False
        await self._get_json("/models")
        return True

    async def list_models(self) -> List[ModelDescriptor]:
        """A curated subset of popular model families."""
        if not self.api_key:
            return []
        try:
            data = await self._get_json("/models")
        except Exception as e:
            logger.error("Failed to fetch OpenRouter models", extra={"error": str(e)})
            return []

        models = data.get("data") if isinstance(data, dict) else None
        curated = [
            model
            for model in (models if isinstance(models, list) else [])
            if any(family in model.get("id", "") for family in CURATED_FAMILIES)
        ][:MAX_LISTED_MODELS]
        return [
            ModelDescriptor(
                id=model["id"],
                name=model.get("name") or model["id"],
                backend=self.name,
                context_window=detect_context_window(model["id"], model.get("context_length")),
                description=model.get("description"),
            )
            for model in curated
        ]

    async def _resolve_model(self, options: GenerateOptions) -> str:
        if not self.api_key:
            raise BackendError("OpenRouter API key not configured", backend=self.name)
        return options.model or self.default_model
