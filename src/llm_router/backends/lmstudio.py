"""LM Studio backend (secondary local inference server)."""

import logging
from typing import Any, Dict, List

from llm_router.backends.base import (
    BackendKind,
    GenerateOptions,
    ModelDescriptor,
    detect_context_window,
    detect_quantization,
)
from llm_router.backends.openai_compat import OpenAICompatibleBackend
from llm_router.exceptions import BackendError

logger = logging.getLogger(__name__)


class LMStudioBackend(OpenAICompatibleBackend):
    """LM Studio's OpenAI-compatible server (default port 1234)."""

    name = "lmstudio"
    display_name = "LM Studio"
    kind = BackendKind.LOCAL

    def __init__(self, base_url: str = "http://localhost:1234/v1", **kwargs: Any):
        super().__init__(base_url, **kwargs)

    async def _probe(self) -> bool:
        await self._get_json("/models")
        return True

    async def list_models(self) -> List[ModelDescriptor]:
        try:
            data = await self._get_json("/models")
        except Exception as e:
            logger.error("Failed to fetch LM Studio models", extra={"error": str(e)})
            return []
        return self._parse_models(data)

    def _parse_models(self, data: Dict[str, Any]) -> List[ModelDescriptor]:
        models = data.get("data")
        descriptors = []
        for model in models if isinstance(models, list) else []:
            model_id = model.get("id") or model.get("name") or "unknown"
            name = model.get("name") or model_id
            descriptors.append(
                ModelDescriptor(
                    id=model_id,
                    name=name,
                    backend=self.name,
                    context_window=detect_context_window(
                        name, model.get("context_length") or model.get("max_context_length")
                    ),
                    quantization=detect_quantization(name),
                )
            )
        return descriptors

    async def _resolve_model(self, options: GenerateOptions) -> str:
        if options.model:
            return options.model
        models = self._parse_models(await self._get_json("/models"))
        if not models:
            raise BackendError("No model loaded in LM Studio", backend=self.name)
        return models[0].id
