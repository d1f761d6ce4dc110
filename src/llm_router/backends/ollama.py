"""Ollama backend (primary local inference server)."""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from llm_router.backends.base import (
    BackendKind,
    GenerateOptions,
    GenerateResponse,
    ModelDescriptor,
    StreamChunk,
    detect_context_window,
    detect_quantization,
    format_size,
)
from llm_router.backends.http import HTTPBackend
from llm_router.exceptions import BackendError

logger = logging.getLogger(__name__)

CODE_MODEL_HINTS = ("coder", "code", "deepseek")


class OllamaBackend(HTTPBackend):
    """Ollama server at ``/api`` (default port 11434)."""

    name = "ollama"
    display_name = "Ollama"
    kind = BackendKind.LOCAL

    def __init__(self, base_url: str = "http://localhost:11434/api", **kwargs: Any):
        super().__init__(base_url, **kwargs)

    async def _probe(self) -> bool:
        await self._get_json("/tags")
        return True

    async def list_models(self) -> List[ModelDescriptor]:
        try:
            data = await self._get_json("/tags")
        except Exception as e:
            logger.error("Failed to fetch Ollama models", extra={"error": str(e)})
            return []
        return self._parse_models(data)

    def _parse_models(self, data: Dict[str, Any]) -> List[ModelDescriptor]:
        models = data.get("models")
        descriptors = []
        for model in models if isinstance(models, list) else []:
            name = model.get("name") or "unknown"
            details = model.get("details") or {}
            descriptors.append(
                ModelDescriptor(
                    id=name,
                    name=name,
                    backend=self.name,
                    size=format_size(model.get("size")),
                    context_window=detect_context_window(name, details.get("context_length")),
                    description=model.get("digest"),
                    quantization=details.get("quantization_level") or detect_quantization(name),
                )
            )
        return descriptors

    async def _default_model(self) -> str:
        """Prefer a code model, otherwise the first installed model.

        Transport and HTTP errors from the listing propagate so the retry
        policy and failover see them.
        """
        models = self._parse_models(await self._get_json("/tags"))
        if not models:
            raise BackendError(
                'No Ollama models available. Run "ollama pull <model>" first.', backend=self.name
            )
        for model in models:
            if any(hint in model.name for hint in CODE_MODEL_HINTS):
                return model.id
        return models[0].id

    async def _payload(self, prompt: str, options: GenerateOptions, stream: bool) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": options.model or await self._default_model(),
            "prompt": prompt,
            "stream": stream,
            "options": {
                "temperature": options.effective_temperature,
                "num_predict": options.effective_max_tokens,
            },
        }
        if options.system_prompt:
            payload["system"] = options.system_prompt
        return payload

    async def _generate_once(self, prompt: str, options: GenerateOptions) -> GenerateResponse:
        payload = await self._payload(prompt, options, stream=False)
        response = await self._request("POST", "/generate", json_body=payload)
        data = self._json_object(response)
        return GenerateResponse(
            text=data.get("response") or "",
            tokens_used=data.get("eval_count") or 0,
            finish_reason="stop" if data.get("done") else "length",
        )

    async def stream_generate(
        self, prompt: str, options: Optional[GenerateOptions] = None
    ) -> AsyncIterator[StreamChunk]:
        payload = await self._payload(prompt, options or GenerateOptions(), stream=True)
        async with self._stream("/generate", payload) as response:
            async for line in response.aiter_lines():
                if not line.strip():
                    continue
                frame = self._decode_frame(line)
                if frame is None:
                    continue
                text = frame.get("response") or ""
                if text:
                    yield StreamChunk(text=text)
                if frame.get("done"):
                    yield StreamChunk.final()
                    return
        yield StreamChunk.final()
