"""Google Gemini backends (cloud)."""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from llm_router.backends.base import (
    BackendKind,
    GenerateOptions,
    GenerateResponse,
    ModelDescriptor,
    StreamChunk,
)
from llm_router.backends.http import HTTPBackend, sse_payload
from llm_router.exceptions import BackendError

logger = logging.getLogger(__name__)


def _candidate_text(frame: Dict[str, Any]) -> str:
    candidates = frame.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts)


class GeminiBackend(HTTPBackend):
    """Gemini ``generateContent`` REST API, keyed by query parameter."""

    name = "gemini"
    display_name = "Gemini"
    kind = BackendKind.CLOUD

    def __init__(
        self,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        api_key: Optional[str] = None,
        default_model: str = "gemini-2.0-flash-exp",
        **kwargs: Any,
    ):
        super().__init__(base_url, api_key=api_key, **kwargs)
        self.default_model = default_model

    def _key_params(self, **extra: str) -> Dict[str, str]:
        if not self.api_key:
            raise BackendError(f"{self.display_name} API key not configured", backend=self.name)
        return {"key": self.api_key, **extra}

    async def _probe(self) -> bool:
        if not self.api_key:
            return False
        await self._get_json("/models", params=self._key_params())
        return True

    async def list_models(self) -> List[ModelDescriptor]:
        if not self.api_key:
            return []
        try:
            data = await self._get_json("/models", params=self._key_params())
        except Exception as e:
            logger.error(f"Failed to fetch {self.display_name} models", extra={"error": str(e)})
            return []

        models = data.get("models") if isinstance(data, dict) else None
        descriptors = []
        for model in models if isinstance(models, list) else []:
            if "generateContent" not in model.get("supportedGenerationMethods", []):
                continue
            model_id = model.get("name", "").removeprefix("models/")
            descriptors.append(
                ModelDescriptor(
                    id=model_id,
                    name=model.get("displayName") or model_id,
                    backend=self.name,
                    context_window=model.get("inputTokenLimit"),
                    description=model.get("description"),
                )
            )
        return descriptors

    def _payload(self, prompt: str, options: GenerateOptions) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": options.effective_temperature,
                "maxOutputTokens": options.effective_max_tokens,
            },
        }
        if options.system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": options.system_prompt}]}
        return payload

    async def _generate_once(self, prompt: str, options: GenerateOptions) -> GenerateResponse:
        model = options.model or self.default_model
        response = await self._request(
            "POST",
            f"/models/{model}:generateContent",
            json_body=self._payload(prompt, options),
            params=self._key_params(),
        )
        data = self._json_object(response)
        candidates = data.get("candidates") or [{}]
        finish_reason = candidates[0].get("finishReason")
        return GenerateResponse(
            text=_candidate_text(data),
            tokens_used=(data.get("usageMetadata") or {}).get("totalTokenCount"),
            finish_reason=finish_reason.lower() if finish_reason else None,
        )

    async def stream_generate(
        self, prompt: str, options: Optional[GenerateOptions] = None
    ) -> AsyncIterator[StreamChunk]:
        options = options or GenerateOptions()
        model = options.model or self.default_model
        async with self._stream(
            f"/models/{model}:streamGenerateContent",
            self._payload(prompt, options),
            params=self._key_params(alt="sse"),
        ) as response:
            async for line in response.aiter_lines():
                data = sse_payload(line)
                if not data:
                    continue
                frame = self._decode_frame(data)
                if frame is None:
                    continue
                text = _candidate_text(frame)
                if text:
                    yield StreamChunk(text=text)
        # Gemini ends the SSE stream without a sentinel frame.
        yield StreamChunk.final()


class NotebookLMBackend(GeminiBackend):
    """NotebookLM-style grounded generation served through the Gemini API."""

    name = "notebooklm"
    display_name = "NotebookLM"
    kind = BackendKind.CLOUD
