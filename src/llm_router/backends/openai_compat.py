"""Backends speaking the OpenAI chat-completions wire format."""

import logging
from abc import abstractmethod
from typing import Any, AsyncIterator, Dict, Optional

from llm_router.backends.base import GenerateOptions, GenerateResponse, StreamChunk
from llm_router.backends.http import SSE_DONE, HTTPBackend, chat_messages, sse_payload

logger = logging.getLogger(__name__)


class OpenAICompatibleBackend(HTTPBackend):
    """``/chat/completions`` with SSE streaming terminated by ``[DONE]``."""

    @abstractmethod
    async def _resolve_model(self, options: GenerateOptions) -> str:
        """Model id to send; raises ``BackendError`` when none can be chosen."""

    async def _payload(self, prompt: str, options: GenerateOptions, stream: bool) -> Dict[str, Any]:
        return {
            "model": await self._resolve_model(options),
            "messages": chat_messages(prompt, options),
            "temperature": options.effective_temperature,
            "max_tokens": options.effective_max_tokens,
            "stream": stream,
        }

    async def _generate_once(self, prompt: str, options: GenerateOptions) -> GenerateResponse:
        payload = await self._payload(prompt, options, stream=False)
        response = await self._request("POST", "/chat/completions", json_body=payload)
        data = self._json_object(response)

        choices = data.get("choices") or [{}]
        choice = choices[0]
        usage = data.get("usage") or {}
        return GenerateResponse(
            text=(choice.get("message") or {}).get("content") or "",
            tokens_used=usage.get("total_tokens"),
            finish_reason=choice.get("finish_reason"),
        )

    async def stream_generate(
        self, prompt: str, options: Optional[GenerateOptions] = None
    ) -> AsyncIterator[StreamChunk]:
        payload = await self._payload(prompt, options or GenerateOptions(), stream=True)
        async with self._stream("/chat/completions", payload) as response:
            async for line in response.aiter_lines():
                data = sse_payload(line)
                if data is None:
                    continue
                if data == SSE_DONE:
                    yield StreamChunk.final()
                    return
                frame = self._decode_frame(data)
                if frame is None:
                    continue
                choices = frame.get("choices") or [{}]
                text = (choices[0].get("delta") or {}).get("content") or ""
                if text:
                    yield StreamChunk(text=text)
        yield StreamChunk.final()
