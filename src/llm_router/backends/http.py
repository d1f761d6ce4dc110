"""Shared HTTP transport for backends built on httpx."""

import json
import logging
from abc import abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from llm_router.backends.base import Backend, GenerateOptions, GenerateResponse
from llm_router.backends.retry import RetryPolicy
from llm_router.exceptions import BackendHTTPError, StreamParseError, TransportError

logger = logging.getLogger(__name__)

SSE_PREFIX = "data: "
SSE_DONE = "[DONE]"


class HTTPBackend(Backend):
    """Backend talking JSON over HTTP.

    Translates httpx failures into ``TransportError`` and non-2xx answers
    into ``BackendHTTPError``; ``generate`` runs through the backend's
    ``RetryPolicy``.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        health_check_timeout: float = 5.0,
        request_timeout: float = 30.0,
        retry_policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(health_check_timeout=health_check_timeout, request_timeout=request_timeout)
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.retry_policy = retry_policy or RetryPolicy.no_retry()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.request_timeout),
                headers=self._headers(),
                transport=self._transport,
            )
        return self._client

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    def _transport_error(self, error: httpx.HTTPError) -> TransportError:
        if isinstance(error, httpx.TimeoutException):
            return TransportError(f"{self.display_name} request timed out", backend=self.name, timed_out=True)
        return TransportError(f"{self.display_name} connection failed: {error}", backend=self.name)

    def _status_error(self, response: httpx.Response) -> BackendHTTPError:
        body = response.text or response.reason_phrase
        return BackendHTTPError(
            f"{self.display_name} API error: {response.status_code} - {body}",
            backend=self.name,
            status=response.status_code,
        )

    async def _request(
        self,
        method: str,
        path: str,
        json_body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        client = self._get_client()
        try:
            response = await client.request(
                method,
                path,
                json=json_body,
                params=params,
                timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
            )
        except httpx.HTTPError as e:
            raise self._transport_error(e) from e

        if response.is_error:
            raise self._status_error(response)
        return response

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET bounded by the health-check timeout, for probes and model listings."""
        response = await self._request("GET", path, params=params, timeout=self.health_check_timeout)
        return self._json_object(response)

    def _json_object(self, response: httpx.Response) -> Dict[str, Any]:
        """Decode a 2xx body that must be a JSON object.

        Proxies and captive portals answer 200 with HTML; that surfaces as a
        ``BackendHTTPError`` so failover still applies.
        """
        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            raise BackendHTTPError(
                f"{self.display_name} returned an invalid response body: {response.text[:200]}",
                backend=self.name,
                status=response.status_code,
            )
        return data

    @asynccontextmanager
    async def _stream(
        self,
        path: str,
        json_body: Dict[str, Any],
        params: Optional[Dict[str, Any]] = None,
    ) -> AsyncIterator[httpx.Response]:
        """Open a streaming POST; leaving the block closes the connection."""
        client = self._get_client()
        try:
            async with client.stream("POST", path, json=json_body, params=params) as response:
                if response.is_error:
                    await response.aread()
                    raise self._status_error(response)
                yield response
        except httpx.HTTPError as e:
            raise self._transport_error(e) from e

    def _decode_frame(self, raw: str) -> Optional[Dict[str, Any]]:
        """Parse one JSON frame; malformed frames are skipped, error frames raise."""
        try:
            frame = json.loads(raw)
        except ValueError:
            logger.debug(
                f"Skipping malformed {self.name} stream frame",
                extra={"backend": self.name, "frame": raw[:200]},
            )
            return None
        if not isinstance(frame, dict):
            return None
        error = frame.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise StreamParseError(message or "Stream error", backend=self.name)
        return frame

    async def generate(self, prompt: str, options: Optional[GenerateOptions] = None) -> GenerateResponse:
        return await self.retry_policy.execute(self._generate_once, prompt, options or GenerateOptions())

    @abstractmethod
    async def _generate_once(self, prompt: str, options: GenerateOptions) -> GenerateResponse:
        """One request without retries."""

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def chat_messages(prompt: str, options: GenerateOptions) -> list[Dict[str, str]]:
    """OpenAI-style message list with the optional system prompt first."""
    messages = []
    if options.system_prompt:
        messages.append({"role": "system", "content": options.system_prompt})
    messages.append({"role": "user", "content": prompt})
    return messages


def sse_payload(line: str) -> Optional[str]:
    """Return the data of an SSE ``data:`` line, or None for other lines."""
    if not line.startswith(SSE_PREFIX):
        return None
    return line[len(SSE_PREFIX):].strip()
