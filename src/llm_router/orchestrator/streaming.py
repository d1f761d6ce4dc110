"""Cancellable stream of generated chunks."""

import asyncio
import contextlib
from typing import AsyncGenerator, Optional
from uuid import uuid4

import structlog

from llm_router.backends.base import StreamChunk
from llm_router.telemetry.logger import RequestContext

logger = structlog.get_logger()


class GenerationStream:
    """Async iterator over ``StreamChunk`` with an explicit cancellation signal.

    ``cancel()`` may be called from any task: a pending read is cancelled,
    which unwinds the backend generator and closes its HTTP response. The
    stream is also an async context manager that closes itself on exit.
    Nothing is yielded after the ``done`` chunk. Every step of the generator
    runs with ``request_id`` bound for logging, whichever task reads.
    """

    def __init__(self, chunks: AsyncGenerator[StreamChunk, None], request_id: Optional[str] = None):
        self._chunks = chunks
        self.request_id = request_id or str(uuid4())
        self._cancel_event = asyncio.Event()
        self._finished = False

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def finished(self) -> bool:
        return self._finished

    def __aiter__(self) -> "GenerationStream":
        return self

    async def _next(self) -> Optional[StreamChunk]:
        try:
            return await self._chunks.__anext__()
        except StopAsyncIteration:
            return None

    async def __anext__(self) -> StreamChunk:
        if self._finished:
            raise StopAsyncIteration
        if self.cancelled:
            await self.aclose()
            raise StopAsyncIteration

        with RequestContext(self.request_id):
            read = asyncio.ensure_future(self._next())
        cancel_wait = asyncio.ensure_future(self._cancel_event.wait())
        try:
            await asyncio.wait({read, cancel_wait}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancel_wait.cancel()
            if not read.done():
                read.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await read

        if read.cancelled():
            logger.info("Stream cancelled by consumer")
            await self.aclose()
            raise StopAsyncIteration

        chunk = read.result()
        if chunk is None:
            self._finished = True
            raise StopAsyncIteration
        if chunk.done:
            self._finished = True
            await self._close_chunks()
        return chunk

    def cancel(self) -> None:
        """Signal cancellation; takes effect at the consumer's current or next read."""
        self._cancel_event.set()

    async def aclose(self) -> None:
        """Stop the stream and release the underlying connection."""
        self._cancel_event.set()
        self._finished = True
        await self._close_chunks()

    async def _close_chunks(self) -> None:
        with RequestContext(self.request_id):
            await self._chunks.aclose()

    async def collect(self) -> str:
        """Consume the stream and return the concatenated text."""
        parts = []
        async for chunk in self:
            parts.append(chunk.text)
        return "".join(parts)

    async def __aenter__(self) -> "GenerationStream":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False
