"""
Server-sent event framing for chat streams.

Produces: start -> chunk* -> end -> [DONE]. Providers without native
streaming get their complete reply sliced into paced chunks marked as
simulated. Failures after the first frame become an in-band error frame
followed by [DONE]; an abort ends the stream quietly.
"""
import asyncio
import json
from typing import Any, AsyncIterator, Awaitable, List, Optional

from aigateway.core.config import settings
from aigateway.core.logging import get_logger
from aigateway.services.gateway.clients import ANONYMOUS, ChatClient
from aigateway.services.gateway.types import Capability, ChatMessage

logger = get_logger(__name__)

DONE_FRAME = "data: [DONE]\n\n"

_END = object()


def sse_frame(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False, default=str)}\n\n"


def slice_content(content: str, size: int) -> List[str]:
    return [content[i:i + size] for i in range(0, len(content), size)]


async def _next(iterator: AsyncIterator[Any]) -> Any:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return _END


class StreamAborted(Exception):
    """The caller cancelled while the dispatcher was waiting."""


class StreamingDispatcher:
    def __init__(self, chunk_size: Optional[int] = None, chunk_delay_ms: Optional[int] = None):
        self.chunk_size = chunk_size or settings.STREAM_CHUNK_SIZE
        self.chunk_delay_ms = settings.STREAM_CHUNK_DELAY_MS if chunk_delay_ms is None else chunk_delay_ms

    async def _until_cancelled(self, awaitable: Awaitable[Any], cancel: asyncio.Event) -> Any:
        """Await awaitable unless cancel fires first, in which case raise StreamAborted."""
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
        if task in done:
            return task.result()
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        raise StreamAborted()

    async def _pause(self, cancel: asyncio.Event) -> None:
        try:
            await asyncio.wait_for(cancel.wait(), timeout=self.chunk_delay_ms / 1000)
        except asyncio.TimeoutError:
            return
        raise StreamAborted()

    async def _native_chunks(self, client, messages, parameters, identity, cancel) -> AsyncIterator[dict]:
        stream = client.stream_with_context(messages, parameters, identity=identity)
        try:
            while True:
                chunk = await self._until_cancelled(_next(stream), cancel)
                if chunk is _END:
                    return
                yield {"type": "chunk", "content": chunk.content, "metadata": chunk.metadata}
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _simulated_chunks(self, client, messages, parameters, identity, cancel) -> AsyncIterator[dict]:
        response = await self._until_cancelled(
            client.send_message_with_context(messages, parameters, identity=identity),
            cancel,
        )
        pieces = slice_content(response.content, self.chunk_size)
        metadata = {**response.metadata, "simulated": True}
        for index, piece in enumerate(pieces):
            yield {"type": "chunk", "content": piece, "metadata": metadata}
            if self.chunk_delay_ms > 0 and index < len(pieces) - 1:
                await self._pause(cancel)

    async def dispatch(
        self,
        client: ChatClient,
        messages: List[ChatMessage],
        parameters: Optional[dict[str, Any]] = None,
        identity: str = ANONYMOUS,
        cancel: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[str]:
        """Yield SSE frames for one chat request."""
        cancel = cancel or asyncio.Event()
        native = client.supports(Capability.STREAMING_CHAT)
        source = (self._native_chunks if native else self._simulated_chunks)(
            client, messages, parameters, identity, cancel,
        )
        chunks = 0

        logger.info("Stream started", provider=client.provider, native=native, identity=identity)
        yield sse_frame({"type": "start", "provider": client.provider})

        try:
            async for frame in source:
                if cancel.is_set():
                    raise StreamAborted()
                chunks += 1
                yield sse_frame(frame)
        except StreamAborted:
            logger.info("Stream aborted by caller", provider=client.provider, chunks=chunks)
            return
        except Exception as e:
            logger.error(
                "Stream failed",
                provider=client.provider,
                chunks=chunks,
                error=str(e),
                error_type=type(e).__name__,
            )
            yield sse_frame({"type": "error", "error": str(e) or type(e).__name__})
            yield DONE_FRAME
            return
        finally:
            await source.aclose()

        logger.info("Stream completed", provider=client.provider, chunks=chunks, simulated=not native)
        yield sse_frame({"type": "end"})
        yield DONE_FRAME
