"""
Stream pipeline: LineSource -> FrameExtractor -> Decoder -> Channel.

Each stream runs its extractor in a dedicated asyncio task and republishes
chunks on a bounded channel that the caller iterates. Cancellation is
cooperative: the producer checks the token before every line read and
before every send, so a caller that cancels may still see one chunk that
was already decoded when the cancel landed.
"""

import asyncio
import logging
from typing import Callable, Optional

from chatstream.config import settings
from chatstream.models.response import Chunk
from chatstream.streaming.cancellation import CancellationToken
from chatstream.streaming.channel import Channel
from chatstream.streaming.decoders import Decoder
from chatstream.streaming.frames import FrameExtractor
from chatstream.streaming.lines import LineSource
from chatstream.utils.exceptions import ChannelClosedError, StreamCancelled, StreamError

logger = logging.getLogger(__name__)


class StreamHandle:
    """Caller side of one in-flight stream.

    Iterate it with ``async for``; iteration ends when the channel closes.
    """

    def __init__(
        self,
        channel: Channel[Chunk],
        token: CancellationToken,
        task: "asyncio.Task[None]",
    ):
        self._channel = channel
        self._token = token
        self._task = task

    @property
    def closed(self) -> bool:
        return self._channel.closed

    @property
    def cancelled(self) -> bool:
        return self._token.cancelled

    def cancel(self) -> None:
        """Ask the producer to stop; the channel closes shortly after."""
        self._token.cancel()

    async def wait_closed(self) -> None:
        """Wait for the producer to finish and release the connection."""
        await asyncio.shield(self._task)

    async def aclose(self) -> None:
        self.cancel()
        await self.wait_closed()

    def __aiter__(self) -> "StreamHandle":
        return self

    async def __anext__(self) -> Chunk:
        try:
            return await self._channel.receive()
        except ChannelClosedError:
            raise StopAsyncIteration

    async def __aenter__(self) -> "StreamHandle":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


class StreamPipeline:
    """Binds one LineSource to one Decoder and runs it in the background."""

    def __init__(
        self,
        source: LineSource,
        decoder: Decoder,
        token: Optional[CancellationToken] = None,
        buffer_size: Optional[int] = None,
        on_close: Optional[Callable[[], None]] = None,
    ):
        self.source = source
        self.decoder = decoder
        # Child token: the caller's token cancels us, our cancel stays local
        self.token = CancellationToken(parent=token)
        self.channel: Channel[Chunk] = Channel(
            buffer_size if buffer_size is not None else settings.stream_buffer_size
        )
        self._on_close = on_close
        self._task: Optional[asyncio.Task] = None
        self._terminal_sent = False

    def start(self) -> StreamHandle:
        """Spawn the producer task and return immediately."""
        if self._task is not None:
            raise RuntimeError("pipeline already started")
        self._task = asyncio.create_task(self._produce())
        return StreamHandle(self.channel, self.token, self._task)

    async def _publish(self, chunk: Chunk) -> None:
        if self.decoder.drop_empty_chunks and chunk.is_empty:
            return
        await self.channel.send(chunk, self.token)
        if chunk.is_terminal:
            self._terminal_sent = True

    async def _produce(self) -> None:
        extractor = FrameExtractor(self.source, self.decoder, self._publish, self.token)
        try:
            await extractor.run()
        except Exception as e:
            logger.exception(f"Stream producer failed for {self.decoder.provider or 'stream'}")
            await self._publish_failure(e)
        finally:
            self.channel.close()
            if self._on_close is not None:
                self._on_close()
            logger.debug(f"Stream closed for {self.decoder.provider or 'stream'}")

    async def _publish_failure(self, error: Exception) -> None:
        # Nothing follows a done or error chunk
        if self.token.cancelled or self._terminal_sent:
            return
        failure = StreamError(f"stream failed: {error}")
        failure.__cause__ = error
        try:
            await self.channel.send(
                Chunk(error=failure, provider=self.decoder.provider), self.token
            )
        except StreamCancelled:
            # Caller gave up while the failure was pending
            pass


async def collect_reply(handle: StreamHandle) -> str:
    """Drain a stream into the full reply text.

    Raises the error carried by the stream's error chunk, if one arrives.
    """
    parts = []
    async with handle:
        async for chunk in handle:
            if chunk.error is not None:
                raise chunk.error
            parts.append(chunk.content)
    return "".join(parts)
