"""
SSE frame extraction.

Turns the lines of a text/event-stream body into payload events and runs
each one through a decoder. Only ``data:`` fields matter here; event-type
discrimination, where a protocol needs it, comes from the JSON payload.
"""

import logging
from typing import Awaitable, Callable, Optional

import httpx

from chatstream.models.response import Chunk
from chatstream.streaming.cancellation import CancellationToken
from chatstream.streaming.decoders import Decoder
from chatstream.streaming.lines import LineSource
from chatstream.utils.exceptions import StreamCancelled, StreamReadError

logger = logging.getLogger(__name__)

# Constants
SSE_DATA_PREFIX = "data: "
SSE_COMMENT_PREFIX = ":"

Publisher = Callable[[Chunk], Awaitable[None]]


def parse_sse_line(line: str) -> Optional[str]:
    """Return the payload of a ``data:`` line, None for anything else."""
    if not line or line.startswith(SSE_COMMENT_PREFIX):
        return None
    if line.startswith(SSE_DATA_PREFIX):
        return line[len(SSE_DATA_PREFIX):]
    # event:, id:, retry: and unknown fields
    return None


class FrameExtractor:
    """Reads one LineSource to the end, publishing decoded chunks in order."""

    def __init__(
        self,
        source: LineSource,
        decoder: Decoder,
        publish: Publisher,
        token: CancellationToken,
    ):
        self.source = source
        self.decoder = decoder
        self.publish = publish
        self.token = token

    async def run(self) -> None:
        """Run until cancelled, stopped, exhausted or a read fails.

        The source is released exactly once whichever way this returns.
        """
        try:
            await self._pump()
        except StreamCancelled:
            logger.debug("Stream cancelled")
        finally:
            await self.source.aclose()

    async def _pump(self) -> None:
        while True:
            if self.token.cancelled:
                return

            try:
                line = await self.token.guard(self.source.next_line())
            except (httpx.HTTPError, httpx.StreamError, OSError) as e:
                await self._publish_read_error(e)
                return

            if line is None:
                return

            payload = parse_sse_line(line)
            if payload is None:
                continue

            result = self.decoder.decode(payload)

            if self.token.cancelled:
                return
            if result.chunk is not None:
                await self.publish(result.chunk)

            if result.stop:
                return

    async def _publish_read_error(self, error: Exception) -> None:
        logger.warning(f"Stream read failed: {error}")
        if self.token.cancelled:
            return
        await self.publish(
            Chunk(
                error=StreamReadError(f"stream read failed: {error}"),
                provider=self.decoder.provider,
            )
        )
