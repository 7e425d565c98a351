import logging
from typing import AsyncIterator, Awaitable, Callable, Optional

import httpx

logger = logging.getLogger(__name__)


class LineSource:
    """Text lines from a streaming body, plus the owner of that body.

    Whoever holds a LineSource is the only reader of the body and is
    responsible for calling ``aclose()``; repeated calls are no-ops.
    """

    def __init__(
        self,
        lines: AsyncIterator[str],
        close: Callable[[], Awaitable[None]],
    ):
        self._lines = lines
        self._close = close
        self._closed = False

    @classmethod
    def from_response(cls, response: httpx.Response) -> "LineSource":
        """Wrap an httpx response opened with ``stream=True``."""
        return cls(response.aiter_lines(), response.aclose)

    @property
    def closed(self) -> bool:
        return self._closed

    async def next_line(self) -> Optional[str]:
        """Return the next line, or None once the body is exhausted.

        Transport errors propagate unchanged.
        """
        try:
            return await self._lines.__anext__()
        except StopAsyncIteration:
            return None

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            aclose_lines = getattr(self._lines, "aclose", None)
            if aclose_lines is not None:
                await aclose_lines()
        finally:
            await self._close()
        logger.debug("Line source released")
