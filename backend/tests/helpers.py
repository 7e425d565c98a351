"""Fakes and line builders shared by the streaming tests."""

import asyncio
from typing import List, Optional

import httpx
import orjson

from chatstream.streaming.lines import LineSource


class FakeBody:
    """In-memory SSE body that records how often it was released.

    ``fail_at`` raises httpx.ReadError when that line index is reached
    (use ``len(lines)`` to fail after the last line).
    """

    def __init__(self, lines: List[str], delay: float = 0.0, fail_at: Optional[int] = None):
        self.lines = lines
        self.delay = delay
        self.fail_at = fail_at
        self.close_calls = 0
        self.lines_read = 0

    async def _iter_lines(self):
        for index, line in enumerate(self.lines):
            if index == self.fail_at:
                raise httpx.ReadError("connection reset by peer")
            if self.delay:
                await asyncio.sleep(self.delay)
            self.lines_read += 1
            yield line
        if self.fail_at is not None and self.fail_at >= len(self.lines):
            raise httpx.ReadError("connection reset by peer")

    async def _close(self):
        self.close_calls += 1

    def source(self) -> LineSource:
        return LineSource(self._iter_lines(), self._close)


def sse(payload) -> str:
    """One ``data:`` line for a dict payload or a raw string."""
    if isinstance(payload, str):
        return f"data: {payload}"
    return f"data: {orjson.dumps(payload).decode()}"


def claude_delta(text: str) -> str:
    return sse({"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": text}})


def openai_delta(text: Optional[str], finish_reason: Optional[str] = None) -> str:
    delta = {} if text is None else {"content": text}
    return sse({"choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}]})


async def drain(handle) -> list:
    return [chunk async for chunk in handle]
