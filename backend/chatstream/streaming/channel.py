import asyncio
from typing import Generic, TypeVar

from chatstream.streaming.cancellation import CancellationToken
from chatstream.utils.exceptions import ChannelClosedError

T = TypeVar("T")


class Channel(Generic[T]):
    """Bounded single-producer/single-consumer queue with an explicit close.

    Items buffered before ``close()`` are still delivered; ``receive()``
    raises ChannelClosedError only once the buffer is drained.
    """

    def __init__(self, capacity: int = 1):
        if capacity < 1:
            raise ValueError("channel capacity must be at least 1")
        self._queue: "asyncio.Queue[T]" = asyncio.Queue(maxsize=capacity)
        self._closed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    async def send(self, item: T, token: CancellationToken) -> None:
        """Block while the buffer is full; give up if ``token`` fires."""
        if self.closed:
            raise ChannelClosedError("send on closed channel")
        await token.guard(self._queue.put(item))

    def close(self) -> None:
        if self.closed:
            raise ChannelClosedError("close of closed channel")
        self._closed.set()

    async def receive(self) -> T:
        while True:
            if not self._queue.empty():
                return self._queue.get_nowait()
            if self.closed:
                raise ChannelClosedError("channel closed")

            getter = asyncio.ensure_future(self._queue.get())
            closer = asyncio.ensure_future(self._closed.wait())
            try:
                done, _ = await asyncio.wait(
                    {getter, closer}, return_when=asyncio.FIRST_COMPLETED
                )
            except asyncio.CancelledError:
                getter.cancel()
                closer.cancel()
                raise

            if getter in done:
                closer.cancel()
                return getter.result()
            # Closed while empty; a cancelled get leaves any late item queued
            getter.cancel()
