import asyncio
import weakref
from typing import Awaitable, Optional, TypeVar

from chatstream.utils.exceptions import StreamCancelled

T = TypeVar("T")


class CancellationToken:
    """Cooperative cancellation signal shared by a caller and one stream.

    Cancelling a token also cancels every token created with it as parent.
    """

    def __init__(self, parent: Optional["CancellationToken"] = None):
        self._event = asyncio.Event()
        self._children: "weakref.WeakSet[CancellationToken]" = weakref.WeakSet()
        if parent is not None:
            parent._children.add(self)
            if parent.cancelled:
                self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        if self._event.is_set():
            return
        self._event.set()
        for child in list(self._children):
            child.cancel()

    async def wait(self) -> None:
        await self._event.wait()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first.

        Raises StreamCancelled (after cancelling the awaitable) when the token
        wins. If both finish together the awaitable's result is kept.
        """
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise StreamCancelled()

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            task.cancel()
            waiter.cancel()
            raise

        if task in done:
            waiter.cancel()
            return task.result()

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        raise StreamCancelled()
