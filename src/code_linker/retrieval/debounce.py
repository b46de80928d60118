"""Trailing-edge debouncing of async calls."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Debouncer(Generic[T]):
    """Runs only the last call made within a quiet window.

    Each ``call`` cancels the pending timer and schedules its own function
    ``delay`` seconds later. Every caller of a burst awaits the same future
    and receives the result of the one call that actually ran.
    """

    def __init__(self, delay: float) -> None:
        """Set the default quiet window in seconds."""
        self.delay = delay
        self._handle: asyncio.TimerHandle | None = None
        self._future: asyncio.Future[T] | None = None
        self._pending: Callable[[], Awaitable[T]] | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> bool:
        """True while a call is scheduled but has not started."""
        return self._handle is not None

    async def call(self, fn: Callable[[], Awaitable[T]], delay: float | None = None) -> T:
        """Schedule ``fn``, superseding any call still waiting in the window."""
        loop = asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
            logger.debug("Superseded pending debounced call")
        if self._future is None or self._future.done():
            self._future = loop.create_future()
        self._pending = fn
        self._handle = loop.call_later(self.delay if delay is None else delay, self._fire)
        # shield: one cancelled waiter must not cancel the shared result
        return await asyncio.shield(self._future)

    def _fire(self) -> None:
        fn, future = self._pending, self._future
        self._handle = None
        self._pending = None
        self._future = None
        if fn is None or future is None:
            return
        task = asyncio.get_running_loop().create_task(self._run(fn, future))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @staticmethod
    async def _run(fn: Callable[[], Awaitable[T]], future: "asyncio.Future[T]") -> None:
        try:
            result = await fn()
        except Exception as exc:
            if not future.done():
                future.set_exception(exc)
            return
        if not future.done():
            future.set_result(result)

    def cancel(self) -> None:
        """Drop the pending call; its waiters see CancelledError."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if self._future is not None and not self._future.done():
            self._future.cancel()
        self._future = None
        self._pending = None
