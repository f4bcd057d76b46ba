"""
Concurrency Gate - FIFO counting admission control.

Limits how many work items may call the capability at once. Lives on the
dispatcher's event loop and is not thread-safe.
"""

import asyncio
import contextlib
from collections import deque


class ConcurrencyGate:
    """
    Counting semaphore with strict first-come first-served hand-off.

    A released permit goes straight to the oldest waiter, so new arrivals
    never overtake queued ones.

    Usage:
        gate = ConcurrencyGate(limit=4)
        async with gate:
            await call_capability()
    """

    def __init__(self, limit: int):
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self._limit = limit
        self._active = 0
        self._peak = 0
        self._waiters: deque[asyncio.Future] = deque()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def active(self) -> int:
        """Permits currently held."""
        return self._active

    @property
    def waiting(self) -> int:
        """Acquirers queued for a permit."""
        return sum(1 for w in self._waiters if not w.done())

    @property
    def peak(self) -> int:
        """Highest number of permits held at once."""
        return self._peak

    async def acquire(self) -> None:
        """Wait for a permit."""
        if self._active < self._limit and not self._waiters:
            self._take()
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Permit was handed over just before cancellation
                self.release()
            else:
                with contextlib.suppress(ValueError):
                    self._waiters.remove(waiter)
            raise

    def release(self) -> None:
        """Return a permit, handing it to the oldest live waiter."""
        if self._active <= 0:
            raise RuntimeError("release() without a held permit")
        self._active -= 1
        self._wake_next()

    def _take(self) -> None:
        self._active += 1
        self._peak = max(self._peak, self._active)

    def _wake_next(self) -> None:
        while self._waiters and self._active < self._limit:
            waiter = self._waiters.popleft()
            if waiter.done():
                continue
            self._take()
            waiter.set_result(None)

    async def __aenter__(self) -> "ConcurrencyGate":
        await self.acquire()
        return self

    async def __aexit__(self, *args) -> None:
        self.release()
