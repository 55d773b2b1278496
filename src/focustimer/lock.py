"""FIFO mutual exclusion for record transactions."""

from __future__ import annotations

import asyncio
from collections import deque
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, TypeVar

T = TypeVar("T")


class SerialLock:
    """
    Admits one transaction at a time and resumes queued callers strictly in
    arrival order. Ownership passes directly from the releasing holder to the
    oldest waiter, so a newcomer can never slip in between.

    Not re-entrant: awaiting run_exclusive() from inside a held region
    deadlocks. There is no timeout; a transaction that never finishes blocks
    every later caller.
    """

    def __init__(self) -> None:
        self._locked = False
        self._waiters: deque[asyncio.Future[None]] = deque()

    def locked(self) -> bool:
        return self._locked

    @property
    def waiting(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    async def acquire(self) -> None:
        if not self._locked:
            self._locked = True
            return

        fut: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(fut)
        try:
            await fut
        except asyncio.CancelledError:
            if fut.done() and not fut.cancelled():
                # ownership was already handed to us; pass it on
                self.release()
            else:
                try:
                    self._waiters.remove(fut)
                except ValueError:
                    pass
            raise

    def release(self) -> None:
        if not self._locked:
            raise RuntimeError("release() called on an unlocked SerialLock")
        while self._waiters:
            fut = self._waiters.popleft()
            if not fut.done():
                fut.set_result(None)
                return
        self._locked = False

    @asynccontextmanager
    async def held(self) -> AsyncIterator[None]:
        await self.acquire()
        try:
            yield
        finally:
            self.release()

    async def run_exclusive(
        self, operation: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        await self.acquire()
        try:
            return await operation(*args, **kwargs)
        finally:
            self.release()
