import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class ConcurrencyGate:
    """Fixed-capacity permit pool bounding in-flight detail fetches.

    Prefer :meth:`permit`, which returns the permit on every exit path including
    cancellation by a timeout.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._in_flight = 0
        self._peak_in_flight = 0
        self._condition = asyncio.Condition()

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def available(self) -> int:
        return self.capacity - self._in_flight

    @property
    def peak_in_flight(self) -> int:
        return self._peak_in_flight

    async def acquire(self) -> None:
        async with self._condition:
            await self._condition.wait_for(lambda: self._in_flight < self.capacity)
            self._in_flight += 1
            self._peak_in_flight = max(self._peak_in_flight, self._in_flight)

    async def release(self) -> None:
        async with self._condition:
            if self._in_flight == 0:
                raise RuntimeError("ConcurrencyGate released more times than acquired")
            self._in_flight -= 1
            self._condition.notify_all()

    @asynccontextmanager
    async def permit(self) -> AsyncIterator[None]:
        await self.acquire()
        try:
            yield
        finally:
            # Shielded so a cancellation arriving here cannot leak the permit.
            await asyncio.shield(self.release())
