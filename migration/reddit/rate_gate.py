from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Optional

DEFAULT_INTERVAL = 1.0


class RateGate:
    """
    Fixed-delay pacing between request waves.

    await_slot() returns immediately the first time, and afterwards suspends
    until `interval` seconds have passed since the previous slot was granted.
    This is not a token bucket: there is no burst capacity.
    """

    def __init__(
        self,
        interval: float = DEFAULT_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if interval < 0:
            raise ValueError("interval cannot be negative")
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._last_granted: Optional[float] = None
        self._lock = asyncio.Lock()

    async def await_slot(self) -> float:
        """Wait for the next slot. Returns the seconds spent waiting."""
        async with self._lock:
            waited = 0.0
            if self._last_granted is not None:
                remaining = self.interval - (self._clock() - self._last_granted)
                if remaining > 0:
                    await self._sleep(remaining)
                    waited = remaining
            self._last_granted = self._clock()
            return waited
