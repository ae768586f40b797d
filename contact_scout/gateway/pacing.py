"""Request pacing shared by every gateway call.

A RequestPacer holds the process-wide `last_request_at` timestamp. Pass the
same instance to every ModelGateway that must respect one requests-per-minute
ceiling; tests build their own with a fake clock.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional

from loguru import logger


Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


class RequestPacer:
    """Hard pacing gate: consecutive requests are at least 60/rpm seconds apart"""

    def __init__(
        self,
        requests_per_minute: int,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ):
        if requests_per_minute <= 0:
            raise ValueError("requests_per_minute must be positive")
        self.requests_per_minute = requests_per_minute
        self.min_interval = 60.0 / requests_per_minute
        self.clock = clock
        self.sleep = sleep
        self.last_request_at: Optional[float] = None
        self._lock = asyncio.Lock()

    async def wait_turn(self) -> float:
        """
        Suspend until the pacing gate opens, then stamp the gate passage.

        Read, wait and stamp happen under one lock so concurrent runs
        cannot pass the gate together.

        Returns:
            Seconds spent waiting
        """
        async with self._lock:
            waited = 0.0
            if self.last_request_at is not None:
                elapsed = self.clock() - self.last_request_at
                if elapsed < self.min_interval:
                    waited = self.min_interval - elapsed
                    logger.debug(f"Pacing gate: waiting {waited:.2f}s ({self.requests_per_minute} rpm)")
                    await self.sleep(waited)
            self.last_request_at = self.clock()
            return waited

    async def record_success(self):
        """Re-stamp after a successful response (lock-free, never moves the stamp back)"""
        now = self.clock()
        if self.last_request_at is None or now > self.last_request_at:
            self.last_request_at = now
