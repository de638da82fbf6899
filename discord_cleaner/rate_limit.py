"""
Rate-Limit Gate - Client-side pacing shared by every API call
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional


logger = logging.getLogger(__name__)


class RateLimitGate:
    """Ensures a minimum interval between outbound API calls"""

    def __init__(
        self,
        min_interval_ms: int = 1000,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.min_interval_ms = min_interval_ms
        self._clock = clock
        self._sleep = sleep
        self._last_call: Optional[float] = None

    async def wait(self) -> None:
        """Suspend until the interval has elapsed, then record this call"""
        if self._last_call is not None:
            elapsed_ms = (self._clock() - self._last_call) * 1000
            remaining_ms = self.min_interval_ms - elapsed_ms
            if remaining_ms > 0:
                logger.debug(f"Pacing API call, waiting {remaining_ms:.0f}ms")
                await self._sleep(remaining_ms / 1000)

        self._last_call = self._clock()
