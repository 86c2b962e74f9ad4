"""Run-relative clock measured in time units."""
import asyncio
import time
from typing import Awaitable, Optional


class RunClock:
    """
    Time since the start of the run, in time units.

    One time unit is ``time_scale`` real seconds, so the same schedule can run
    at full length against a real cluster or compressed in tests.
    """

    def __init__(self, time_scale: float = 1.0):
        if time_scale <= 0:
            raise ValueError("time_scale must be positive")
        self.time_scale = time_scale
        self._origin: Optional[float] = None

    def start(self) -> None:
        self._origin = time.monotonic()

    def now(self) -> float:
        if self._origin is None:
            return 0.0
        return (time.monotonic() - self._origin) / self.time_scale

    def to_seconds(self, units: float) -> float:
        return max(0.0, units) * self.time_scale

    async def sleep(self, units: float) -> None:
        await asyncio.sleep(self.to_seconds(units))

    async def wait(self, awaitable: Awaitable, units: float) -> bool:
        """Await ``awaitable`` for at most ``units``. Returns False on timeout."""
        try:
            await asyncio.wait_for(awaitable, timeout=self.to_seconds(units))
        except asyncio.TimeoutError:
            return False
        return True
