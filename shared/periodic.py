"""
Cancellable periodic background tasks.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

from shared.logging import get_logger


class PeriodicTask:
    """
    Runs a synchronous callback on a fixed interval inside the event loop.

    The task is owned by whichever component composes it; ``stop`` must be
    awaited during shutdown so no loop outlives the process lifecycle. The
    ``sleep`` coroutine is injectable so tests can drive ticks without real
    delays.
    """

    def __init__(
        self,
        name: str,
        interval_ms: int,
        callback: Callable[[], Any],
        *,
        run_immediately: bool = True,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        logger_name: str = "shared.periodic",
    ):
        if interval_ms <= 0:
            raise ValueError("interval_ms must be greater than 0")
        self.name = name
        self.interval_ms = interval_ms
        self.callback = callback
        self.run_immediately = run_immediately
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self.runs = 0
        self.logger = get_logger(logger_name)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> Any:
        """Invoke the callback now, outside the schedule."""
        self.runs += 1
        return self.callback()

    async def start(self):
        """Start the periodic loop. Starting twice is a no-op."""
        if self.running:
            return
        if self.run_immediately:
            self._safe_run()
        self._task = asyncio.create_task(self._loop(), name=f"periodic:{self.name}")
        self.logger.info("Periodic task started", task=self.name, interval_ms=self.interval_ms)

    async def stop(self):
        """Stop the periodic loop and wait for it to unwind."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self.logger.info("Periodic task stopped", task=self.name, runs=self.runs)

    async def _loop(self):
        while True:
            await self._sleep(self.interval_ms / 1000)
            self._safe_run()

    def _safe_run(self):
        try:
            self.run_once()
        except Exception as e:
            # A failed tick must not end the schedule
            self.logger.error("Periodic task failed", task=self.name, error=str(e), exc_info=True)
