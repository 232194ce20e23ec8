"""
Unit tests for the cancellable periodic task.
"""

import asyncio
import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.periodic import PeriodicTask


class ManualTicker:
    """Sleep replacement that only returns when a tick is released."""

    def __init__(self):
        self.delays = []
        self._ticks = asyncio.Queue()

    async def sleep(self, seconds):
        self.delays.append(seconds)
        await self._ticks.get()

    async def tick(self, count=1):
        for _ in range(count):
            self._ticks.put_nowait(None)
            # let the loop run its callback and park on the next sleep
            for _ in range(3):
                await asyncio.sleep(0)


class TestPeriodicTask:
    """Test cases for PeriodicTask."""

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            PeriodicTask("bad", 0, lambda: None)

    @pytest.mark.asyncio
    async def test_runs_immediately_then_on_ticks(self):
        """Test the callback runs at start and once per tick."""
        ticker = ManualTicker()
        calls = []
        task = PeriodicTask("sweep", 30000, lambda: calls.append(1), sleep=ticker.sleep)

        await task.start()
        assert len(calls) == 1

        await ticker.tick(2)
        assert len(calls) == 3
        assert ticker.delays[0] == 30

        await task.stop()

    @pytest.mark.asyncio
    async def test_deferred_first_run(self):
        """Test run_immediately=False waits for the first tick."""
        ticker = ManualTicker()
        calls = []
        task = PeriodicTask("sweep", 1000, lambda: calls.append(1), run_immediately=False, sleep=ticker.sleep)

        await task.start()
        assert calls == []

        await ticker.tick()
        assert calls == [1]

        await task.stop()

    @pytest.mark.asyncio
    async def test_stop_cancels_loop(self):
        """Test stop ends the schedule and further ticks do nothing."""
        ticker = ManualTicker()
        calls = []
        task = PeriodicTask("sweep", 1000, lambda: calls.append(1), sleep=ticker.sleep)

        await task.start()
        assert task.running is True

        await task.stop()
        assert task.running is False

        await ticker.tick()
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_failed_tick_keeps_schedule(self):
        """Test an exception in the callback does not end the loop."""
        ticker = ManualTicker()
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")

        task = PeriodicTask("sweep", 1000, flaky, sleep=ticker.sleep)

        await task.start()
        await ticker.tick()

        assert len(calls) == 2
        assert task.running is True
        await task.stop()

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self):
        ticker = ManualTicker()
        calls = []
        task = PeriodicTask("sweep", 1000, lambda: calls.append(1), sleep=ticker.sleep)

        await task.start()
        await task.start()

        assert len(calls) == 1
        await task.stop()

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        task = PeriodicTask("sweep", 1000, lambda: None)

        await task.stop()

        assert task.running is False
