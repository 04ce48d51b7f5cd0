"""Unit tests for the repeating poll task."""

import asyncio

import pytest

from ocrbatch.engine.poller import RepeatingTask


class TestRepeatingTask:
    """Tests for RepeatingTask scheduling and cancellation."""

    @pytest.mark.asyncio
    async def test_ticks_until_stopped(self):
        """Test the tick runs repeatedly and stops after stop()."""
        ticks = []

        async def tick():
            ticks.append(1)

        task = RepeatingTask("test", 0.001, tick)
        task.start()
        while len(ticks) < 3:
            await asyncio.sleep(0.001)
        await task.stop()
        count = len(ticks)
        await asyncio.sleep(0.01)

        assert not task.running
        assert len(ticks) == count

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self):
        async def tick():
            pass

        task = RepeatingTask("test", 10, tick)
        task.start()
        first = task._task
        task.start()

        assert task._task is first
        await task.stop()

    @pytest.mark.asyncio
    async def test_cancel_inside_tick_lets_tick_finish(self):
        """Test a tick that cancels its own task still completes its work."""
        finished = []
        task = None

        async def tick():
            task.cancel()
            await asyncio.sleep(0)
            finished.append(1)

        task = RepeatingTask("test", 0.001, tick)
        task.start()
        for _ in range(100):
            if finished:
                break
            await asyncio.sleep(0.001)
        await task.stop()
        await asyncio.sleep(0.01)

        assert finished == [1]
        assert not task.running

    @pytest.mark.asyncio
    async def test_tick_errors_do_not_stop_the_loop(self, caplog):
        """Test an exception in one tick is logged and the next tick still runs."""
        calls = []

        async def tick():
            calls.append(1)
            if len(calls) == 1:
                raise ValueError("boom")

        task = RepeatingTask("test", 0.001, tick)
        task.start()
        while len(calls) < 2:
            await asyncio.sleep(0.001)
        await task.stop()

        assert "test tick failed" in caplog.text

    @pytest.mark.asyncio
    async def test_restart_after_cancel(self):
        ticks = []

        async def tick():
            ticks.append(1)

        task = RepeatingTask("test", 0.001, tick)
        task.start()
        task.cancel()
        assert not task.running

        task.start()
        while not ticks:
            await asyncio.sleep(0.001)
        await task.stop()

        assert ticks
