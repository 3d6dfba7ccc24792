"""Tests for the debounced task."""

import asyncio

import pytest

from breakhelper.scheduling.debounce import DebouncedTask


class TestDebouncedTask:
    """Tests for cancel-and-reschedule behaviour."""

    def test_negative_delay_rejected(self):
        """Delays must be non-negative."""
        async def noop():
            pass

        with pytest.raises(ValueError):
            DebouncedTask(-1, noop)

    def test_triggers_collapse(self):
        """Several triggers inside the delay run the callback once."""
        calls = []

        async def callback():
            calls.append(1)

        async def scenario():
            task = DebouncedTask(0.01, callback)
            for _ in range(5):
                task.schedule()
            assert task.pending
            await task.wait()
            assert not task.pending

        asyncio.run(scenario())
        assert calls == [1]

    def test_running_callback_not_cancelled(self):
        """A trigger during a run queues a second run instead of cancelling."""
        started = []
        finished = []

        async def callback():
            started.append(1)
            await asyncio.sleep(0.02)
            finished.append(1)

        async def scenario():
            task = DebouncedTask(0, callback)
            task.schedule()
            await asyncio.sleep(0.01)
            task.schedule()
            await task.wait()

        asyncio.run(scenario())
        assert len(started) == 2
        assert len(finished) == 2

    def test_cancel_drops_pending_run(self):
        """cancel prevents the pending run."""
        calls = []

        async def callback():
            calls.append(1)

        async def scenario():
            task = DebouncedTask(0.01, callback)
            task.schedule()
            task.cancel()
            await asyncio.sleep(0.03)
            await task.wait()

        asyncio.run(scenario())
        assert calls == []

    def test_flush_now_runs_immediately(self):
        """flush_now replaces the pending run and returns the callback result."""
        calls = []

        async def callback():
            calls.append(1)
            return "done"

        async def scenario():
            task = DebouncedTask(10, callback)
            task.schedule()
            result = await task.flush_now()
            assert not task.pending
            return result

        assert asyncio.run(scenario()) == "done"
        assert calls == [1]
