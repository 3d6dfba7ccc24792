"""Quiet-period scheduling on the asyncio event loop.

``DebouncedTask`` replaces its pending run every time it is scheduled:
the callback only runs once no new trigger has arrived for ``delay``
seconds. A callback that has already started is never cancelled by a new
trigger.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class DebouncedTask:
    """Cancel-and-reschedule wrapper around an async callback."""

    def __init__(self, delay: float, callback: Callable[[], Awaitable[object]]):
        if delay < 0:
            raise ValueError("delay must be non-negative")
        self.delay = delay
        self.callback = callback
        self._timer: Optional[asyncio.Task] = None
        self._running: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        """True while a run is scheduled but has not started."""
        return self._timer is not None and not self._timer.done()

    def schedule(self) -> None:
        """(Re)start the quiet period, superseding any pending run."""
        if self.pending:
            self._timer.cancel()
            logger.debug("Pending run superseded")
        self._timer = asyncio.get_running_loop().create_task(self._fire_later())

    async def _fire_later(self) -> None:
        await asyncio.sleep(self.delay)
        current = asyncio.current_task()
        self._timer = None
        self._running = current
        try:
            await self.callback()
        finally:
            if self._running is current:
                self._running = None

    def cancel(self) -> None:
        """Drop the pending run, if any."""
        if self.pending:
            self._timer.cancel()
        self._timer = None

    async def flush_now(self) -> object:
        """Run the callback immediately in place of any pending run."""
        self.cancel()
        return await self.callback()

    async def wait(self) -> None:
        """Wait until no run is pending or in progress.

        Runs that are superseded while waiting are followed to their
        replacement.
        """
        while True:
            task = self._timer or self._running
            if task is None:
                return
            await asyncio.wait({task})
            if task is self._timer or task is self._running:
                return
