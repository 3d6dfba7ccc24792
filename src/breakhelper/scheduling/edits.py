"""Batched saving of manual break schedule edits.

Edits to single cells of the schedule table are buffered per
``(user_id, interval_start)``, the latest edit replacing any earlier one
for the same cell, and flushed to the persistence sink as one batch once
no edit has arrived for the quiet period.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from breakhelper.domain.intervals import normalize_time, parse_date, time_to_minutes
from breakhelper.domain.models import (
    BreakScheduleUpdateRequest,
    BreakScheduleUpdateResponse,
    BreakType,
    IntervalUpdate,
)
from breakhelper.scheduling.collaborators import PersistenceSink
from breakhelper.scheduling.debounce import DebouncedTask

logger = logging.getLogger(__name__)

EditKey = tuple[str, str]


@dataclass
class ReconcilerConfig:
    quiet_period_seconds: float = 0.5


@dataclass
class FlushResult:
    """Outcome of one flush.

    Attributes:
        success: False when the sink raised or reported failure; the
            flushed edits stay buffered for the next flush.
        flushed: Number of cell edits sent.
        response: Sink response, when the sink answered.
        error: Exception raised by the sink, if any.
    """

    success: bool
    flushed: int = 0
    response: Optional[BreakScheduleUpdateResponse] = None
    error: Optional[Exception] = None
    user_ids: list[str] = field(default_factory=list)


class EditReconciler:
    """Pending-edit buffer for one schedule date with debounced flushing.

    Example:
        >>> reconciler = EditReconciler(sink, "2026-01-05")
        >>> reconciler.init()
        >>> reconciler.record_edit("u1", "10:00:00", BreakType.HB1)
        >>> result = await reconciler.flush()
        >>> reconciler.dispose()
    """

    def __init__(
        self,
        sink: PersistenceSink,
        schedule_date: str,
        config: Optional[ReconcilerConfig] = None,
    ):
        parse_date(schedule_date)
        self.sink = sink
        self.schedule_date = schedule_date
        self.config = config or ReconcilerConfig()
        self.last_result: Optional[FlushResult] = None
        self._pending: dict[EditKey, BreakType] = {}
        self._debouncer: Optional[DebouncedTask] = None
        self._flush_lock = asyncio.Lock()

    def init(self) -> None:
        """Start debounced flushing; without it edits wait for ``flush``."""
        if self._debouncer is None:
            self._debouncer = DebouncedTask(self.config.quiet_period_seconds, self._flush_quietly)

    def dispose(self) -> None:
        """Stop the timer and drop unsaved edits."""
        if self._debouncer is not None:
            self._debouncer.cancel()
            self._debouncer = None
        if self._pending:
            logger.info("Discarding %d unsaved edit(s)", len(self._pending))
        self._pending.clear()

    async def close(self) -> FlushResult:
        """Flush what is pending, then dispose."""
        result = await self.flush()
        self.dispose()
        return result

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def pending_edit(self, user_id: str, interval_start: str) -> Optional[BreakType]:
        return self._pending.get((user_id, normalize_time(interval_start)))

    def record_edit(self, user_id: str, interval_start: str, break_type: BreakType) -> None:
        """Buffer one cell edit, replacing any pending edit of the same cell.

        Raises:
            ValueError: If ``user_id`` is empty.
            MalformedTimeError: If the interval is malformed or off the grid.
        """
        if not user_id:
            raise ValueError("user_id is required")
        update = IntervalUpdate(interval_start, break_type)
        self._pending[(user_id, update.interval_start)] = update.break_type
        if self._debouncer is not None:
            self._debouncer.schedule()

    def build_batch(
        self, edits: Optional[dict[EditKey, BreakType]] = None
    ) -> list[BreakScheduleUpdateRequest]:
        """One update request per agent, intervals in time order."""
        edits = self._pending if edits is None else edits
        by_user: dict[str, list[IntervalUpdate]] = {}
        for (user_id, interval_start), break_type in edits.items():
            by_user.setdefault(user_id, []).append(IntervalUpdate(interval_start, break_type))
        return [
            BreakScheduleUpdateRequest(
                user_id=user_id,
                schedule_date=self.schedule_date,
                intervals=sorted(updates, key=lambda u: time_to_minutes(u.interval_start)),
            )
            for user_id, updates in by_user.items()
        ]

    async def flush(self) -> FlushResult:
        """Send all pending edits as one batch.

        Only edits still unchanged since the batch was taken are cleared on
        success; newer edits to the same cells stay pending.
        """
        async with self._flush_lock:
            snapshot = dict(self._pending)
            if not snapshot:
                return FlushResult(success=True)

            batch = self.build_batch(snapshot)
            user_ids = [update.user_id for update in batch]
            try:
                response = await self.sink.save_interval_updates(batch)
            except Exception as exc:
                logger.warning("Flush of %d edit(s) failed: %s", len(snapshot), exc)
                self.last_result = FlushResult(
                    success=False, flushed=len(snapshot), error=exc, user_ids=user_ids
                )
                return self.last_result

            if response.success:
                for key, break_type in snapshot.items():
                    if self._pending.get(key) is break_type:
                        del self._pending[key]
                logger.info("Flushed %d edit(s) for %d agent(s)", len(snapshot), len(batch))
            else:
                logger.warning(
                    "Sink rejected %d edit(s): %s",
                    len(snapshot),
                    "; ".join(v.message for v in response.violations),
                )

            self.last_result = FlushResult(
                success=response.success,
                flushed=len(snapshot),
                response=response,
                user_ids=user_ids,
            )
            return self.last_result

    async def _flush_quietly(self) -> None:
        await self.flush()

    async def wait(self) -> Optional[FlushResult]:
        """Wait for a scheduled flush and return the latest result."""
        if self._debouncer is not None:
            await self._debouncer.wait()
        return self.last_result
