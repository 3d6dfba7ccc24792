"""Tests for batched manual edits."""

import asyncio

import pytest

from breakhelper.domain.intervals import MalformedTimeError
from breakhelper.domain.models import (
    BreakScheduleUpdateResponse,
    BreakType,
    Severity,
    ValidationViolation,
)
from breakhelper.scheduling.collaborators import InMemorySink, PersistenceSink
from breakhelper.scheduling.edits import EditReconciler, ReconcilerConfig

DATE = "2026-01-05"


class FailingSink(PersistenceSink):
    def __init__(self):
        self.attempts = 0

    async def save_interval_updates(self, updates):
        self.attempts += 1
        raise ConnectionError("store unavailable")


class RejectingSink(PersistenceSink):
    async def save_interval_updates(self, updates):
        return BreakScheduleUpdateResponse(
            success=False,
            violations=[
                ValidationViolation("break_ordering", "HB1 must come before B", Severity.ERROR)
            ],
        )


class EditingSink(InMemorySink):
    """Sink that records a new edit while a batch is being saved."""

    def __init__(self):
        super().__init__()
        self.reconciler = None

    async def save_interval_updates(self, updates):
        self.reconciler.record_edit("U001", "10:00:00", BreakType.B)
        self.reconciler.record_edit("U002", "11:00:00", BreakType.HB2)
        return await super().save_interval_updates(updates)


@pytest.fixture
def sink():
    """An in-memory sink."""
    return InMemorySink()


class TestRecordEdit:
    """Tests for buffering edits."""

    def test_latest_edit_per_cell_wins(self, sink):
        """A second edit to the same cell replaces the first."""
        reconciler = EditReconciler(sink, DATE)
        reconciler.record_edit("U001", "10:00", BreakType.HB1)
        reconciler.record_edit("U001", "10:00:00", BreakType.IN)

        assert reconciler.pending_count == 1
        assert reconciler.pending_edit("U001", "10:00:00") is BreakType.IN

    def test_invalid_edits_rejected(self, sink):
        """Off-grid intervals and empty user ids are rejected."""
        reconciler = EditReconciler(sink, DATE)
        with pytest.raises(MalformedTimeError):
            reconciler.record_edit("U001", "10:10:00", BreakType.HB1)
        with pytest.raises(ValueError):
            reconciler.record_edit("", "10:00:00", BreakType.HB1)
        assert reconciler.pending_count == 0

    def test_batch_groups_by_agent(self, sink):
        """One request per agent, intervals in time order."""
        reconciler = EditReconciler(sink, DATE)
        reconciler.record_edit("U001", "12:45:00", BreakType.B)
        reconciler.record_edit("U002", "10:00:00", BreakType.HB1)
        reconciler.record_edit("U001", "12:30:00", BreakType.B)

        batch = reconciler.build_batch()

        assert [r.user_id for r in batch] == ["U001", "U002"]
        assert [i.interval_start for i in batch[0].intervals] == ["12:30:00", "12:45:00"]
        assert all(r.schedule_date == DATE for r in batch)


class TestFlush:
    """Tests for flushing edits to the sink."""

    def test_flush_sends_one_batch(self, sink):
        """All pending edits go out together and the buffer empties."""
        reconciler = EditReconciler(sink, DATE)
        reconciler.record_edit("U001", "10:00:00", BreakType.HB1)
        reconciler.record_edit("U002", "10:15:00", BreakType.HB1)

        result = asyncio.run(reconciler.flush())

        assert result.success
        assert result.flushed == 2
        assert result.user_ids == ["U001", "U002"]
        assert len(sink.batches) == 1
        assert reconciler.pending_count == 0

    def test_empty_flush_is_noop(self, sink):
        """Nothing pending means nothing sent."""
        result = asyncio.run(EditReconciler(sink, DATE).flush())
        assert result.success
        assert sink.batches == []

    def test_failure_keeps_edits(self):
        """A raising sink leaves the edits pending for the next flush."""
        failing = FailingSink()
        reconciler = EditReconciler(failing, DATE)
        reconciler.record_edit("U001", "10:00:00", BreakType.HB1)

        result = asyncio.run(reconciler.flush())

        assert not result.success
        assert isinstance(result.error, ConnectionError)
        assert reconciler.pending_count == 1
        assert reconciler.last_result is result

    def test_rejection_keeps_edits(self):
        """A sink that reports failure leaves the edits pending."""
        reconciler = EditReconciler(RejectingSink(), DATE)
        reconciler.record_edit("U001", "10:00:00", BreakType.HB1)

        result = asyncio.run(reconciler.flush())

        assert not result.success
        assert result.response.violations[0].rule_name == "break_ordering"
        assert reconciler.pending_count == 1

    def test_edits_during_flush_are_retained(self):
        """Edits made while a batch is in flight survive its success."""
        editing = EditingSink()
        reconciler = EditReconciler(editing, DATE)
        editing.reconciler = reconciler
        reconciler.record_edit("U001", "10:00:00", BreakType.HB1)
        reconciler.record_edit("U001", "10:15:00", BreakType.HB1)

        result = asyncio.run(reconciler.flush())

        assert result.success
        assert result.flushed == 2
        assert reconciler.pending_count == 2
        assert reconciler.pending_edit("U001", "10:00:00") is BreakType.B
        assert reconciler.pending_edit("U001", "10:15:00") is None
        assert reconciler.pending_edit("U002", "11:00:00") is BreakType.HB2


class TestDebouncedFlush:
    """Tests for quiet-period flushing."""

    def test_rapid_edits_collapse_into_one_batch(self, sink):
        """Edits inside the quiet period are saved together, latest value per cell."""
        reconciler = EditReconciler(sink, DATE, ReconcilerConfig(quiet_period_seconds=0.01))

        async def scenario():
            reconciler.init()
            reconciler.record_edit("U001", "10:00:00", BreakType.HB1)
            reconciler.record_edit("U001", "10:00:00", BreakType.IN)
            reconciler.record_edit("U002", "13:00:00", BreakType.B)
            result = await reconciler.wait()
            reconciler.dispose()
            return result

        result = asyncio.run(scenario())

        assert result.success
        assert len(sink.batches) == 1
        sent = {
            (r.user_id, i.interval_start): i.break_type
            for r in sink.batches[0]
            for i in r.intervals
        }
        assert sent == {
            ("U001", "10:00:00"): BreakType.IN,
            ("U002", "13:00:00"): BreakType.B,
        }

    def test_close_flushes_then_disposes(self, sink):
        """close saves what is pending."""
        reconciler = EditReconciler(sink, DATE, ReconcilerConfig(quiet_period_seconds=10))

        async def scenario():
            reconciler.init()
            reconciler.record_edit("U001", "10:00:00", BreakType.HB1)
            return await reconciler.close()

        result = asyncio.run(scenario())

        assert result.success
        assert len(sink.batches) == 1
        assert reconciler.pending_count == 0

    def test_dispose_discards_unsaved_edits(self, sink):
        """dispose drops the buffer without saving."""
        reconciler = EditReconciler(sink, DATE)
        reconciler.record_edit("U001", "10:00:00", BreakType.HB1)
        reconciler.dispose()
        assert reconciler.pending_count == 0
        assert sink.batches == []

    def test_invalid_date_rejected(self, sink):
        """The reconciler is bound to a valid schedule date."""
        with pytest.raises(ValueError):
            EditReconciler(sink, "2026/01/05")
