"""
Tests for request epoch tracking and the completion timer.
"""

import pytest
import asyncio

from overlay_assistant.utils.epoch import EpochTracker


class TestEpochTracker:
    """Epoch counter semantics."""

    def test_begin_new_request_is_monotonic(self):
        tracker = EpochTracker()
        first = tracker.begin_new_request()
        second = tracker.begin_new_request()

        assert second == first + 1
        assert tracker.is_current(second)
        assert not tracker.is_current(first)

    @pytest.mark.asyncio
    async def test_scheduled_callback_fires_for_live_epoch(self):
        tracker = EpochTracker()
        epoch = tracker.begin_new_request()
        fired = []

        tracker.schedule(epoch, 0.01, lambda: fired.append(epoch))
        assert tracker.has_pending

        await asyncio.sleep(0.05)
        assert fired == [epoch]
        assert not tracker.has_pending

    @pytest.mark.asyncio
    async def test_new_request_cancels_pending_timer(self):
        tracker = EpochTracker()
        epoch = tracker.begin_new_request()
        fired = []

        tracker.schedule(epoch, 0.01, lambda: fired.append("unlock"))
        tracker.begin_new_request()

        await asyncio.sleep(0.05)
        assert fired == []
        assert not tracker.has_pending

    @pytest.mark.asyncio
    async def test_schedule_for_stale_epoch_is_ignored(self):
        tracker = EpochTracker()
        stale = tracker.begin_new_request()
        tracker.begin_new_request()
        fired = []

        tracker.schedule(stale, 0.0, lambda: fired.append("unlock"))

        await asyncio.sleep(0.02)
        assert fired == []
        assert not tracker.has_pending

    @pytest.mark.asyncio
    async def test_only_one_timer_is_pending(self):
        tracker = EpochTracker()
        epoch = tracker.begin_new_request()
        fired = []

        tracker.schedule(epoch, 0.01, lambda: fired.append("first"))
        tracker.schedule(epoch, 0.01, lambda: fired.append("second"))

        await asyncio.sleep(0.05)
        assert fired == ["second"]
