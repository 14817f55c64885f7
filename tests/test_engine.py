"""Tests for the scheduling engine wiring and restart behaviour."""

from datetime import timedelta

import pytest

from courier.scheduling import SchedulingEngine
from courier.scheduling.persistence import QUEUES_KEY
from courier.storage import FileKeyValueStore, MemoryKeyValueStore
from tests.conftest import ManualTimers, RecordingSender


class TestSchedulingEngine:
    """Tests for SchedulingEngine."""

    @pytest.mark.asyncio
    async def test_restart_round_trip(self, tmp_path, clock, post):
        store = FileKeyValueStore(tmp_path / "state")
        first = SchedulingEngine(store, RecordingSender(), ManualTimers(), clock=clock)
        await first.start()

        await first.queues.create_queue("daily", "0 9 * * *", "town-square", "alice")
        await first.queues.add_message("daily", "standup time")
        deferred = await first.deferrals.defer(post, timedelta(hours=2))
        await first.mailbox.enqueue_for_channel(post, ["alice", "bob"])
        await first.stop()

        sender = RecordingSender()
        timers = ManualTimers()
        second = SchedulingEngine(store, sender, timers, clock=clock)
        await second.start()

        assert second.queues.get_queue("daily").messages == ["standup time"]
        assert [e.id for e in second.deferrals.pending()] == [deferred.id]
        assert list(second.mailbox.pending()) == ["bob"]
        assert {t.label for t in timers.armed} == {
            "check queue daily",
            f"defer message {deferred.id}",
        }
        assert sender.posts == []

    @pytest.mark.asyncio
    async def test_overdue_deferral_replayed_on_start(self, clock, post):
        store = MemoryKeyValueStore()
        first = SchedulingEngine(store, RecordingSender(), ManualTimers(), clock=clock)
        await first.start()
        await first.deferrals.defer(post, timedelta(minutes=5))

        clock.advance(timedelta(hours=1))
        sender = RecordingSender()
        second = SchedulingEngine(store, sender, ManualTimers(), clock=clock)
        await second.start()

        assert sender.posts == [post]
        assert second.deferrals.pending() == []

    @pytest.mark.asyncio
    async def test_presence_signal_flushes_mailbox(self, store, sender, timers, post):
        engine = SchedulingEngine(store, sender, timers)
        await engine.start()
        await engine.mailbox.enqueue("bob", post)

        assert await engine.presence_signal("bob") == 1
        assert sender.posts == [post]

    @pytest.mark.asyncio
    async def test_corrupt_state_does_not_block_start(self, sender, timers):
        store = MemoryKeyValueStore({QUEUES_KEY: b"garbage"})
        engine = SchedulingEngine(store, sender, timers)

        await engine.start()

        assert engine.started is True
        assert engine.queues.list_queues() == []

    @pytest.mark.asyncio
    async def test_start_and_stop_are_idempotent(self, store, sender):
        engine = SchedulingEngine(store, sender)

        await engine.start()
        await engine.start()
        await engine.stop()
        await engine.stop()

        assert engine.started is False
