"""Unit tests for KnowledgeTracker."""

import asyncio

import pytest

from replica_studio.core.tracker import KnowledgeTracker
from replica_studio.entities.knowledge import KnowledgeKind, KnowledgeStatus, StatusOutcome

REPLICA = "r1"


@pytest.fixture
def tracker(gateway, clock):
    tracker = KnowledgeTracker(gateway, REPLICA, poll_interval=5.0, sleep=clock.sleep)
    yield tracker
    tracker.stop()


async def _never(delay):
    await asyncio.Event().wait()


async def _spin_until(predicate, attempts=200):
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


class TestSnapshot:
    async def test_refresh_replaces_snapshot(self, tracker, platform):
        platform.advance_on_fetch = False
        platform.add_item(REPLICA, "text", "FAQ", status="READY")

        items = await tracker.refresh()

        assert [i.title for i in items] == ["FAQ"]
        assert tracker.items == items
        assert not tracker.stale
        assert tracker.last_refreshed_at is not None

    async def test_failed_refresh_keeps_snapshot(self, tracker, platform, notifier):
        platform.advance_on_fetch = False
        platform.add_item(REPLICA, "text", "FAQ", status="RAW_TEXT")
        await tracker.refresh()
        platform.fail(f"GET /replicas/{REPLICA}/knowledge-base")

        assert await tracker.refresh() is None

        assert [i.title for i in tracker.items] == ["FAQ"]
        assert len(notifier.errors) == 1
        assert tracker.fetch_count == 2

    async def test_counts_and_get(self, tracker, platform):
        platform.advance_on_fetch = False
        platform.add_item(REPLICA, "text", "A", status="READY")
        platform.add_item(REPLICA, "file", "B", status="UNPROCESSABLE")
        item = platform.add_item(REPLICA, "website", "C", status="PROCESSED_TEXT")
        await tracker.refresh()

        counts = tracker.counts()

        assert counts[StatusOutcome.SUCCESS] == 1
        assert counts[StatusOutcome.FAILURE] == 1
        assert counts[StatusOutcome.IN_FLIGHT] == 1
        assert tracker.get(item["id"]).title == "C"
        assert tracker.get(12345) is None

    async def test_unknown_status_keeps_polling(self, tracker, platform):
        platform.advance_on_fetch = False
        platform.add_item(REPLICA, "text", "A", status="EMBEDDING")
        await tracker.refresh()

        assert tracker.items[0].status == KnowledgeStatus.UNKNOWN
        assert tracker.needs_polling()

    async def test_unrecognized_type_is_tracked(self, tracker, platform):
        platform.advance_on_fetch = False
        platform.add_item(REPLICA, "pdf", "Floor plan", status="RAW_TEXT")

        await tracker.refresh()

        assert [i.kind for i in tracker.items] == [KnowledgeKind.OTHER]
        assert tracker.needs_polling()

    async def test_placeholder_replaced_on_refresh(self, tracker, platform):
        platform.advance_on_fetch = False
        first = tracker.add_placeholder(KnowledgeKind.TEXT, "FAQ")
        second = tracker.add_placeholder(KnowledgeKind.FILE, None)

        assert (first.id, second.id) == (-1, -2)
        assert first.pending and first.status == KnowledgeStatus.NEW
        assert tracker.needs_polling()

        await tracker.refresh()
        assert tracker.items == []

    async def test_subscribe_and_unsubscribe(self, tracker, platform):
        snapshots = []
        unsubscribe = tracker.subscribe(lambda items: snapshots.append(len(items)))
        platform.add_item(REPLICA, "text", "A", status="READY")

        await tracker.refresh()
        unsubscribe()
        await tracker.refresh()

        assert snapshots == [1]

    async def test_failing_listener_does_not_stop_polling(self, tracker, platform, clock):
        def broken(items):
            raise RuntimeError("render failed")

        snapshots = []
        tracker.subscribe(broken)
        tracker.subscribe(lambda items: snapshots.append([i.status for i in items]))
        platform.add_item(REPLICA, "text", "FAQ")

        tracker.start()
        await tracker.wait_until_settled()

        assert snapshots[-1] == [KnowledgeStatus.READY]
        assert tracker.fetch_count == 3


class TestPolling:
    async def test_all_terminal_fetches_once(self, tracker, platform, clock):
        platform.add_item(REPLICA, "text", "A", status="READY")
        platform.add_item(REPLICA, "file", "B", status="UNPROCESSABLE")

        tracker.start()
        await tracker.wait_until_settled()

        assert tracker.fetch_count == 1
        assert clock.delays == []
        assert not tracker.polling

    async def test_empty_collection_fetches_once(self, tracker, clock):
        tracker.start()
        await tracker.wait_until_settled()

        assert tracker.fetch_count == 1
        assert clock.delays == []

    async def test_polls_until_terminal(self, tracker, platform, clock):
        platform.add_item(REPLICA, "text", "FAQ", status="NEW")

        tracker.start()
        await tracker.wait_until_settled()

        # NEW -> RAW_TEXT -> PROCESSED_TEXT -> READY, one step per fetch
        assert tracker.fetch_count == 3
        assert clock.delays == [5.0, 5.0]
        assert tracker.items[0].status == KnowledgeStatus.READY

    async def test_one_stuck_item_keeps_collection_polling(self, tracker, platform, clock):
        platform.add_item(REPLICA, "text", "A", status="READY")
        platform.add_item(REPLICA, "file", "B", status="FILE_UPLOADED")

        tracker.start()
        await tracker.wait_until_settled()

        # FILE_UPLOADED -> RAW_TEXT -> PROCESSED_TEXT -> VECTOR_CREATED
        assert tracker.fetch_count == 3
        assert clock.delays == [5.0, 5.0]
        assert all(i.terminal for i in tracker.items)

    async def test_start_is_idempotent(self, gateway, platform):
        platform.add_item(REPLICA, "text", "A", status="NEW")
        tracker = KnowledgeTracker(gateway, REPLICA, sleep=_never)

        first = tracker.start()
        assert tracker.start() is first

        tracker.stop()
        assert not tracker.polling

    async def test_invalidate_restarts_settled_tracker(self, tracker, platform, clock):
        tracker.start()
        await tracker.wait_until_settled()
        assert tracker.fetch_count == 1

        platform.add_item(REPLICA, "text", "Newer", status="NEW")
        tracker.invalidate()
        assert tracker.polling
        await tracker.wait_until_settled()

        assert tracker.fetch_count == 4
        assert tracker.items[0].status == KnowledgeStatus.READY

    async def test_invalidate_wakes_sleeping_loop(self, gateway, platform):
        platform.advance_on_fetch = False
        platform.add_item(REPLICA, "text", "A", status="RAW_TEXT")
        tracker = KnowledgeTracker(gateway, REPLICA, sleep=_never)

        tracker.start()
        await _spin_until(lambda: tracker.fetch_count == 1)

        tracker.invalidate()
        await _spin_until(lambda: tracker.fetch_count == 2)

        assert tracker.polling
        tracker.stop()

    async def test_reset_clears_state(self, gateway, platform):
        platform.add_item(REPLICA, "text", "A", status="RAW_TEXT")
        tracker = KnowledgeTracker(gateway, REPLICA, sleep=_never)
        tracker.start()
        await _spin_until(lambda: tracker.items)

        tracker.reset()

        assert not tracker.polling
        assert tracker.items == []
        assert tracker.stale
        assert tracker.last_refreshed_at is None


class TestDelete:
    async def test_declined_confirmation_sends_nothing(self, tracker, platform):
        item = platform.add_item(REPLICA, "text", "A", status="READY")
        await tracker.refresh()

        deleted = await tracker.delete(item["id"], lambda item_id: False)

        assert deleted is False
        assert platform.requests_to("DELETE", "knowledge-base") == []
        assert tracker.get(item["id"]) is not None

    async def test_confirmed_delete_refreshes(self, tracker, platform):
        item = platform.add_item(REPLICA, "text", "A", status="READY")
        await tracker.refresh()
        asked = []

        async def confirm(item_id):
            asked.append(item_id)
            return True

        deleted = await tracker.delete(item["id"], confirm)
        await tracker.wait_until_settled()

        assert deleted is True
        assert asked == [item["id"]]
        assert tracker.items == []

    async def test_failed_delete_keeps_item(self, tracker, platform, notifier):
        item = platform.add_item(REPLICA, "text", "A", status="READY")
        await tracker.refresh()
        platform.fail(f"DELETE /replicas/{REPLICA}/knowledge-base")

        assert await tracker.delete(item["id"], lambda item_id: True) is False
        assert not tracker.polling
        assert tracker.get(item["id"]) is not None
        assert notifier.errors

    async def test_placeholder_cannot_be_deleted(self, tracker):
        placeholder = tracker.add_placeholder(KnowledgeKind.TEXT, "FAQ")
        asked = []

        assert await tracker.delete(placeholder.id, lambda item_id: asked.append(item_id) or True) is False
        assert asked == []
