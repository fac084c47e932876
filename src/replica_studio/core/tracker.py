"""Knowledge base status tracker.

Keeps a cached snapshot of one replica's knowledge base and polls the
gateway until every item has reached a terminal status.

How polling works:
- Each cycle re-lists the whole collection (there is no delta endpoint)
- If any item is still in flight, the next cycle runs after poll_interval
- If all items are terminal, the loop ends
- invalidate() wakes a sleeping loop, or starts a new one

One stuck item keeps the whole collection polling. Collections are small,
so this is accepted.
"""

import asyncio
import inspect
from collections import Counter
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Union

from replica_studio.entities.knowledge import (
    KnowledgeItem,
    KnowledgeKind,
    KnowledgeStatus,
    is_terminal,
    status_info,
)
from replica_studio.gateway.client import SensayGateway
from replica_studio.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_POLL_INTERVAL = 5.0

SnapshotListener = Callable[[list[KnowledgeItem]], None]
ConfirmCallback = Callable[[int], Union[bool, Awaitable[bool]]]


class KnowledgeTracker:
    """Polling state machine for one replica's knowledge base."""

    def __init__(
        self,
        gateway: SensayGateway,
        replica_id: str,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the tracker.

        Args:
            gateway: Gateway used to list and delete items
            replica_id: Replica whose knowledge base is tracked
            poll_interval: Seconds between fetches while items are in flight
            sleep: Delay function (tests inject a fake)
        """
        self.gateway = gateway
        self.replica_id = replica_id
        self.poll_interval = poll_interval
        self._sleep = sleep

        self.items: list[KnowledgeItem] = []
        self.stale = True
        self.last_refreshed_at: Optional[datetime] = None
        self.fetch_count = 0

        self._task: Optional[asyncio.Task] = None
        self._wake = asyncio.Event()
        self._listeners: list[SnapshotListener] = []
        self._next_placeholder_id = -1

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    async def refresh(self) -> Optional[list[KnowledgeItem]]:
        """Re-fetch the whole collection and replace the snapshot.

        Returns:
            The new snapshot, or None if the fetch failed (the previous
            snapshot is kept)
        """
        self.fetch_count += 1
        items = await self.gateway.list_knowledge_base(self.replica_id)
        if items is None:
            logger.warning("knowledge_refresh_failed", replica_id=self.replica_id)
            return None

        self.items = items
        self.stale = False
        self.last_refreshed_at = datetime.now(timezone.utc)
        logger.info(
            "knowledge_refresh_completed",
            replica_id=self.replica_id,
            item_count=len(items),
            in_flight=sum(1 for item in items if not item.terminal),
        )

        for listener in list(self._listeners):
            try:
                listener(self.items)
            except Exception:
                # A broken listener must not end the poll loop
                logger.exception("knowledge_listener_failed", replica_id=self.replica_id)
        return self.items

    def needs_polling(self) -> bool:
        """True while any cached item is in a non-terminal status."""
        return any(not is_terminal(item.status) for item in self.items)

    def get(self, item_id: int) -> Optional[KnowledgeItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def counts(self) -> Counter:
        """Number of cached items per outcome (in flight, success, failure)."""
        return Counter(status_info(item.status).outcome for item in self.items)

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Call ``listener`` with each new snapshot; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def add_placeholder(self, kind: KnowledgeKind, title: Optional[str] = None) -> KnowledgeItem:
        """Show a just-submitted item until the next refresh replaces it."""
        now = datetime.now(timezone.utc)
        placeholder = KnowledgeItem(
            id=self._next_placeholder_id,
            kind=kind,
            title=title,
            status=KnowledgeStatus.NEW,
            created_at=now,
            updated_at=now,
            pending=True,
        )
        self._next_placeholder_id -= 1
        self.items = [*self.items, placeholder]
        return placeholder

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    @property
    def polling(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Start the poll loop; a running loop is reused."""
        if self.polling:
            return self._task
        self._wake.clear()
        self._task = asyncio.create_task(self._poll_loop())
        logger.debug("knowledge_polling_started", replica_id=self.replica_id)
        return self._task

    def stop(self) -> None:
        """Cancel the poll loop (the owning view went away)."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            logger.debug("knowledge_polling_stopped", replica_id=self.replica_id)
        self._task = None

    def invalidate(self) -> None:
        """Mark the snapshot stale and make sure a fetch happens soon."""
        self.stale = True
        if self.polling:
            self._wake.set()
        else:
            self.start()

    async def wait_until_settled(self) -> None:
        """Wait for the current poll loop to finish."""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    async def _poll_loop(self) -> None:
        while True:
            self._wake.clear()
            await self.refresh()
            if not self.needs_polling() and not self._wake.is_set():
                logger.info("knowledge_polling_settled", replica_id=self.replica_id, item_count=len(self.items))
                return
            await self._wait_for_next_poll()

    async def _wait_for_next_poll(self) -> None:
        sleeper = asyncio.ensure_future(self._sleep(self.poll_interval))
        waker = asyncio.ensure_future(self._wake.wait())
        try:
            await asyncio.wait({sleeper, waker}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for pending in (sleeper, waker):
                if not pending.done():
                    pending.cancel()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def delete(self, item_id: int, confirm: ConfirmCallback) -> bool:
        """Delete an item after explicit confirmation.

        The item stays in the snapshot until the next refresh drops it.

        Returns:
            True if the platform accepted the delete
        """
        if item_id < 0:
            logger.info("knowledge_delete_skipped_placeholder", item_id=item_id)
            return False

        decision = confirm(item_id)
        if inspect.isawaitable(decision):
            decision = await decision
        if not decision:
            logger.info("knowledge_delete_cancelled", replica_id=self.replica_id, item_id=item_id)
            return False

        deleted = await self.gateway.delete_knowledge_item(self.replica_id, item_id)
        if deleted:
            self.invalidate()
        return deleted

    def reset(self) -> None:
        """Forget everything; used after the session is reconfigured."""
        self.stop()
        self.items = []
        self.stale = True
        self.last_refreshed_at = None


__all__ = ["DEFAULT_POLL_INTERVAL", "KnowledgeTracker"]
