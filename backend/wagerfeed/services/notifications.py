"""Per-bet publish/subscribe for change notifications.

A topic is keyed by (bet id, kind). Each subscriber owns a small queue; a
publish drops a notification into every queue attached to the topic at that
moment. Nothing is persisted or replayed. Notifications carry no state, they
only tell the client to re-fetch.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from wagerfeed.models import TopicKind

logger = logging.getLogger(__name__)

TopicKey = tuple[str, TopicKind]

_CLOSED = object()


@dataclass(frozen=True)
class Notification:
    bet_id: str
    kind: TopicKind
    published_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Subscription:
    """Live stream of notifications for one topic.

    Iterate with ``async for``; the stream ends only when ``close()`` is
    called, by the subscriber or by hub shutdown.
    """

    def __init__(self, hub: "NotificationHub", key: TopicKey, max_pending: int):
        self._hub = hub
        self.key = key
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
        self.closed = False

    @property
    def bet_id(self) -> str:
        return self.key[0]

    @property
    def kind(self) -> TopicKind:
        return self.key[1]

    def _deliver(self, notification: Notification) -> bool:
        try:
            self._queue.put_nowait(notification)
        except asyncio.QueueFull:
            # A pending cue already asks for the same refresh.
            return False
        return True

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._hub._detach(self)
        # Wake a blocked reader even if the queue is full.
        while True:
            try:
                self._queue.put_nowait(_CLOSED)
                break
            except asyncio.QueueFull:
                self._queue.get_nowait()

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Notification:
        if self.closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class NotificationHub:
    """Keyed registry of broadcast topics.

    A topic exists only while it has subscribers; the last one to detach
    removes it, so the registry never grows past the live audience.
    """

    def __init__(self, max_pending: int = 8):
        self._max_pending = max_pending
        self._topics: dict[TopicKey, set[Subscription]] = {}

    def subscribe(self, bet_id: str, kind: TopicKind) -> Subscription:
        key = (bet_id, kind)
        subscription = Subscription(self, key, self._max_pending)
        self._topics.setdefault(key, set()).add(subscription)
        logger.debug(f"Subscribed to {kind.value} for bet {bet_id}")
        return subscription

    def _detach(self, subscription: Subscription) -> None:
        subscribers = self._topics.get(subscription.key)
        if subscribers is None:
            return
        subscribers.discard(subscription)
        if not subscribers:
            del self._topics[subscription.key]

    async def publish(self, bet_id: str, kind: TopicKind) -> int:
        """Deliver one notification to every current subscriber; returns the count."""
        subscribers = self._topics.get((bet_id, kind))
        if not subscribers:
            return 0
        notification = Notification(bet_id=bet_id, kind=kind)
        delivered = sum(1 for sub in list(subscribers) if sub._deliver(notification))
        logger.debug(f"Published {kind.value} for bet {bet_id} to {delivered} subscriber(s)")
        return delivered

    def subscriber_count(self, bet_id: str, kind: TopicKind) -> int:
        return len(self._topics.get((bet_id, kind), ()))

    def topic_count(self) -> int:
        return len(self._topics)

    def snapshot(self) -> dict[str, int]:
        """Subscriber counts keyed by "kind:bet_id"."""
        return {f"{kind.value}:{bet_id}": len(subs) for (bet_id, kind), subs in self._topics.items()}

    def close_all(self) -> None:
        for subscribers in list(self._topics.values()):
            for subscription in list(subscribers):
                subscription.close()
        self._topics.clear()
