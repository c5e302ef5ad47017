"""Tests for the per-bet notification hub."""

import asyncio

import pytest

from wagerfeed.models import TopicKind
from wagerfeed.services.notifications import NotificationHub


@pytest.mark.asyncio
async def test_publish_reaches_every_current_subscriber(hub):
    first = hub.subscribe("bet-1", TopicKind.STATS)
    second = hub.subscribe("bet-1", TopicKind.STATS)
    other = hub.subscribe("bet-2", TopicKind.STATS)

    delivered = await hub.publish("bet-1", TopicKind.STATS)

    assert delivered == 2
    assert (await first.__anext__()).bet_id == "bet-1"
    assert (await second.__anext__()).kind == TopicKind.STATS
    assert other._queue.empty()


@pytest.mark.asyncio
async def test_kinds_are_separate_topics(hub):
    stats = hub.subscribe("bet-1", TopicKind.STATS)

    assert await hub.publish("bet-1", TopicKind.METADATA) == 0
    assert stats._queue.empty()


@pytest.mark.asyncio
async def test_publish_without_subscribers_is_a_noop(hub):
    assert await hub.publish("nobody", TopicKind.STATS) == 0
    assert hub.topic_count() == 0


@pytest.mark.asyncio
async def test_last_subscriber_leaving_removes_topic(hub):
    first = hub.subscribe("bet-1", TopicKind.STATS)
    second = hub.subscribe("bet-1", TopicKind.STATS)

    first.close()
    assert hub.subscriber_count("bet-1", TopicKind.STATS) == 1

    second.close()
    assert hub.topic_count() == 0
    assert hub.snapshot() == {}


@pytest.mark.asyncio
async def test_closing_ends_async_iteration():
    hub = NotificationHub()
    subscription = hub.subscribe("bet-1", TopicKind.METADATA)
    received = []

    async def consume():
        async for notification in subscription:
            received.append(notification.bet_id)

    consumer = asyncio.create_task(consume())
    await hub.publish("bet-1", TopicKind.METADATA)
    await asyncio.sleep(0)
    subscription.close()
    await asyncio.wait_for(consumer, timeout=1)

    assert received == ["bet-1"]


@pytest.mark.asyncio
async def test_full_queue_drops_extra_notifications():
    hub = NotificationHub(max_pending=2)
    subscription = hub.subscribe("bet-1", TopicKind.STATS)

    results = [await hub.publish("bet-1", TopicKind.STATS) for _ in range(4)]

    assert results == [1, 1, 0, 0]
    assert subscription._queue.qsize() == 2


@pytest.mark.asyncio
async def test_resubscribing_after_close_gets_new_notifications(hub):
    async with hub.subscribe("bet-1", TopicKind.STATS):
        pass
    assert hub.topic_count() == 0

    renewed = hub.subscribe("bet-1", TopicKind.STATS)
    assert await hub.publish("bet-1", TopicKind.STATS) == 1
    assert (await renewed.__anext__()).bet_id == "bet-1"


@pytest.mark.asyncio
async def test_close_all_detaches_everyone(hub):
    subs = [hub.subscribe(f"bet-{i}", TopicKind.STATS) for i in range(3)]

    hub.close_all()

    assert hub.topic_count() == 0
    assert all(s.closed for s in subs)
