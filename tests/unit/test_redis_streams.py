from __future__ import annotations

import asyncio
from typing import Any

import pytest

from shield_portal.infrastructure.bus.redis_streams import RedisStreamConsumer
from tests.conftest import settle


class FakeStreamRedis:
    """Serves queued XREADGROUP batches; optionally fails the next XACKs."""

    def __init__(self, batches: list[list[tuple[str, dict[str, Any]]]], *, failing_acks: int = 0) -> None:
        self._batches = list(batches)
        self.failing_acks = failing_acks
        self.acked: list[str] = []
        self.reads = 0

    async def xgroup_create(self, *args: Any, **kwargs: Any) -> None:
        return None

    async def xreadgroup(self, *, groupname, consumername, streams, count, block):
        self.reads += 1
        if not self._batches:
            await asyncio.sleep(0.001)
            return []
        [stream] = streams
        return [(stream, self._batches.pop(0))]

    async def xack(self, stream: str, group: str, entry_id: str) -> int:
        if self.failing_acks:
            self.failing_acks -= 1
            raise ConnectionError("redis blip")
        self.acked.append(entry_id)
        return 1


def _consumer(redis: FakeStreamRedis, handled: list[str]) -> RedisStreamConsumer:
    async def callback(event_type: str, fields: dict[str, Any]) -> None:
        if fields.get("boom"):
            raise ValueError("handler failed")
        handled.append(fields["order_id"])

    return RedisStreamConsumer(redis, "portal.orders", "portal-realtime", "test", callback, retry_delay=0.001)


@pytest.mark.asyncio
async def test_entries_are_acked_after_handling():
    redis = FakeStreamRedis([[("1-0", {"event_type": "x", "order_id": "1"})]])
    handled: list[str] = []
    consumer = _consumer(redis, handled)

    await consumer.start()
    await settle()
    await consumer.stop()

    assert handled == ["1"]
    assert redis.acked == ["1-0"]


@pytest.mark.asyncio
async def test_failed_handler_leaves_entry_pending():
    redis = FakeStreamRedis([[("1-0", {"event_type": "x", "order_id": "1", "boom": "1"})]])
    consumer = _consumer(redis, [])

    await consumer.start()
    await settle()
    await consumer.stop()

    assert redis.acked == []


@pytest.mark.asyncio
async def test_ack_failure_does_not_stop_the_consumer():
    redis = FakeStreamRedis(
        [
            [("1-0", {"event_type": "x", "order_id": "1"})],
            [("2-0", {"event_type": "x", "order_id": "2"})],
        ],
        failing_acks=1,
    )
    handled: list[str] = []
    consumer = _consumer(redis, handled)

    await consumer.start()
    await settle()
    assert consumer.running
    await consumer.stop()

    assert handled == ["1", "2"]
    assert redis.acked == ["2-0"]
