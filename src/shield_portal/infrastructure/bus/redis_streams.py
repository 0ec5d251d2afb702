"""Redis Streams consumer for order events published by the admin back office."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)

OnStreamEventCallback = Callable[[str, dict[str, Any]], Coroutine[Any, Any, None]]


class RedisStreamConsumer:
    """XREADGROUP loop over one stream, acking each entry once handled.

    Entries whose handler raises stay pending in the group and are logged.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        stream: str,
        group: str,
        consumer: str,
        callback: OnStreamEventCallback,
        *,
        batch_size: int = 10,
        block_ms: int = 5000,
        retry_delay: float = 5.0,
    ) -> None:
        self._redis = redis
        self._stream = stream
        self._group = group
        self._consumer = consumer
        self._callback = callback
        self._batch_size = batch_size
        self._block_ms = block_ms
        self._retry_delay = retry_delay
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def ensure_group(self) -> None:
        try:
            await self._redis.xgroup_create(self._stream, self._group, id="$", mkstream=True)
            logger.info("Created consumer group %s on %s", self._group, self._stream)
        except aioredis.ResponseError as exc:
            if "BUSYGROUP" not in str(exc):
                raise
            logger.debug("Consumer group %s already exists", self._group)

    async def start(self) -> None:
        await self.ensure_group()
        self._task = asyncio.create_task(self._consume(), name=f"stream-consumer-{self._stream}")
        logger.info("Stream consumer started: stream=%s group=%s", self._stream, self._group)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Stream consumer stopped: stream=%s", self._stream)

    async def _consume(self) -> None:
        while True:
            try:
                entries = await self._redis.xreadgroup(
                    groupname=self._group,
                    consumername=self._consumer,
                    streams={self._stream: ">"},
                    count=self._batch_size,
                    block=self._block_ms,
                )
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("XREADGROUP on %s failed, retrying in %.0fs", self._stream, self._retry_delay)
                await asyncio.sleep(self._retry_delay)
                continue

            for _stream_name, messages in entries or ():
                for entry_id, fields in messages:
                    await self._dispatch(entry_id, fields)

    async def _dispatch(self, entry_id: str, fields: dict[str, Any]) -> None:
        event_type = fields.get("event_type", "unknown")
        try:
            await self._callback(event_type, fields)
        except Exception:
            logger.exception("Error handling %s entry %s", event_type, entry_id)
            return
        try:
            await self._redis.xack(self._stream, self._group, entry_id)
        except Exception:
            logger.exception("XACK of %s entry %s failed; entry stays pending", event_type, entry_id)
