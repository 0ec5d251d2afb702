"""Turns ``order.status_changed`` stream entries into realtime pushes."""
from __future__ import annotations

import logging
import uuid
from typing import Any

import redis.asyncio as aioredis

from shield_portal.config import Settings
from shield_portal.domain.value_objects.enums import OrderStatus
from shield_portal.infrastructure.bus.redis_streams import OnStreamEventCallback, RedisStreamConsumer
from shield_portal.infrastructure.ws.gateway import RealtimeGateway
from shield_portal.services.order_notifications import notify_order_status_changed

logger = logging.getLogger(__name__)

ORDER_STATUS_CHANGED = "order.status_changed"


def build_event_handler(gateway: RealtimeGateway) -> OnStreamEventCallback:
    async def _handle_event(event_type: str, fields: dict[str, Any]) -> None:
        if event_type == ORDER_STATUS_CHANGED:
            await _handle_order_status_changed(gateway, fields)
        else:
            logger.debug("Ignoring stream event: %s", event_type)

    return _handle_event


async def _handle_order_status_changed(gateway: RealtimeGateway, fields: dict[str, Any]) -> None:
    try:
        order_id = int(fields["order_id"])
        user_id = int(fields["user_id"])
        status = OrderStatus(fields["status"])
    except (KeyError, ValueError):
        logger.warning("Malformed %s event dropped: %r", ORDER_STATUS_CHANGED, fields)
        return

    delivered = await notify_order_status_changed(gateway, order_id, user_id, status)
    logger.info(
        "Order %d status %s → %s pushed to %d connection(s)",
        order_id, fields.get("old_status") or "?", status, delivered,
    )


def create_order_events_consumer(
    redis: aioredis.Redis,
    gateway: RealtimeGateway,
    settings: Settings,
) -> RedisStreamConsumer:
    return RedisStreamConsumer(
        redis=redis,
        stream=settings.ORDER_EVENTS_STREAM,
        group=settings.ORDER_EVENTS_GROUP,
        consumer=f"portal-{uuid.uuid4().hex[:8]}",
        callback=build_event_handler(gateway),
    )
