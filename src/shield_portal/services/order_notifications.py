from __future__ import annotations

import logging

from shield_portal.domain.value_objects.enums import OrderStatus
from shield_portal.infrastructure.ws.gateway import RealtimeGateway

logger = logging.getLogger(__name__)


async def notify_order_status_changed(
    gateway: RealtimeGateway,
    order_id: int,
    user_id: int,
    new_status: OrderStatus,
) -> int:
    """Push an ``orderUpdate`` to the order owner's live connections.

    Called after the status change has been persisted. Returns how many
    connections received it; zero means the event was dropped.
    """
    delivered = await gateway.send_order_update(order_id, user_id, new_status)
    if not delivered:
        logger.info(
            "Order %d status %s not delivered: user %d has no live connection",
            order_id, new_status, user_id,
        )
    return delivered
