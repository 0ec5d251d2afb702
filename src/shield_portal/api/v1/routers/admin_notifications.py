from __future__ import annotations

from fastapi import APIRouter

from shield_portal.api.deps import CurrentAdmin, GatewayDep
from shield_portal.api.v1.schemas.notifications import (
    DeliveryResponse,
    NotificationRequest,
    OrderStatusEventRequest,
)
from shield_portal.services.order_notifications import notify_order_status_changed

router = APIRouter(prefix="/api/admin", tags=["admin-notifications"])


@router.post("/orders/{order_id}/status-events", response_model=DeliveryResponse)
async def order_status_changed(
    order_id: int,
    body: OrderStatusEventRequest,
    _admin: CurrentAdmin,
    gateway: GatewayDep,
) -> DeliveryResponse:
    """Hook for the order back office, called after a status change is saved."""
    delivered = await notify_order_status_changed(gateway, order_id, body.user_id, body.status)
    return DeliveryResponse(delivered=delivered)


@router.post("/notifications", response_model=DeliveryResponse)
async def push_notification(
    body: NotificationRequest,
    _admin: CurrentAdmin,
    gateway: GatewayDep,
) -> DeliveryResponse:
    if body.user_id is None:
        delivered = await gateway.broadcast_notification(
            body.title, body.message, order_id=body.order_id,
        )
    else:
        delivered = await gateway.send_notification(
            body.user_id, body.title, body.message, order_id=body.order_id,
        )
    return DeliveryResponse(delivered=delivered)
