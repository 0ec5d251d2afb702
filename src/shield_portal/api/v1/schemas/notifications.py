from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shield_portal.domain.value_objects.enums import OrderStatus


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OrderStatusEventRequest(_CamelModel):
    user_id: int
    status: OrderStatus


class NotificationRequest(_CamelModel):
    user_id: int | None = None
    title: str = Field(min_length=1)
    message: str = Field(min_length=1)
    order_id: int | None = None


class DeliveryResponse(_CamelModel):
    delivered: int
