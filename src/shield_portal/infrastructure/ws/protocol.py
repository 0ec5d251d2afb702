"""Realtime wire envelopes: ``{"type": ..., "payload": ...}`` JSON frames."""
from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from shield_portal.application.exceptions import ProtocolError, UnknownMessageTypeError


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# Server → Client


class OrderUpdatePayload(_WireModel):
    order_id: int
    status: str
    timestamp: int


class NotificationPayload(_WireModel):
    title: str
    message: str
    timestamp: int
    order_id: int | None = None


class PingPayload(_WireModel):
    timestamp: int


class OrderUpdateMessage(_WireModel):
    type: Literal["orderUpdate"] = "orderUpdate"
    payload: OrderUpdatePayload


class NotificationMessage(_WireModel):
    type: Literal["notification"] = "notification"
    payload: NotificationPayload


class PingMessage(_WireModel):
    type: Literal["ping"] = "ping"
    payload: PingPayload


OutboundMessage = Annotated[
    Union[OrderUpdateMessage, NotificationMessage, PingMessage],
    Field(discriminator="type"),
]


# Client → Server


class AuthPayload(_WireModel):
    user_id: int
    token: str | None = None


class AuthMessage(_WireModel):
    type: Literal["auth"] = "auth"
    payload: AuthPayload


class PongMessage(_WireModel):
    type: Literal["pong"] = "pong"
    payload: dict[str, Any] | None = None


InboundMessage = Annotated[
    Union[AuthMessage, PongMessage],
    Field(discriminator="type"),
]

_outbound_adapter: TypeAdapter[OutboundMessage] = TypeAdapter(OutboundMessage)
_inbound_adapter: TypeAdapter[InboundMessage] = TypeAdapter(InboundMessage)


def encode(message: _WireModel) -> str:
    return message.model_dump_json(by_alias=True, exclude_none=True)


def _decode(adapter: TypeAdapter[Any], raw: str | bytes) -> Any:
    try:
        return adapter.validate_json(raw)
    except PydanticValidationError as exc:
        errors = exc.errors()
        if errors and errors[0]["type"] == "union_tag_invalid":
            ctx = errors[0].get("ctx") or {}
            raise UnknownMessageTypeError(ctx.get("tag")) from exc
        raise ProtocolError(f"malformed frame: {exc.error_count()} error(s)") from exc


def decode_inbound(raw: str | bytes) -> InboundMessage:
    """Parse a client frame. Raises ProtocolError / UnknownMessageTypeError."""
    return _decode(_inbound_adapter, raw)


def decode_outbound(raw: str | bytes) -> OutboundMessage:
    """Parse a server frame (client side)."""
    return _decode(_outbound_adapter, raw)
