from __future__ import annotations

import json

import pytest

from shield_portal.application.exceptions import ProtocolError, UnknownMessageTypeError
from shield_portal.infrastructure.ws.protocol import (
    AuthMessage,
    NotificationMessage,
    NotificationPayload,
    OrderUpdateMessage,
    OrderUpdatePayload,
    PongMessage,
    decode_inbound,
    decode_outbound,
    encode,
)


def test_order_update_uses_camel_case_on_the_wire():
    msg = OrderUpdateMessage(payload=OrderUpdatePayload(order_id=42, status="In Progress", timestamp=1))

    assert json.loads(encode(msg)) == {
        "type": "orderUpdate",
        "payload": {"orderId": 42, "status": "In Progress", "timestamp": 1},
    }


def test_notification_omits_missing_order_id():
    msg = NotificationMessage(payload=NotificationPayload(title="t", message="m", timestamp=1))

    assert json.loads(encode(msg))["payload"] == {"title": "t", "message": "m", "timestamp": 1}


def test_pong_has_no_payload():
    assert encode(PongMessage()) == '{"type":"pong"}'


def test_decode_auth():
    msg = decode_inbound('{"type": "auth", "payload": {"userId": 7}}')

    assert isinstance(msg, AuthMessage)
    assert msg.payload.user_id == 7
    assert msg.payload.token is None


def test_decode_bare_pong():
    assert isinstance(decode_inbound('{"type": "pong"}'), PongMessage)


def test_unknown_inbound_type():
    with pytest.raises(UnknownMessageTypeError) as exc_info:
        decode_inbound('{"type": "subscribe", "payload": {}}')

    assert exc_info.value.message_type == "subscribe"


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        '{"payload": {}}',
        '{"type": "auth", "payload": {}}',
        "[1, 2]",
    ],
)
def test_malformed_inbound_frames(raw):
    with pytest.raises(ProtocolError):
        decode_inbound(raw)


def test_server_messages_are_not_valid_client_messages():
    with pytest.raises(UnknownMessageTypeError):
        decode_inbound('{"type": "ping", "payload": {"timestamp": 1}}')


def test_decode_outbound_order_update():
    msg = decode_outbound('{"type": "orderUpdate", "payload": {"orderId": 1, "status": "Completed", "timestamp": 5}}')

    assert isinstance(msg, OrderUpdateMessage)
    assert msg.payload.order_id == 1
