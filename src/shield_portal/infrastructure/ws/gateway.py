"""Connection lifecycle and message dispatch for the realtime channel."""
from __future__ import annotations

import logging
from typing import assert_never

from starlette.websockets import WebSocket

from shield_portal.application.exceptions import ProtocolError, UnknownMessageTypeError
from shield_portal.application.ports.auth import TokenVerifier
from shield_portal.application.ports.clock import Clock, epoch_ms
from shield_portal.infrastructure.ws.protocol import (
    AuthMessage,
    AuthPayload,
    NotificationMessage,
    NotificationPayload,
    OrderUpdateMessage,
    OrderUpdatePayload,
    OutboundMessage,
    PingMessage,
    PingPayload,
    PongMessage,
    decode_inbound,
    encode,
)
from shield_portal.infrastructure.ws.registry import Connection, ConnectionRegistry

logger = logging.getLogger(__name__)

WELCOME_TITLE = "Connected"
WELCOME_MESSAGE = "Connected to CyberShield WebSocket Server"

CLOSE_HEARTBEAT_TIMEOUT = 4008


class RealtimeGateway:
    """Pushes typed events to live connections and handles what they send back.

    Sends are best effort: a connection whose transport is closed or whose
    send fails is evicted, and nothing is queued for later delivery.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        clock: Clock,
        *,
        verifier: TokenVerifier | None = None,
        trust_client_auth: bool = False,
        max_missed_heartbeats: int = 3,
    ) -> None:
        self._registry = registry
        self._clock = clock
        self._verifier = verifier
        self._trust_client_auth = trust_client_auth
        self._max_missed_heartbeats = max_missed_heartbeats

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    def _now_ms(self) -> int:
        return epoch_ms(self._clock.now())

    # Lifecycle

    async def connect(self, socket: WebSocket, user_id: int | None = None) -> str:
        await socket.accept()
        connection_id = self._registry.register(socket, user_id)
        logger.info("Client connected: %s (user=%s)", connection_id, user_id)
        welcome = NotificationMessage(
            payload=NotificationPayload(
                title=WELCOME_TITLE,
                message=WELCOME_MESSAGE,
                timestamp=self._now_ms(),
            )
        )
        await self._send_raw(connection_id, encode(welcome))
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        if self._registry.unregister(connection_id) is not None:
            logger.info("Client disconnected: %s", connection_id)

    async def handle_text(self, connection_id: str, raw: str | bytes) -> None:
        try:
            msg = decode_inbound(raw)
        except UnknownMessageTypeError as exc:
            logger.info("Ignoring message of type %r from %s", exc.message_type, connection_id)
            return
        except ProtocolError as exc:
            logger.warning("Dropping frame from %s: %s", connection_id, exc.detail)
            return

        match msg:
            case AuthMessage():
                await self._handle_auth(connection_id, msg.payload)
            case PongMessage():
                self._registry.record_pong(connection_id, self._clock.now())
            case _:
                assert_never(msg)

    async def _handle_auth(self, connection_id: str, payload: AuthPayload) -> None:
        conn = self._registry.get(connection_id)
        if conn is None:
            return
        if conn.user_id is not None:
            if conn.user_id != payload.user_id:
                logger.warning(
                    "Connection %s bound to user %d tried to claim user %d",
                    connection_id, conn.user_id, payload.user_id,
                )
            return

        if payload.token is not None:
            subject_id = await self._verify(payload.token)
            if subject_id != payload.user_id:
                logger.warning("Rejected auth for %s: token does not match user", connection_id)
                return
        elif not self._trust_client_auth:
            logger.warning("Rejected unverified auth claim on %s", connection_id)
            return

        self._registry.authenticate(connection_id, payload.user_id)

    async def _verify(self, token: str) -> int | None:
        if self._verifier is None:
            return None
        try:
            principal = await self._verifier.verify(token)
        except Exception:
            logger.debug("WS token verification failed", exc_info=True)
            return None
        return principal.subject_id

    # Outbound

    async def send_order_update(self, order_id: int, user_id: int, status: str) -> int:
        message = OrderUpdateMessage(
            payload=OrderUpdatePayload(order_id=order_id, status=str(status), timestamp=self._now_ms())
        )
        return await self.send_to_user(user_id, message)

    async def send_notification(
        self,
        user_id: int,
        title: str,
        message: str,
        *,
        order_id: int | None = None,
    ) -> int:
        notification = NotificationMessage(
            payload=NotificationPayload(
                title=title,
                message=message,
                timestamp=self._now_ms(),
                order_id=order_id,
            )
        )
        return await self.send_to_user(user_id, notification)

    async def send_to_user(self, user_id: int, message: OutboundMessage) -> int:
        """Fan out to every connection bound to the user."""
        raw = encode(message)
        sent = 0
        for connection_id in self._registry.find_by_user(user_id):
            if await self._send_raw(connection_id, raw):
                sent += 1
        logger.info("Sent %s to user %d on %d connection(s)", message.type, user_id, sent)
        return sent

    async def broadcast(self, message: OutboundMessage) -> int:
        raw = encode(message)
        sent = 0
        for connection_id in self._registry.all_live():
            if await self._send_raw(connection_id, raw):
                sent += 1
        logger.info("Broadcast %s to %d connection(s)", message.type, sent)
        return sent

    async def broadcast_notification(
        self,
        title: str,
        message: str,
        *,
        order_id: int | None = None,
    ) -> int:
        notification = NotificationMessage(
            payload=NotificationPayload(
                title=title,
                message=message,
                timestamp=self._now_ms(),
                order_id=order_id,
            )
        )
        return await self.broadcast(notification)

    async def _send_raw(self, connection_id: str, raw: str) -> bool:
        conn = self._registry.get(connection_id)
        if conn is None:
            return False
        if not conn.is_open:
            self.disconnect(connection_id)
            return False
        try:
            await conn.socket.send_text(raw)
        except Exception:
            logger.debug("Send to %s failed, evicting", connection_id, exc_info=True)
            self.disconnect(connection_id)
            return False
        return True

    # Liveness

    async def heartbeat(self) -> None:
        """One sweep: evict dead or silent connections, ping the rest."""
        ping = encode(PingMessage(payload=PingPayload(timestamp=self._now_ms())))
        for conn in self._registry.snapshot():
            if conn.connection_id not in self._registry:
                continue
            if not conn.is_open:
                self._registry.unregister(conn.connection_id)
                logger.info("Removed dead connection: %s", conn.connection_id)
                continue
            if conn.missed_heartbeats >= self._max_missed_heartbeats:
                await self._evict_silent(conn)
                continue
            conn.missed_heartbeats += 1
            await self._send_raw(conn.connection_id, ping)

    async def _evict_silent(self, conn: Connection) -> None:
        self._registry.unregister(conn.connection_id)
        logger.info(
            "Evicting %s after %d unanswered pings", conn.connection_id, conn.missed_heartbeats,
        )
        try:
            await conn.socket.close(code=CLOSE_HEARTBEAT_TIMEOUT)
        except Exception:
            logger.debug("Close of %s failed", conn.connection_id, exc_info=True)
