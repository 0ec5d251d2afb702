"""Client side of the realtime channel.

Keeps one logical connection to the gateway alive across drops, answers
heartbeats, and exposes connection status plus a bounded notification history.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Protocol, assert_never
from urllib.parse import urlencode, urlsplit, urlunsplit

import websockets
from websockets.exceptions import ConnectionClosed

from shield_portal.application.exceptions import ProtocolError, UnknownMessageTypeError
from shield_portal.client.history import DEFAULT_HISTORY_SIZE, NotificationHistory
from shield_portal.infrastructure.ws.protocol import (
    AuthMessage,
    AuthPayload,
    NotificationMessage,
    NotificationPayload,
    OrderUpdateMessage,
    OutboundMessage,
    PingMessage,
    PongMessage,
    decode_outbound,
    encode,
)

logger = logging.getLogger(__name__)

DEFAULT_RECONNECT_DELAY = 3.0
ALERT_DURATION = 5.0


class ClientTransport(Protocol):
    async def send(self, message: str) -> None: ...

    async def close(self) -> None: ...

    def __aiter__(self) -> AsyncIterator[str | bytes]: ...


Connector = Callable[[str], Awaitable[ClientTransport]]


async def websockets_connector(url: str) -> ClientTransport:
    return await websockets.connect(url)


@dataclass(frozen=True, slots=True)
class Alert:
    """Transient, non-persisted message for the user."""

    title: str
    description: str
    duration: float = ALERT_DURATION


AlertHandler = Callable[[Alert], None]


class RealtimeConsumer:
    def __init__(
        self,
        url: str,
        *,
        user_id: int | None = None,
        token: str | None = None,
        connector: Connector = websockets_connector,
        on_alert: AlertHandler | None = None,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        history_size: int = DEFAULT_HISTORY_SIZE,
        visible: bool = True,
    ) -> None:
        self._url = url
        self._user_id = user_id
        self._token = token
        self._connector = connector
        self._on_alert = on_alert
        self._reconnect_delay = reconnect_delay
        self._visible = visible
        self._history = NotificationHistory(history_size)
        self._last_message: OutboundMessage | None = None

        self._active = False
        self._conn: ClientTransport | None = None
        self._reader: asyncio.Task[None] | None = None
        self._reconnect_timer: asyncio.Task[None] | None = None
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    @property
    def notifications(self) -> list[NotificationPayload]:
        return self._history.items()

    @property
    def last_message(self) -> OutboundMessage | None:
        return self._last_message

    # Host lifecycle

    async def start(self) -> None:
        self._active = True
        await self._connect()

    async def stop(self) -> None:
        self._active = False
        self._cancel_reconnect_timer()
        await self._teardown()

    async def set_identity(self, user_id: int | None, token: str | None = None) -> None:
        """Switching identity always uses a fresh connection."""
        if (user_id, token) == (self._user_id, self._token):
            return
        self._user_id = user_id
        self._token = token
        if self._active:
            await self.reconnect()

    async def set_visible(self, visible: bool) -> None:
        self._visible = visible
        if visible and self._active and not self.is_connected:
            self._cancel_reconnect_timer()
            await self._connect()

    async def reconnect(self) -> None:
        self._cancel_reconnect_timer()
        await self._teardown()
        await self._connect()

    def clear_notifications(self) -> None:
        self._history.clear()

    # Connection management

    def _connect_url(self) -> str:
        if self._token is None:
            return self._url
        parts = urlsplit(self._url)
        query = "&".join(q for q in (parts.query, urlencode({"token": self._token})) if q)
        return urlunsplit(parts._replace(query=query))

    async def _connect(self) -> None:
        async with self._lock:
            if self._conn is not None:
                return
            try:
                conn = await self._connector(self._connect_url())
            except Exception:
                logger.exception("Failed to connect to %s", self._url)
                return

            self._conn = conn
            logger.info("Realtime connection established")
            if self._user_id is not None:
                auth = AuthMessage(payload=AuthPayload(user_id=self._user_id, token=self._token))
                try:
                    await conn.send(encode(auth))
                except Exception:
                    logger.exception("Failed to send auth; dropping connection")
                    self._conn = None
                    await _close_quietly(conn)
                    self._schedule_reconnect()
                    return
            self._reader = asyncio.create_task(self._read_loop(conn), name="realtime-consumer-reader")

    async def _teardown(self) -> None:
        conn, reader = self._conn, self._reader
        self._conn = None
        self._reader = None
        if conn is not None:
            await _close_quietly(conn)
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass

    async def _read_loop(self, conn: ClientTransport) -> None:
        try:
            async for raw in conn:
                await self._handle_frame(conn, raw)
        except ConnectionClosed as exc:
            logger.info("Realtime connection dropped: %s", exc)
        except Exception:
            logger.exception("Realtime connection error")
            await _close_quietly(conn)
        self._on_closed(conn)

    def _on_closed(self, conn: ClientTransport) -> None:
        if conn is not self._conn:
            return
        self._conn = None
        self._reader = None
        logger.info("Realtime connection closed")
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._active:
            self._cancel_reconnect_timer()
            self._reconnect_timer = asyncio.create_task(
                self._reconnect_after_delay(), name="realtime-consumer-reconnect",
            )

    async def _reconnect_after_delay(self) -> None:
        await asyncio.sleep(self._reconnect_delay)
        self._reconnect_timer = None
        # While hidden, set_visible(True) triggers the reconnect instead.
        if self._active and self._visible and not self.is_connected:
            await self._connect()

    def _cancel_reconnect_timer(self) -> None:
        timer = self._reconnect_timer
        self._reconnect_timer = None
        if timer is not None and timer is not asyncio.current_task():
            timer.cancel()

    # Inbound

    async def _handle_frame(self, conn: ClientTransport, raw: str | bytes) -> None:
        try:
            msg = decode_outbound(raw)
        except UnknownMessageTypeError as exc:
            logger.info("Unknown message type: %s", exc.message_type)
            return
        except ProtocolError as exc:
            logger.warning("Error parsing realtime message: %s", exc.detail)
            return

        self._last_message = msg
        match msg:
            case OrderUpdateMessage():
                self._alert(Alert(
                    title="Order Update",
                    description=f"Order #{msg.payload.order_id} status changed to: {msg.payload.status}",
                ))
            case NotificationMessage():
                self._history.push(msg.payload)
                self._alert(Alert(title=msg.payload.title, description=msg.payload.message))
            case PingMessage():
                await conn.send(encode(PongMessage()))
            case _:
                assert_never(msg)

    def _alert(self, alert: Alert) -> None:
        if self._on_alert is None:
            return
        try:
            self._on_alert(alert)
        except Exception:
            logger.exception("Alert handler failed")


async def _close_quietly(conn: ClientTransport) -> None:
    try:
        await conn.close()
    except Exception:
        logger.debug("Error closing realtime connection", exc_info=True)
