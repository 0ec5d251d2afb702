"""In-process table of live WebSocket connections."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from starlette.websockets import WebSocket, WebSocketState

from shield_portal.domain.value_objects.enums import ConnectionState

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Connection:
    connection_id: str
    socket: WebSocket
    user_id: int | None = None
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_pong_at: datetime | None = None
    missed_heartbeats: int = 0

    @property
    def is_open(self) -> bool:
        return (
            self.socket.client_state == WebSocketState.CONNECTED
            and self.socket.application_state == WebSocketState.CONNECTED
        )

    @property
    def state(self) -> ConnectionState:
        if not self.is_open:
            return ConnectionState.CLOSED
        if self.user_id is not None:
            return ConnectionState.AUTHENTICATED
        return ConnectionState.OPEN


class ConnectionRegistry:
    """Tracks connections and the user each one is bound to.

    A connection's user id is set at most once; anonymous connections only
    see broadcast and ping traffic.
    """

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}
        self._by_user: dict[int, set[str]] = {}

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections

    def register(self, socket: WebSocket, user_id: int | None = None) -> str:
        connection_id = uuid.uuid4().hex
        self._connections[connection_id] = Connection(connection_id=connection_id, socket=socket)
        if user_id is not None:
            self.authenticate(connection_id, user_id)
        logger.debug("WS registered: %s (total=%d)", connection_id, len(self._connections))
        return connection_id

    def authenticate(self, connection_id: str, user_id: int) -> bool:
        conn = self._connections.get(connection_id)
        if conn is None:
            return False
        if conn.user_id is not None:
            if conn.user_id != user_id:
                logger.warning(
                    "Refusing to rebind connection %s from user %d to %d",
                    connection_id, conn.user_id, user_id,
                )
                return False
            return True
        conn.user_id = user_id
        self._by_user.setdefault(user_id, set()).add(connection_id)
        logger.info("Connection %s authenticated as user %d", connection_id, user_id)
        return True

    def unregister(self, connection_id: str) -> Connection | None:
        conn = self._connections.pop(connection_id, None)
        if conn is None:
            return None
        if conn.user_id is not None:
            ids = self._by_user.get(conn.user_id)
            if ids:
                ids.discard(connection_id)
                if not ids:
                    del self._by_user[conn.user_id]
        logger.debug("WS unregistered: %s (total=%d)", connection_id, len(self._connections))
        return conn

    def get(self, connection_id: str) -> Connection | None:
        return self._connections.get(connection_id)

    def find_by_user(self, user_id: int) -> set[str]:
        return set(self._by_user.get(user_id, ()))

    def all_live(self) -> list[str]:
        return list(self._connections)

    def snapshot(self) -> list[Connection]:
        return list(self._connections.values())

    def record_pong(self, connection_id: str, at: datetime) -> None:
        conn = self._connections.get(connection_id)
        if conn is not None:
            conn.last_pong_at = at
            conn.missed_heartbeats = 0
