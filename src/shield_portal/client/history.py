from __future__ import annotations

from collections import deque
from typing import Iterator

from shield_portal.infrastructure.ws.protocol import NotificationPayload

DEFAULT_HISTORY_SIZE = 20


class NotificationHistory:
    """Most-recent-first notifications; the oldest fall off past ``limit``."""

    def __init__(self, limit: int = DEFAULT_HISTORY_SIZE) -> None:
        self._items: deque[NotificationPayload] = deque(maxlen=limit)

    def push(self, notification: NotificationPayload) -> None:
        self._items.appendleft(notification)

    def clear(self) -> None:
        self._items.clear()

    def items(self) -> list[NotificationPayload]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[NotificationPayload]:
        return iter(self._items)
