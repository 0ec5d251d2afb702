from __future__ import annotations

from enum import StrEnum


class Role(StrEnum):
    USER = "user"
    ADMIN = "admin"


class OrderStatus(StrEnum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


class ConnectionState(StrEnum):
    OPEN = "open"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"
