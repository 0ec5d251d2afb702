from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class ValidationError(AppError):
    pass


class ProtocolError(AppError):
    """An inbound realtime frame could not be decoded."""


class UnknownMessageTypeError(ProtocolError):
    def __init__(self, message_type: str | None) -> None:
        self.message_type = message_type
        super().__init__(f"unknown message type: {message_type!r}")
