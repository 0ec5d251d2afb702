from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True, slots=True)
class SmsMessage:
    to: str
    body: str


@dataclass(frozen=True, slots=True)
class SmsResult:
    success: bool
    sid: str | None = None
    error: str | None = None


class SmsSender(Protocol):
    """Outbound SMS capability. ``send`` may also raise on transport failure."""

    @property
    def is_configured(self) -> bool: ...

    async def send(self, message: SmsMessage) -> SmsResult: ...

    async def aclose(self) -> None: ...
