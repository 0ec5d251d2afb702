"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from starlette.websockets import WebSocketState

from shield_portal.application.dto.principal import Principal
from shield_portal.application.ports.sms import SmsMessage, SmsResult
from shield_portal.domain.value_objects.enums import Role
from shield_portal.infrastructure.ws.gateway import RealtimeGateway
from shield_portal.infrastructure.ws.registry import ConnectionRegistry

T0 = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


@dataclass
class FakeWebSocket:
    """Stands in for starlette's WebSocket on the server side."""

    client_state: WebSocketState = WebSocketState.CONNECTING
    application_state: WebSocketState = WebSocketState.CONNECTING
    sent: list[str] = field(default_factory=list)
    close_code: int | None = None
    fail_sends: bool = False

    async def accept(self) -> None:
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED

    async def send_text(self, data: str) -> None:
        if self.fail_sends:
            raise RuntimeError("socket is gone")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.close_code = code
        self.application_state = WebSocketState.DISCONNECTED

    def drop(self) -> None:
        """Simulate the peer vanishing without a close handshake."""
        self.client_state = WebSocketState.DISCONNECTED

    def messages(self) -> list[dict[str, Any]]:
        return [json.loads(m) for m in self.sent]

    def messages_of(self, message_type: str) -> list[dict[str, Any]]:
        return [m for m in self.messages() if m["type"] == message_type]


@dataclass
class FakeVerifier:
    principals: dict[str, Principal] = field(default_factory=dict)

    async def verify(self, token: str) -> Principal:
        try:
            return self.principals[token]
        except KeyError:
            raise ValueError("bad token") from None


@dataclass
class FakeSmsSender:
    result: SmsResult = field(default_factory=lambda: SmsResult(success=True, sid="SM123"))
    raises: Exception | None = None
    configured: bool = True
    sent: list[SmsMessage] = field(default_factory=list)

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def send(self, message: SmsMessage) -> SmsResult:
        self.sent.append(message)
        if self.raises is not None:
            raise self.raises
        return self.result

    async def aclose(self) -> None:
        pass


_CLOSED = object()


class FakeClientTransport:
    """Client-side connection fed by the test."""

    def __init__(self, *, fail_sends: bool = False) -> None:
        self.sent: list[str] = []
        self.closed = False
        self.fail_sends = fail_sends
        self._incoming: asyncio.Queue[Any] = asyncio.Queue()

    def feed(self, message: dict[str, Any] | str) -> None:
        raw = message if isinstance(message, str) else json.dumps(message)
        self._incoming.put_nowait(raw)

    def drop(self) -> None:
        """Server side goes away."""
        self._incoming.put_nowait(_CLOSED)

    async def send(self, message: str) -> None:
        if self.fail_sends:
            raise OSError("broken pipe")
        self.sent.append(message)

    async def close(self) -> None:
        self.closed = True
        self._incoming.put_nowait(_CLOSED)

    def sent_json(self) -> list[dict[str, Any]]:
        return [json.loads(m) for m in self.sent]

    def __aiter__(self) -> FakeClientTransport:
        return self

    async def __anext__(self) -> str:
        item = await self._incoming.get()
        if item is _CLOSED:
            self.closed = True
            raise StopAsyncIteration
        return item


class FakeConnector:
    def __init__(self) -> None:
        self.urls: list[str] = []
        self.transports: list[FakeClientTransport] = []
        self.fail = False
        self.fail_sends = False

    async def __call__(self, url: str) -> FakeClientTransport:
        self.urls.append(url)
        if self.fail:
            raise OSError("connection refused")
        transport = FakeClientTransport(fail_sends=self.fail_sends)
        self.transports.append(transport)
        return transport

    @property
    def latest(self) -> FakeClientTransport:
        return self.transports[-1]


async def settle() -> None:
    """Let background reader tasks drain what the test fed them."""
    await asyncio.sleep(0.01)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def verifier() -> FakeVerifier:
    return FakeVerifier(
        principals={
            "token-7": Principal(role=Role.USER, subject_id=7),
            "token-8": Principal(role=Role.USER, subject_id=8),
        }
    )


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def gateway(registry: ConnectionRegistry, clock: FakeClock, verifier: FakeVerifier) -> RealtimeGateway:
    return RealtimeGateway(registry, clock, verifier=verifier, max_missed_heartbeats=3)
