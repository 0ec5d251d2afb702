"""Issue and validate phone verification codes."""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from shield_portal.application.ports.clock import Clock
from shield_portal.application.ports.sms import SmsMessage, SmsSender
from shield_portal.application.repositories.otp import OtpCodeRepository

logger = logging.getLogger(__name__)

CODE_MIN = 100000
CODE_MAX = 999999

MSG_DELIVERED = "OTP sent to your phone"
MSG_FALLBACK = "OTP sent to your phone (development mode)"


def generate_code() -> str:
    """Uniform over [100000, 999999]; always six digits."""
    return str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))


@dataclass(frozen=True, slots=True)
class OtpIssue:
    """Outcome of a code request.

    ``code`` is only populated when SMS delivery did not happen and the code
    has to be disclosed to the caller directly.
    """

    message: str
    expires_at: datetime
    code: str | None = None

    @property
    def delivered(self) -> bool:
        return self.code is None


class OtpEngine:
    def __init__(
        self,
        store: OtpCodeRepository,
        sms: SmsSender,
        clock: Clock,
        *,
        ttl: timedelta = timedelta(minutes=10),
        code_factory: Callable[[], str] = generate_code,
    ) -> None:
        self._store = store
        self._sms = sms
        self._clock = clock
        self._ttl = ttl
        self._code_factory = code_factory

    async def request_code(self, user_id: int, phone: str) -> OtpIssue:
        now = self._clock.now()
        code = self._code_factory()
        record = await self._store.add(
            user_id, phone, code, expires_at=now + self._ttl, created_at=now,
        )
        logger.debug("OTP %s issued for user %d", code, user_id)

        minutes = int(self._ttl.total_seconds() // 60)
        body = f"Your CyberShield verification code is: {code}. Valid for {minutes} minutes."
        if await self._deliver(SmsMessage(to=phone, body=body)):
            return OtpIssue(message=MSG_DELIVERED, expires_at=record.expires_at)
        return OtpIssue(message=MSG_FALLBACK, expires_at=record.expires_at, code=code)

    async def _deliver(self, message: SmsMessage) -> bool:
        if not self._sms.is_configured:
            return False
        try:
            result = await self._sms.send(message)
        except Exception:
            logger.exception("SMS delivery raised, falling back to in-response code")
            return False
        if not result.success:
            logger.warning("SMS delivery failed: %s", result.error)
        return result.success

    async def verify_code(self, user_id: int, phone: str, submitted: str) -> bool:
        """Match against the newest unexpired code only; consume it on success."""
        record = await self._store.latest_valid(user_id, phone, self._clock.now())
        if record is None or not secrets.compare_digest(record.code.encode(), submitted.encode()):
            logger.info("OTP verification failed for user %d", user_id)
            return False
        await self._store.discard(user_id, phone)
        logger.info("OTP verified for user %d", user_id)
        return True

    async def prune_expired(self) -> int:
        return await self._store.prune_expired(self._clock.now())
