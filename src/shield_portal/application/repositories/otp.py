from __future__ import annotations

from datetime import datetime
from typing import Protocol

from shield_portal.domain.entities.otp_code import OtpCode


class OtpCodeRepository(Protocol):
    async def add(
        self,
        user_id: int,
        phone: str,
        code: str,
        expires_at: datetime,
        created_at: datetime,
    ) -> OtpCode: ...

    async def latest_valid(self, user_id: int, phone: str, now: datetime) -> OtpCode | None:
        """Newest unexpired code for the pair, if any."""
        ...

    async def discard(self, user_id: int, phone: str) -> int: ...

    async def prune_expired(self, now: datetime) -> int: ...
