from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class InMemoryUserVerificationLedger:
    """Tracks which users proved control of which phone number."""

    def __init__(self) -> None:
        self._verified: dict[int, str] = {}

    async def mark_verified(self, user_id: int, phone: str) -> None:
        self._verified[user_id] = phone
        logger.info("User %d verified phone", user_id)

    async def is_verified(self, user_id: int) -> bool:
        return user_id in self._verified

    def verified_phone(self, user_id: int) -> str | None:
        return self._verified.get(user_id)
