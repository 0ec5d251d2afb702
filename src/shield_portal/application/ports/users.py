from __future__ import annotations

from typing import Protocol


class UserVerificationWriter(Protocol):
    async def mark_verified(self, user_id: int, phone: str) -> None: ...

    async def is_verified(self, user_id: int) -> bool: ...
