"""In-process OTP code storage with expiry-based eviction."""
from __future__ import annotations

import heapq
import itertools
import logging
from datetime import datetime

from shield_portal.domain.entities.otp_code import OtpCode

logger = logging.getLogger(__name__)

_Key = tuple[int, str]


class InMemoryOtpCodeStore:
    """Implements application.repositories.otp.OtpCodeRepository.

    Codes are indexed per (user_id, phone), newest first. A min-heap on
    ``expires_at`` lets ``prune_expired`` evict without scanning every pair.
    Heap entries for codes already discarded are skipped when popped.
    """

    def __init__(self) -> None:
        self._by_pair: dict[_Key, list[OtpCode]] = {}
        self._expiry_heap: list[tuple[datetime, int, _Key]] = []
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return sum(len(codes) for codes in self._by_pair.values())

    async def add(
        self,
        user_id: int,
        phone: str,
        code: str,
        expires_at: datetime,
        created_at: datetime,
    ) -> OtpCode:
        record = OtpCode(
            id=next(self._ids),
            user_id=user_id,
            phone=phone,
            code=code,
            expires_at=expires_at,
            created_at=created_at,
        )
        key = (user_id, phone)
        self._by_pair.setdefault(key, []).insert(0, record)
        heapq.heappush(self._expiry_heap, (expires_at, record.id, key))
        return record

    async def latest_valid(self, user_id: int, phone: str, now: datetime) -> OtpCode | None:
        key = (user_id, phone)
        codes = self._by_pair.get(key)
        if not codes:
            return None
        live = [c for c in codes if not c.is_expired(now)]
        if live:
            self._by_pair[key] = live
            return live[0]
        del self._by_pair[key]
        return None

    async def discard(self, user_id: int, phone: str) -> int:
        codes = self._by_pair.pop((user_id, phone), [])
        return len(codes)

    async def prune_expired(self, now: datetime) -> int:
        removed = 0
        while self._expiry_heap and self._expiry_heap[0][0] <= now:
            _expires_at, record_id, key = heapq.heappop(self._expiry_heap)
            codes = self._by_pair.get(key)
            if not codes:
                continue
            kept = [c for c in codes if c.id != record_id]
            removed += len(codes) - len(kept)
            if kept:
                self._by_pair[key] = kept
            else:
                del self._by_pair[key]
        if removed:
            logger.debug("Pruned %d expired OTP codes", removed)
        return removed
