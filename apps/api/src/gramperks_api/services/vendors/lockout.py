"""Brute force lockout for vendor logins using Redis counters."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

from redis.asyncio import Redis

from gramperks_api.core.settings import settings


@dataclass
class VendorLockoutState:
    """Represents the lockout state for a business id."""

    locked: bool
    retry_after_seconds: int | None
    remaining_attempts: int


def hash_business_id(business_id: str) -> str:
    digest = hashlib.sha256()
    digest.update(business_id.strip().encode("utf-8"))
    return digest.hexdigest()


class LockoutService:
    """Track failed vendor logins per hashed business id."""

    def __init__(
        self,
        redis_client: Redis | None = None,
        *,
        threshold: int | None = None,
        window_seconds: int | None = None,
        lockout_seconds: int | None = None,
    ) -> None:
        self._redis = redis_client or Redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
        self._threshold = threshold or settings.vendor_lockout_threshold
        self._window_seconds = window_seconds or settings.vendor_lockout_window_seconds
        self._lockout_seconds = lockout_seconds or settings.vendor_lockout_duration_seconds

    @staticmethod
    def _attempts_key(business_id: str) -> str:
        return f"vendor:attempts:{hash_business_id(business_id)}"

    @staticmethod
    def _lock_key(business_id: str) -> str:
        return f"vendor:lock:{hash_business_id(business_id)}"

    async def get_state(self, business_id: str) -> VendorLockoutState:
        lock_ttl = await self._redis.ttl(self._lock_key(business_id))
        if lock_ttl and lock_ttl > 0:
            return VendorLockoutState(locked=True, retry_after_seconds=lock_ttl, remaining_attempts=0)

        attempts_raw = await self._redis.get(self._attempts_key(business_id))
        attempts = int(attempts_raw) if attempts_raw is not None else 0
        remaining = max(self._threshold - attempts, 0)
        return VendorLockoutState(locked=False, retry_after_seconds=None, remaining_attempts=remaining)

    async def register_failure(self, business_id: str) -> VendorLockoutState:
        """Record a failed login and lock the business id once the threshold is hit."""

        lock_key = self._lock_key(business_id)
        lock_ttl = await self._redis.ttl(lock_key)
        if lock_ttl and lock_ttl > 0:
            return VendorLockoutState(locked=True, retry_after_seconds=lock_ttl, remaining_attempts=0)

        attempts_key = self._attempts_key(business_id)
        attempts = await self._redis.incr(attempts_key)
        if attempts == 1:
            await self._redis.expire(attempts_key, self._window_seconds)

        if attempts >= self._threshold:
            await self._redis.delete(attempts_key)
            await self._redis.set(lock_key, "1", ex=self._lockout_seconds)
            lock_ttl = await self._redis.ttl(lock_key)
            return VendorLockoutState(locked=True, retry_after_seconds=lock_ttl, remaining_attempts=0)

        remaining = max(self._threshold - attempts, 0)
        return VendorLockoutState(locked=False, retry_after_seconds=None, remaining_attempts=remaining)

    async def register_success(self, business_id: str) -> VendorLockoutState:
        await self._redis.delete(self._attempts_key(business_id))
        await self._redis.delete(self._lock_key(business_id))
        return VendorLockoutState(locked=False, retry_after_seconds=None, remaining_attempts=self._threshold)


__all__ = ["LockoutService", "VendorLockoutState", "hash_business_id"]
