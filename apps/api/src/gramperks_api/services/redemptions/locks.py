from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, MutableMapping, Tuple


RedemptionKey = Tuple[str, str]


@dataclass
class _LockEntry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    holders: int = 0


class RedemptionLockRegistry:
    """Per-``(gram_id, perk_id)`` serialization point for approvals.

    Entries live only while a caller holds or waits on them, so the registry
    does not grow with the number of perks ever approved.
    """

    def __init__(self) -> None:
        self._entries: MutableMapping[RedemptionKey, _LockEntry] = {}

    @asynccontextmanager
    async def hold(self, gram_id: str, perk_id: str) -> AsyncIterator[None]:
        key = (gram_id, perk_id)
        entry = self._entries.get(key)
        if entry is None:
            entry = _LockEntry()
            self._entries[key] = entry
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0 and self._entries.get(key) is entry:
                del self._entries[key]

    def active_keys(self) -> list[RedemptionKey]:
        return list(self._entries)


_REGISTRY = RedemptionLockRegistry()


def get_redemption_locks() -> RedemptionLockRegistry:
    return _REGISTRY


__all__ = ["RedemptionLockRegistry", "get_redemption_locks"]
