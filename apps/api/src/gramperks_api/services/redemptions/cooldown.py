"""Pure cooldown evaluation for perks.

All arithmetic runs on integer milliseconds since the Unix epoch. Naive
datetimes (SQLite returns them) are interpreted as UTC.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from gramperks_api.domain.grams import PerkRecord


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


class PerkState(str, Enum):
    AVAILABLE = "available"
    COOLDOWN = "cooldown"
    DISABLED = "disabled"


@dataclass(frozen=True)
class CooldownStatus:
    state: PerkState
    cooldown_remaining_ms: Optional[int] = None

    @property
    def is_available(self) -> bool:
        return self.state is PerkState.AVAILABLE


AVAILABLE = CooldownStatus(PerkState.AVAILABLE, 0)
DISABLED = CooldownStatus(PerkState.DISABLED, None)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_epoch_ms(value: datetime) -> int:
    return (as_utc(value) - _EPOCH) // _ONE_MS


def evaluate(
    perk: PerkRecord,
    last_redeemed_at: Optional[datetime],
    now: datetime,
) -> CooldownStatus:
    """Return whether ``perk`` can be redeemed at ``now``.

    Disabled perks are never available. A zero cooldown or an empty history is
    always available. Otherwise the perk is on cooldown until
    ``cooldown_seconds`` have elapsed since ``last_redeemed_at``; a redemption
    stamped in the future counts as having just happened.
    """

    if not perk.enabled:
        return DISABLED
    if perk.cooldown_seconds <= 0 or last_redeemed_at is None:
        return AVAILABLE

    cooldown_ms = perk.cooldown_seconds * 1000
    elapsed_ms = max(to_epoch_ms(now) - to_epoch_ms(last_redeemed_at), 0)
    if elapsed_ms >= cooldown_ms:
        return AVAILABLE
    return CooldownStatus(PerkState.COOLDOWN, cooldown_ms - elapsed_ms)


__all__ = ["AVAILABLE", "DISABLED", "CooldownStatus", "PerkState", "as_utc", "evaluate", "to_epoch_ms"]
