from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from threading import Lock
from typing import Dict


@dataclass
class RedemptionSnapshot:
    validations: Dict[str, int]
    approvals: Dict[str, int]
    vendor_auth: Dict[str, int]

    def as_dict(self) -> Dict[str, object]:
        return {
            "validations": dict(self.validations),
            "approvals": dict(self.approvals),
            "vendor_auth": dict(self.vendor_auth),
        }


class RedemptionObservabilityStore:
    """Collect validate/approve outcomes for dashboards and alerting."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._validations: Dict[str, int] = defaultdict(int)
        self._approvals: Dict[str, int] = defaultdict(int)
        self._vendor_auth: Dict[str, int] = defaultdict(int)

    def record_validation(self, outcome: str, *, perks_returned: int = 0) -> None:
        with self._lock:
            self._validations[outcome] += 1
            self._validations["perks_returned"] += perks_returned

    def record_approval(self, outcome: str, *, business_id: str | None = None) -> None:
        with self._lock:
            self._approvals[outcome] += 1
            if business_id and outcome == "approved":
                self._approvals[f"business:{business_id}"] += 1

    def record_vendor_auth(self, outcome: str) -> None:
        with self._lock:
            self._vendor_auth[outcome] += 1

    def snapshot(self) -> RedemptionSnapshot:
        with self._lock:
            return RedemptionSnapshot(
                validations=dict(self._validations),
                approvals=dict(self._approvals),
                vendor_auth=dict(self._vendor_auth),
            )

    def reset(self) -> None:
        with self._lock:
            self._validations.clear()
            self._approvals.clear()
            self._vendor_auth.clear()


_STORE = RedemptionObservabilityStore()


def get_redemption_store() -> RedemptionObservabilityStore:
    return _STORE


__all__ = ["RedemptionObservabilityStore", "RedemptionSnapshot", "get_redemption_store"]
