"""Error taxonomy for validation, approval, and vendor authentication.

Every error carries a stable ``code`` and an HTTP ``status_code`` so the API
layer can render a structured response without inspecting types one by one.
"""

from __future__ import annotations

from typing import Any


class RedemptionError(Exception):
    """Base class for redemption-engine failures surfaced to callers."""

    code = "REDEMPTION_ERROR"
    status_code = 400
    retryable = False

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or (self.__class__.__doc__ or self.code).strip()

    def extra(self) -> dict[str, Any]:
        return {}

    def as_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"ok": False, "error": self.code, "message": self.message}
        if self.retryable:
            payload["retryable"] = True
        payload.update(self.extra())
        return payload


class GramNotFound(RedemptionError):
    """Gram not found."""

    code = "GRAM_NOT_FOUND"
    status_code = 404


class PerkNotFound(RedemptionError):
    """Perk not found on this gram."""

    code = "PERK_NOT_FOUND"
    status_code = 404


class PerkDisabled(RedemptionError):
    """Perk is disabled."""

    code = "PERK_DISABLED"
    status_code = 409


class PerkOnCooldown(RedemptionError):
    """Perk is on cooldown."""

    code = "PERK_ON_COOLDOWN"
    status_code = 409

    def __init__(self, remaining_ms: int, message: str | None = None) -> None:
        super().__init__(message)
        self.remaining_ms = remaining_ms

    def extra(self) -> dict[str, Any]:
        return {"cooldown_remaining_ms": self.remaining_ms}


class RedemptionConflict(RedemptionError):
    """Another approval for this perk committed first; validate and approve again."""

    code = "CONFLICT"
    status_code = 409
    retryable = True


class Unauthorized(RedemptionError):
    """Perk belongs to a different business."""

    code = "UNAUTHORIZED"
    status_code = 403


class InvalidCredentials(RedemptionError):
    """Invalid business id or vendor secret."""

    code = "INVALID_CREDENTIALS"
    status_code = 401


class InvalidSession(RedemptionError):
    """Vendor session is missing, expired, or revoked."""

    code = "INVALID_SESSION"
    status_code = 401


class VendorLockedOut(RedemptionError):
    """Too many failed attempts; try again later."""

    code = "VENDOR_LOCKED_OUT"
    status_code = 429

    def __init__(self, retry_after_seconds: int | None, message: str | None = None) -> None:
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds

    def extra(self) -> dict[str, Any]:
        return {"retry_after_seconds": self.retry_after_seconds}


class InvalidPerkMetadata(RedemptionError):
    """Perk metadata does not match its type."""

    code = "INVALID_PERK_METADATA"
    status_code = 422

    def __init__(self, perk_type: str, errors: list[dict[str, Any]], message: str | None = None) -> None:
        super().__init__(message)
        self.perk_type = perk_type
        self.errors = errors

    def extra(self) -> dict[str, Any]:
        return {"perk_type": self.perk_type, "details": self.errors}


class DuplicateGram(RedemptionError):
    """A gram with this id, slug, or NFC tag already exists."""

    code = "DUPLICATE_GRAM"
    status_code = 409


class DuplicateVendor(RedemptionError):
    """A vendor with this business id already exists."""

    code = "DUPLICATE_VENDOR"
    status_code = 409


__all__ = [
    "DuplicateGram",
    "DuplicateVendor",
    "GramNotFound",
    "InvalidCredentials",
    "InvalidPerkMetadata",
    "InvalidSession",
    "PerkDisabled",
    "PerkNotFound",
    "PerkOnCooldown",
    "RedemptionConflict",
    "RedemptionError",
    "Unauthorized",
    "VendorLockedOut",
]
