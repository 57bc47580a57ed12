"""Perk type variants and their metadata payloads.

Every perk carries a ``type`` drawn from the closed :class:`PerkType` enum and a
``metadata`` payload whose shape is fixed by that type. Payloads are validated
against the variant model on the way in, so adding a new perk type means adding
an enum member and a model here rather than accepting arbitrary dictionaries.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class PerkType(str, Enum):
    """Closed set of perk kinds a vendor can issue."""

    DISCOUNT = "discount"
    FREE_ITEM = "free_item"
    ACCESS = "access"
    SHOPIFY_DISCOUNT = "shopify_discount"
    SHOPIFY_FREE_PRODUCT = "shopify_free_product"


STUDIO_PERK_TYPES = frozenset({PerkType.SHOPIFY_DISCOUNT, PerkType.SHOPIFY_FREE_PRODUCT})


class _PerkMetadataBase(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    title: Optional[str] = None

    @field_validator("title")
    @classmethod
    def _blank_title_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None

    def summary(self) -> str:  # pragma: no cover - overridden by every variant
        raise NotImplementedError


class DiscountMetadata(_PerkMetadataBase):
    discount_percent: float = Field(..., gt=0, le=100)

    def summary(self) -> str:
        percent = int(self.discount_percent) if self.discount_percent.is_integer() else self.discount_percent
        return f"{percent}% off"


class FreeItemMetadata(_PerkMetadataBase):
    item_name: str = Field(..., min_length=1)

    def summary(self) -> str:
        return f"Free {self.item_name}"


class AccessMetadata(_PerkMetadataBase):
    access_label: str = Field(..., min_length=1)

    def summary(self) -> str:
        return self.access_label


class ShopifyDiscountMetadata(_PerkMetadataBase):
    kind: Literal["percent", "fixed"] = "percent"
    value: Optional[float] = Field(default=None, gt=0)
    usage_limit: Optional[int] = Field(default=None, ge=1)

    def summary(self) -> str:
        if self.value is None:
            return self.title or "(discount)"
        value = int(self.value) if self.value.is_integer() else self.value
        prefix = f"{self.title} - " if self.title else ""
        return f"{prefix}{self.kind}:{value}"


class ShopifyFreeProductMetadata(_PerkMetadataBase):
    variant_id: str = Field(..., pattern=r"^\d+$")
    quantity: int = Field(default=1, ge=1)
    usage_limit: Optional[int] = Field(default=None, ge=1)

    @field_validator("variant_id", mode="before")
    @classmethod
    def _coerce_variant(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value

    def summary(self) -> str:
        return f"variant:{self.variant_id} qty:{self.quantity}"


class UnvalidatedPerkMetadata(BaseModel):
    """Stored payload that no longer matches its perk type's model.

    Rows written before a variant tightened its rules load through this model so
    one stale perk cannot break reads of the gram it belongs to.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    def summary(self) -> str:
        title = (self.model_extra or {}).get("title")
        return str(title) if title else "(unavailable)"


PerkMetadata = Union[
    DiscountMetadata,
    FreeItemMetadata,
    AccessMetadata,
    ShopifyDiscountMetadata,
    ShopifyFreeProductMetadata,
    UnvalidatedPerkMetadata,
]

PERK_METADATA_MODELS: dict[PerkType, type[_PerkMetadataBase]] = {
    PerkType.DISCOUNT: DiscountMetadata,
    PerkType.FREE_ITEM: FreeItemMetadata,
    PerkType.ACCESS: AccessMetadata,
    PerkType.SHOPIFY_DISCOUNT: ShopifyDiscountMetadata,
    PerkType.SHOPIFY_FREE_PRODUCT: ShopifyFreeProductMetadata,
}


class InvalidPerkMetadataError(ValueError):
    """Raised when a metadata payload does not match its perk type."""

    def __init__(self, perk_type: PerkType | str, errors: list[dict[str, Any]] | None = None) -> None:
        self.perk_type = perk_type.value if isinstance(perk_type, PerkType) else str(perk_type)
        self.errors = errors or []
        super().__init__(f"Invalid metadata for perk type '{self.perk_type}'")


def parse_perk_type(value: PerkType | str) -> PerkType:
    try:
        return PerkType(value)
    except ValueError as exc:
        raise InvalidPerkMetadataError(value, [{"msg": f"Unsupported perk type: {value}"}]) from exc


def parse_perk_metadata(perk_type: PerkType | str, payload: Mapping[str, Any] | None) -> PerkMetadata:
    """Validate ``payload`` against the model registered for ``perk_type``."""

    resolved = parse_perk_type(perk_type)
    model = PERK_METADATA_MODELS[resolved]
    try:
        return model.model_validate(dict(payload or {}))  # type: ignore[return-value]
    except ValidationError as exc:
        errors = [
            {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
            for error in exc.errors()
        ]
        raise InvalidPerkMetadataError(resolved, errors) from exc


def dump_perk_metadata(metadata: PerkMetadata) -> dict[str, Any]:
    """Serialize metadata for storage, dropping unset optional fields."""

    return metadata.model_dump(exclude_none=True)


__all__ = [
    "AccessMetadata",
    "DiscountMetadata",
    "FreeItemMetadata",
    "InvalidPerkMetadataError",
    "PERK_METADATA_MODELS",
    "PerkMetadata",
    "PerkType",
    "STUDIO_PERK_TYPES",
    "ShopifyDiscountMetadata",
    "ShopifyFreeProductMetadata",
    "UnvalidatedPerkMetadata",
    "dump_perk_metadata",
    "parse_perk_metadata",
    "parse_perk_type",
]
