"""Domain records and perk type variants."""

from .grams import GramRecord, PerkRecord, RedemptionRecord  # noqa: F401
from .perks import (  # noqa: F401
    InvalidPerkMetadataError,
    PerkMetadata,
    PerkType,
    dump_perk_metadata,
    parse_perk_metadata,
)
