"""SQLAlchemy models package."""

from .gram import Gram, GramClaim, GramClaimStatus, GramPerk, PerkRedemption  # noqa: F401
from .vendor import Vendor, VendorSession  # noqa: F401
