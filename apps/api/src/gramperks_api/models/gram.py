"""Gram, perk, and redemption persistence models."""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from gramperks_api.db.base import Base
from gramperks_api.domain.perks import PerkType


class Gram(Base):
    """Collectible linked to an NFC tag and owned by at most one user."""

    __tablename__ = "grams"

    id = Column(String(64), primary_key=True)
    slug = Column(String, nullable=True, unique=True, index=True)
    nfc_tag_id = Column(String, nullable=True, unique=True, index=True)
    title = Column(String, nullable=False, default="", server_default="")
    image_url = Column(String, nullable=False, default="", server_default="")
    description = Column(Text, nullable=False, default="", server_default="")
    effects = Column(JSON, nullable=False, default=dict)
    owner_id = Column(String, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    perks = relationship(
        "GramPerk",
        back_populates="gram",
        order_by="GramPerk.position",
        cascade="all, delete-orphan",
    )


class GramPerk(Base):
    """Vendor perk attached to a gram.

    ``last_redemption_id`` points at the newest redemption for this
    ``(gram_id, perk_id)`` pair and doubles as the compare-and-append guard for
    approvals.
    """

    __tablename__ = "gram_perks"
    __table_args__ = (
        UniqueConstraint("gram_id", "perk_id", name="uq_gram_perks_gram_perk"),
        CheckConstraint("cooldown_seconds >= 0", name="ck_gram_perks_cooldown_non_negative"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    gram_id = Column(String(64), ForeignKey("grams.id", ondelete="CASCADE"), nullable=False, index=True)
    perk_id = Column(String(64), nullable=False)
    position = Column(Integer, nullable=False, default=0, server_default="0")
    business_id = Column(String(64), nullable=False, index=True)
    business_name = Column(String, nullable=True)
    type = Column(SqlEnum(PerkType, name="perk_type"), nullable=False)
    metadata_json = Column("metadata", JSON, nullable=False, default=dict)
    cooldown_seconds = Column(Integer, nullable=False, default=0, server_default="0")
    enabled = Column(Boolean, nullable=False, default=True, server_default="true")
    last_redemption_id = Column(UUID(as_uuid=True), nullable=True)
    last_redeemed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    gram = relationship("Gram", back_populates="perks")


class PerkRedemption(Base):
    """Append-only redemption history."""

    __tablename__ = "perk_redemptions"
    __table_args__ = (
        Index("ix_perk_redemptions_gram_perk_redeemed", "gram_id", "perk_id", "redeemed_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    gram_id = Column(String(64), ForeignKey("grams.id", ondelete="RESTRICT"), nullable=False)
    perk_id = Column(String(64), nullable=False)
    business_id = Column(String(64), nullable=False, index=True)
    redeemed_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class GramClaimStatus(str, Enum):
    """Outcome of a claim attempt."""

    CLAIMED = "claimed"
    ALREADY_OWNED = "already_owned"
    ALREADY_CLAIMED = "already_claimed"


class GramClaim(Base):
    """Audit trail of ownership claim attempts."""

    __tablename__ = "gram_claims"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    gram_id = Column(String(64), nullable=False, index=True)
    owner_id = Column(String, nullable=False)
    status = Column(SqlEnum(GramClaimStatus, name="gram_claim_status"), nullable=False)
    channel = Column(String(32), nullable=False, default="nfc", server_default="nfc")
    nfc_tag_id = Column(String, nullable=True)
    previous_owner_id = Column(String, nullable=True)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
