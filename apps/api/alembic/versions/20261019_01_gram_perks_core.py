"""Grams, perks, redemptions, claims, and vendor sessions.

Revision ID: 20261019_01
Revises: 
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "20261019_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


PERK_TYPES = ("DISCOUNT", "FREE_ITEM", "ACCESS", "SHOPIFY_DISCOUNT", "SHOPIFY_FREE_PRODUCT")
CLAIM_STATUSES = ("CLAIMED", "ALREADY_OWNED", "ALREADY_CLAIMED")


def upgrade() -> None:
    perk_type = sa.Enum(*PERK_TYPES, name="perk_type")
    claim_status = sa.Enum(*CLAIM_STATUSES, name="gram_claim_status")

    op.create_table(
        "grams",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("slug", sa.String(), nullable=True),
        sa.Column("nfc_tag_id", sa.String(), nullable=True),
        sa.Column("title", sa.String(), nullable=False, server_default=""),
        sa.Column("image_url", sa.String(), nullable=False, server_default=""),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("effects", sa.JSON(), nullable=False),
        sa.Column("owner_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_grams_slug", "grams", ["slug"], unique=True)
    op.create_index("ix_grams_nfc_tag_id", "grams", ["nfc_tag_id"], unique=True)
    op.create_index("ix_grams_owner_id", "grams", ["owner_id"])

    op.create_table(
        "gram_perks",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("gram_id", sa.String(length=64), sa.ForeignKey("grams.id", ondelete="CASCADE"), nullable=False),
        sa.Column("perk_id", sa.String(length=64), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("business_id", sa.String(length=64), nullable=False),
        sa.Column("business_name", sa.String(), nullable=True),
        sa.Column("type", perk_type, nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("cooldown_seconds", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("last_redemption_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("last_redeemed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("gram_id", "perk_id", name="uq_gram_perks_gram_perk"),
        sa.CheckConstraint("cooldown_seconds >= 0", name="ck_gram_perks_cooldown_non_negative"),
    )
    op.create_index("ix_gram_perks_gram_id", "gram_perks", ["gram_id"])
    op.create_index("ix_gram_perks_business_id", "gram_perks", ["business_id"])

    op.create_table(
        "perk_redemptions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("gram_id", sa.String(length=64), sa.ForeignKey("grams.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("perk_id", sa.String(length=64), nullable=False),
        sa.Column("business_id", sa.String(length=64), nullable=False),
        sa.Column("redeemed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index(
        "ix_perk_redemptions_gram_perk_redeemed",
        "perk_redemptions",
        ["gram_id", "perk_id", "redeemed_at"],
    )
    op.create_index("ix_perk_redemptions_business_id", "perk_redemptions", ["business_id"])

    op.create_table(
        "gram_claims",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("gram_id", sa.String(length=64), nullable=False),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("status", claim_status, nullable=False),
        sa.Column("channel", sa.String(length=32), nullable=False, server_default="nfc"),
        sa.Column("nfc_tag_id", sa.String(), nullable=True),
        sa.Column("previous_owner_id", sa.String(), nullable=True),
        sa.Column("ip_address", sa.String(), nullable=True),
        sa.Column("user_agent", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_gram_claims_gram_id", "gram_claims", ["gram_id"])

    op.create_table(
        "vendors",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("business_id", sa.String(length=64), nullable=False),
        sa.Column("business_name", sa.String(), nullable=True),
        sa.Column("secret_hash", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_vendors_business_id", "vendors", ["business_id"], unique=True)

    op.create_table(
        "vendor_sessions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("token_hash", sa.String(length=64), nullable=False),
        sa.Column(
            "vendor_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("vendors.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("business_id", sa.String(length=64), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ip_address", sa.String(), nullable=True),
        sa.Column("user_agent", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_vendor_sessions_token_hash", "vendor_sessions", ["token_hash"], unique=True)
    op.create_index("ix_vendor_sessions_vendor_id", "vendor_sessions", ["vendor_id"])


def downgrade() -> None:
    op.drop_index("ix_vendor_sessions_vendor_id", table_name="vendor_sessions")
    op.drop_index("ix_vendor_sessions_token_hash", table_name="vendor_sessions")
    op.drop_table("vendor_sessions")
    op.drop_index("ix_vendors_business_id", table_name="vendors")
    op.drop_table("vendors")
    op.drop_index("ix_gram_claims_gram_id", table_name="gram_claims")
    op.drop_table("gram_claims")
    op.drop_index("ix_perk_redemptions_business_id", table_name="perk_redemptions")
    op.drop_index("ix_perk_redemptions_gram_perk_redeemed", table_name="perk_redemptions")
    op.drop_table("perk_redemptions")
    op.drop_index("ix_gram_perks_business_id", table_name="gram_perks")
    op.drop_index("ix_gram_perks_gram_id", table_name="gram_perks")
    op.drop_table("gram_perks")
    op.drop_index("ix_grams_owner_id", table_name="grams")
    op.drop_index("ix_grams_nfc_tag_id", table_name="grams")
    op.drop_index("ix_grams_slug", table_name="grams")
    op.drop_table("grams")

    bind = op.get_bind()
    sa.Enum(name="gram_claim_status").drop(bind, checkfirst=True)
    sa.Enum(name="perk_type").drop(bind, checkfirst=True)
