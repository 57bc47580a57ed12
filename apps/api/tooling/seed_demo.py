"""Seed the demo gram, its Cafe 57 perk, and the Cafe 57 vendor."""

from __future__ import annotations

import asyncio
import os

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import gramperks_api.models  # noqa: F401
from gramperks_api.core.settings import settings
from gramperks_api.db.base import Base
from gramperks_api.domain.perks import PerkType
from gramperks_api.models.gram import Gram, GramPerk
from gramperks_api.models.vendor import Vendor
from gramperks_api.services.vendors.session_guard import hash_vendor_secret


DEMO_GRAM_ID = "TEST1"
DEMO_OWNER_ID = "111"
DEMO_BUSINESS_ID = "CAFE57"
DEMO_VENDOR_SECRET = os.getenv("DEMO_VENDOR_SECRET", "cafe57-demo-secret")


async def seed_demo(session: AsyncSession) -> None:
    gram = await session.get(Gram, DEMO_GRAM_ID)
    if gram is None:
        gram = Gram(
            id=DEMO_GRAM_ID,
            slug="test-gram",
            nfc_tag_id=f"TAG-{DEMO_GRAM_ID}",
            title="Test Gram",
            image_url="",
            description="Demo collectible for vendor validation",
            effects={"frame": "none", "glow": False},
            owner_id=DEMO_OWNER_ID,
        )
        session.add(gram)
        await session.flush()

    existing_perk = await session.execute(
        select(GramPerk).where(GramPerk.gram_id == DEMO_GRAM_ID, GramPerk.business_id == DEMO_BUSINESS_ID)
    )
    if existing_perk.scalars().first() is None:
        session.add(
            GramPerk(
                gram_id=DEMO_GRAM_ID,
                perk_id="cafe57-10",
                position=0,
                business_id=DEMO_BUSINESS_ID,
                business_name="Cafe 57",
                type=PerkType.DISCOUNT,
                metadata_json={"discount_percent": 10},
                cooldown_seconds=86400,
                enabled=True,
            )
        )

    vendor = await session.execute(select(Vendor).where(Vendor.business_id == DEMO_BUSINESS_ID))
    if vendor.scalar_one_or_none() is None:
        session.add(
            Vendor(
                business_id=DEMO_BUSINESS_ID,
                business_name="Cafe 57",
                secret_hash=await asyncio.to_thread(hash_vendor_secret, DEMO_VENDOR_SECRET),
            )
        )
    await session.commit()


async def main() -> None:
    engine = create_async_engine(settings.database_url, future=True)
    session_factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        if settings.environment == "development":
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        async with session_factory() as session:
            await seed_demo(session)
        print(f"Demo gram {DEMO_GRAM_ID} ready for vendor {DEMO_BUSINESS_ID} ✅")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
