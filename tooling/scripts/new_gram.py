"""Draft a new gram record and its share and NFC URLs.

Example::
    python tooling/scripts/new_gram.py G002 "Blue Sitting Cat #2" "https://cdn.shopify.com/.../cat.jpg"
    python tooling/scripts/new_gram.py G002 "Blue Sitting Cat #2" "https://cdn.shopify.com/.../cat.jpg" --persist
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any
from urllib.parse import quote

from loguru import logger


DEFAULT_EFFECTS: dict[str, Any] = {"frame": "none", "glow": False}


def _ensure_api_on_path() -> None:
    repo_root = Path(__file__).resolve().parents[2]
    api_src = repo_root / "apps" / "api" / "src"
    if str(api_src) not in sys.path:
        sys.path.insert(0, str(api_src))


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Draft a new gram for NFC provisioning")
    parser.add_argument("gram_id", help="Gram identifier, e.g. G002.")
    parser.add_argument("title", help='Display title, e.g. "Blue Sitting Cat #2".')
    parser.add_argument("image_url", help="Image URL from the storefront file host.")
    parser.add_argument(
        "--shop-domain",
        default=None,
        help="Storefront origin used for share and NFC URLs (defaults to SHOP_DOMAIN).",
    )
    parser.add_argument(
        "--persist",
        action="store_true",
        help="Insert the gram into the configured database instead of only printing it.",
    )
    return parser.parse_args(argv)


def build_gram(gram_id: str, title: str, image_url: str) -> dict[str, Any]:
    from gramperks_api.core.identifiers import nfc_tag_for, slugify  # type: ignore import-position

    return {
        "id": gram_id,
        "slug": slugify(title),
        "nfc_tag_id": nfc_tag_for(gram_id),
        "title": title,
        "image_url": image_url,
        "description": "",
        "effects": dict(DEFAULT_EFFECTS),
        "owner_id": None,
        "perks": [],
    }


def gram_urls(gram: dict[str, Any], shop_domain: str) -> tuple[str, str]:
    base = shop_domain.rstrip("/")
    share_url = f"{base}/pages/gram?slug={quote(gram['slug'], safe='')}"
    nfc_url = f"{base}/pages/gram?tag={quote(gram['nfc_tag_id'], safe='')}"
    return share_url, nfc_url


async def persist_gram(gram: dict[str, Any]) -> None:
    from gramperks_api.db.session import async_session, engine  # type: ignore import-position
    from gramperks_api.services.grams.catalog import GramCatalogService  # type: ignore import-position

    try:
        async with async_session() as session:
            await GramCatalogService(session).create_gram(
                gram["id"],
                title=gram["title"],
                image_url=gram["image_url"],
                slug=gram["slug"],
                nfc_tag_id=gram["nfc_tag_id"],
                description=gram["description"],
                effects=gram["effects"],
            )
    finally:
        await engine.dispose()


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    _ensure_api_on_path()

    from gramperks_api.core.settings import settings  # type: ignore import-position
    from gramperks_api.services.redemptions.errors import DuplicateGram  # type: ignore import-position

    gram = build_gram(args.gram_id, args.title, args.image_url)
    share_url, nfc_url = gram_urls(gram, args.shop_domain or settings.shop_domain)

    print("=== New Gram ===")
    print(json.dumps(gram, indent=2))
    print()
    print(f"Share URL: {share_url}")
    print(f"NFC URL:   {nfc_url}")

    if args.persist:
        try:
            asyncio.run(persist_gram(gram))
        except DuplicateGram:
            logger.error("Gram already exists", gram_id=gram["id"], slug=gram["slug"])
            return 1
        logger.info("Gram persisted", gram_id=gram["id"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
