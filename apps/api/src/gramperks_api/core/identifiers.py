"""Slug and short identifier helpers used by producer and vendor workflows."""

from __future__ import annotations

import re
import secrets

_ID_ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789-_"
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def new_id(length: int = 8) -> str:
    """Return a random URL-safe identifier of ``length`` characters."""

    if length <= 0:
        raise ValueError("Identifier length must be positive")
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


def slugify(value: str) -> str:
    """Lowercase ``value`` and collapse non-alphanumeric runs into single dashes.

    >>> slugify("Blue Sitting Cat #2")
    'blue-sitting-cat-2'
    """

    return _NON_ALNUM.sub("-", str(value).strip().lower()).strip("-")


def nfc_tag_for(gram_id: str) -> str:
    return f"TAG-{gram_id}"
