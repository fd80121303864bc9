"""
Certificate identifiers.

Format: ``<PREFIX>-<YEAR>-<6 HEX>``, e.g. ``DD-2025-8F32C1``. The format is
embedded in every verification link already handed out, so it must stay
stable.
"""

from __future__ import annotations

import re
import secrets
from datetime import datetime, timezone

ID_PATTERN = re.compile(r"^[A-Z]{2,4}-\d{4}-[0-9A-F]{6}$")
PREFIX_PATTERN = re.compile(r"^[A-Z]{2,4}$")

DEFAULT_PREFIX = "DD"


def new_certificate_id(prefix: str = DEFAULT_PREFIX, year: int | None = None) -> str:
    """Mint a fresh identifier.

    Collisions are possible (16.7M values per prefix and year); the record
    store rejects duplicates and the caller re-mints.
    """
    if not PREFIX_PATTERN.match(prefix):
        raise ValueError(f"id prefix must be 2-4 upper-case letters, got {prefix!r}")
    if year is None:
        year = datetime.now(timezone.utc).year
    return f"{prefix}-{year:04d}-{secrets.token_hex(3).upper()}"


def is_certificate_id(value: str) -> bool:
    return bool(ID_PATTERN.match(value))


def normalize_certificate_id(value: str) -> str:
    """IDs are matched case-insensitively; stored form is upper case."""
    return value.strip().upper()
