"""Deterministic fingerprints used as the per-user deduplication key."""

from __future__ import annotations

import hashlib
from datetime import date
from decimal import Decimal


def canonical_string(user_id: str, amount: Decimal | float, when: date, merchant: str) -> str:
    """Build ``userId|amount|date|merchant`` with the amount at 2 decimals."""
    return f"{user_id or ''}|{Decimal(str(amount)):.2f}|{when.isoformat()}|{merchant or ''}"


def fingerprint(user_id: str, amount: Decimal | float, when: date, merchant: str) -> str:
    """Return the hex SHA-256 of the canonical string."""
    raw = canonical_string(user_id, amount, when, merchant)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()
