# Overview: Service-layer operations for sale identifiers.

"""
Sale Number Generator

FORMAT: <prefix><UTC YYYYmmddHHMMSS><3-digit random suffix>
        e.g. RS20261019143005417

UNIQUENESS: NOT guaranteed by the generator. Two sales created in the same
second can draw the same suffix. The sales.sale_number unique constraint is
the only guard; a collision surfaces as DuplicateIdentifier and the caller
retries with a freshly generated number.
"""

from __future__ import annotations

import random
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from radstock.time_utils import utcnow


SUFFIX_MIN = 100
SUFFIX_MAX = 998

_rng = random.SystemRandom()


def next_sale_number(prefix: str = "RS", now: datetime | None = None) -> str:
    """Build a human-readable sale number from the current UTC second."""
    now = now or utcnow()
    suffix = _rng.randint(SUFFIX_MIN, SUFFIX_MAX)
    return f"{prefix}{now:%Y%m%d%H%M%S}{suffix}"


def is_sale_number_conflict(exc: IntegrityError) -> bool:
    """
    True if the IntegrityError came from the sale-number unique constraint.

    SQLite reports "UNIQUE constraint failed: sales.sale_number"; PostgreSQL
    names the constraint (uq_sales_sale_number).
    """
    message = str(getattr(exc, "orig", exc)).lower()
    return "sale_number" in message
