# backend/portfolio_tracker/schemas/validators.py
"""
Reusable validation functions for Pydantic schemas.

- Currency code validation
- Identifier normalization (symbol, ISIN, fund code)
- Tag list cleanup
"""

import re
from collections.abc import Iterable

from portfolio_tracker.services.constants import MAX_TAG_LENGTH

# =============================================================================
# CONSTANTS
# =============================================================================

# Currency: ISO 4217 format (3 uppercase letters)
CURRENCY_PATTERN = re.compile(r'^[A-Z]{3}$')

IDENTIFIER_MAX_LENGTH = 32


# =============================================================================
# VALIDATORS
# =============================================================================

def validate_currency(value: str) -> str:
    """
    Validate and normalize an ISO 4217 currency code.

    Raises:
        ValueError: If not three letters
    """
    normalized = (value or "").strip().upper()
    if not CURRENCY_PATTERN.match(normalized):
        raise ValueError(f"Invalid currency code: '{value}'. Expected 3 letters, e.g. JPY")
    return normalized


def normalize_identifier(value: str | None) -> str | None:
    """Trim and uppercase a symbol / ISIN / fund code; blank becomes None."""
    if value is None:
        return None
    normalized = value.strip().upper()
    if not normalized:
        return None
    if len(normalized) > IDENTIFIER_MAX_LENGTH:
        raise ValueError(f"Identifier cannot exceed {IDENTIFIER_MAX_LENGTH} characters")
    return normalized


def clean_tags(values: Iterable[str] | None) -> list[str] | None:
    """Strip tags, drop blanks and duplicates (first occurrence wins)."""
    if values is None:
        return None
    seen: list[str] = []
    for value in values:
        tag = value.strip()
        if not tag or tag in seen:
            continue
        if len(tag) > MAX_TAG_LENGTH:
            raise ValueError(f"Tag cannot exceed {MAX_TAG_LENGTH} characters")
        seen.append(tag)
    return seen
