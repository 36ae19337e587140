# backend/portfolio_tracker/services/constants.py
"""
Centralized constants for the Portfolio Tracker services.

Usage:
    from portfolio_tracker.services.constants import (
        TAG_COLORS,
        DEFAULT_TAG_COLOR,
        MAX_SNAPSHOT_LOAD,
    )
"""

from decimal import Decimal


# =============================================================================
# TAGS
# =============================================================================

# Palette tag colors are derived from (stable hash of the tag name)
TAG_COLORS: tuple[str, ...] = (
    "#667eea", "#764ba2", "#f093fb", "#4facfe",
    "#43e97b", "#fa709a", "#fee140", "#30cfd0",
    "#a8edea", "#fed6e3", "#c471ed", "#f64f59",
)

# Color reported for a tag the registry does not know
DEFAULT_TAG_COLOR: str = "#667eea"

MAX_TAG_LENGTH: int = 50


# =============================================================================
# STORAGE
# =============================================================================

# Upper bound for snapshots returned by a single load
MAX_SNAPSHOT_LOAD: int = 3650

# Stored collections versioned for compare-and-swap writes
VERSIONED_COLLECTIONS: tuple[str, ...] = ("lots", "sales", "dividends", "tags")


# =============================================================================
# MARKET DATA
# =============================================================================

# Yahoo marketState value meaning regular trading hours
MARKET_STATE_OPEN: str = "REGULAR"

# Quote price precision (per-unit prices)
PRICE_PRECISION: Decimal = Decimal("0.00000001")
