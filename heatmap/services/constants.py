# heatmap/services/constants.py
"""
Centralized constants for the heatmap services.

Tunable runtime values (batch size, delays, TTLs) live in heatmap.config.
This module holds the fixed business constants.

Usage:
    from heatmap.services.constants import (
        CASH_TICKER,
        ANCHOR_LOOKBACK_DAYS,
        MARKET_CLOSED_EPSILON,
    )
"""

from decimal import Decimal


# =============================================================================
# CASH POSITIONS
# =============================================================================

# Pseudo-ticker for cash held in a portfolio, matched case-insensitively.
# A cash holding's "shares" are its amount, priced at 1 and never quoted.
CASH_TICKER: str = "CASH"
CASH_PRICE: Decimal = Decimal("1")


# =============================================================================
# TIMEFRAME ANCHOR RESOLUTION
# =============================================================================

# Days probed before the anchor date when it has no stored close
# (weekends, holidays). k = 0..3 gives at most 4 exact lookups.
ANCHOR_LOOKBACK_DAYS: int = 3

# A 1d anchor close within this distance of the current price is taken to
# mean the market has not traded since, and the anchor moves back one day.
MARKET_CLOSED_EPSILON: Decimal = Decimal("0.0001")


# =============================================================================
# PROVIDER LIMITS
# =============================================================================

# Largest symbol list accepted by one batch quote call
PROVIDER_MAX_BATCH_SIZE: int = 100

# Retry policy for transient provider failures
PROVIDER_MAX_RETRY_ATTEMPTS: int = 3
PROVIDER_RETRY_MIN_WAIT: int = 1
PROVIDER_RETRY_MAX_WAIT: int = 10


# =============================================================================
# DECIMAL PRECISION
# =============================================================================

# Prices and shares as stored (Numeric(18, 8))
PRICE_PRECISION: Decimal = Decimal("0.00000001")

# Money amounts in valuation results
CURRENCY_PRECISION: Decimal = Decimal("0.01")

# Percentages in valuation results (12.3456%)
PERCENTAGE_PRECISION: Decimal = Decimal("0.0001")

ZERO: Decimal = Decimal("0")
HUNDRED: Decimal = Decimal("100")


# =============================================================================
# INSTRUMENT SEARCH
# =============================================================================

DEFAULT_SEARCH_LIMIT: int = 10
MAX_SEARCH_LIMIT: int = 50

# Page size for price history listings
DEFAULT_HISTORY_PAGE_SIZE: int = 100
