# heatmap/services/__init__.py
"""
Service layer for business logic.

Services:
- Have NO knowledge of HTTP (no HTTPException, no status codes)
- Raise domain-specific exceptions
- Receive database sessions as parameters
- Are easily testable via dependency injection

Architecture:
    services/
    ├── __init__.py               # This file - main exports
    ├── exceptions.py             # Domain exceptions
    ├── constants.py              # Business constants and limits
    ├── price_history.py          # Price History Store
    ├── lookup_cache.py           # Read-through caches over the store
    ├── timeframe.py              # Timeframe anchors
    ├── instrument_service.py     # Instrument catalog
    ├── portfolio_service.py      # Portfolios and holdings
    ├── price_update_service.py   # Daily close update
    ├── market_data/              # Quote providers and backfill
    └── valuation/                # Valuation Engine
"""

from heatmap.services.exceptions import (
    DuplicateHoldingError,
    HoldingNotFoundError,
    MarketDataError,
    NotFoundError,
    PortfolioNotFoundError,
    ServiceError,
    StockNotFoundError,
    ValidationError,
)
from heatmap.services.instrument_service import InstrumentService
from heatmap.services.lookup_cache import LookupCache
from heatmap.services.portfolio_service import PortfolioService
from heatmap.services.price_history import PriceEntry, PriceHistoryStore
from heatmap.services.price_update_service import DailyUpdateResult, PriceUpdateService
from heatmap.services.timeframe import Timeframe, TimeframeAnchor, TimeframeResolver
from heatmap.services.valuation import ValuationService

__all__ = [
    # Services
    "PriceHistoryStore",
    "PriceEntry",
    "LookupCache",
    "Timeframe",
    "TimeframeAnchor",
    "TimeframeResolver",
    "ValuationService",
    "InstrumentService",
    "PortfolioService",
    "PriceUpdateService",
    "DailyUpdateResult",
    # Exceptions
    "ServiceError",
    "ValidationError",
    "NotFoundError",
    "PortfolioNotFoundError",
    "HoldingNotFoundError",
    "StockNotFoundError",
    "DuplicateHoldingError",
    "MarketDataError",
]
