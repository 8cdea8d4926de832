# heatmap/services/market_data/__init__.py
"""
Market data services package.

This package contains:
- Abstract interface for quote providers (base.py)
- REST adapters over httpx: FMP (fmp.py) and Alpha Vantage (alpha_vantage.py)
- Yahoo Finance adapter over yfinance (yahoo.py)
- Config-driven provider selection (factory.py)
- Batched, rate-limited history backfill (populator.py, rate_limiter.py)

Architecture:
    QuoteProvider (ABC)
    ├── HTTPQuoteProvider
    │   ├── FMPProvider
    │   └── AlphaVantageProvider
    └── YahooFinanceProvider

    BackfillPopulator
    └── BatchRateLimiter paces batches of provider calls
"""

from heatmap.services.market_data.alpha_vantage import AlphaVantageProvider
from heatmap.services.market_data.base import (
    HistoricalPoint,
    InstrumentRef,
    Quote,
    QuoteProvider,
)
from heatmap.services.market_data.factory import create_quote_provider
from heatmap.services.market_data.fmp import FMPProvider
from heatmap.services.market_data.http_base import HTTPQuoteProvider
from heatmap.services.market_data.populator import BackfillPopulator, BackfillResult
from heatmap.services.market_data.rate_limiter import BatchRateLimiter
from heatmap.services.market_data.yahoo import YahooFinanceProvider

__all__ = [
    # Abstract interface and data classes
    "QuoteProvider",
    "Quote",
    "HistoricalPoint",
    "InstrumentRef",
    # Concrete implementations
    "HTTPQuoteProvider",
    "FMPProvider",
    "AlphaVantageProvider",
    "YahooFinanceProvider",
    "create_quote_provider",
    # Backfill
    "BackfillPopulator",
    "BackfillResult",
    "BatchRateLimiter",
]
