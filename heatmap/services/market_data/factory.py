# heatmap/services/market_data/factory.py
"""
Quote provider factory (config-driven).

settings.quote_provider selects the adapter; the matching API key and base
URL come from the same settings object.
"""

from __future__ import annotations

import logging

from heatmap.config import Settings
from heatmap.services.market_data.alpha_vantage import AlphaVantageProvider
from heatmap.services.market_data.base import QuoteProvider
from heatmap.services.market_data.fmp import FMPProvider
from heatmap.services.market_data.yahoo import YahooFinanceProvider

logger = logging.getLogger(__name__)


def create_quote_provider(settings: Settings) -> QuoteProvider:
    """Build the provider named by settings.quote_provider."""
    name = settings.quote_provider
    timeout = settings.provider_timeout_seconds

    if name == "fmp":
        provider: QuoteProvider = FMPProvider(
            api_key=settings.fmp_api_key,
            base_url=settings.fmp_base_url,
            timeout=timeout,
        )
    elif name == "alpha_vantage":
        provider = AlphaVantageProvider(
            api_key=settings.alpha_vantage_api_key,
            base_url=settings.alpha_vantage_base_url,
            timeout=timeout,
        )
    elif name == "yahoo":
        provider = YahooFinanceProvider(timeout=int(timeout))
    else:
        raise ValueError(f"Unknown quote provider: {name!r}")

    logger.info(f"Quote provider: {provider.name}")
    return provider
