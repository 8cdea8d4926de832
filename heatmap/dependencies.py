# heatmap/dependencies.py
"""
Singleton service instances.

Every caller in the process (request handlers of the host application,
scheduled jobs, scripts) shares one provider, one lookup cache and the
services built on them. This keeps cache invalidation coherent: the
backfill and the daily update invalidate the same cache the valuation
engine reads through.

Services are lazily initialized on first use to avoid import-time side effects.

Usage:
    from heatmap.dependencies import get_valuation_service

    valuation = get_valuation_service().resolve_valuation(db, portfolio_id=1)
"""

import logging
from functools import lru_cache

from heatmap.config import settings
from heatmap.services.instrument_service import InstrumentService
from heatmap.services.lookup_cache import LookupCache
from heatmap.services.market_data.base import QuoteProvider
from heatmap.services.market_data.factory import create_quote_provider
from heatmap.services.market_data.populator import BackfillPopulator
from heatmap.services.portfolio_service import PortfolioService
from heatmap.services.price_history import PriceHistoryStore
from heatmap.services.price_update_service import PriceUpdateService
from heatmap.services.timeframe import TimeframeResolver
from heatmap.services.valuation.service import ValuationService

logger = logging.getLogger(__name__)


# =============================================================================
# SINGLETON SERVICE INSTANCES
# =============================================================================
# Order matters: define dependencies before dependents
# 1. get_quote_provider, get_price_store (no deps)
# 2. get_lookup_cache (depends on store)
# 3. get_timeframe_resolver (depends on cache)
# 4. get_valuation_service, get_backfill_populator, get_price_update_service


@lru_cache(maxsize=1)
def get_quote_provider() -> QuoteProvider:
    """Provider selected by settings.quote_provider, shared so quotas are shared."""
    logger.debug(f"Initializing singleton quote provider ({settings.quote_provider})")
    return create_quote_provider(settings)


@lru_cache(maxsize=1)
def get_price_store() -> PriceHistoryStore:
    return PriceHistoryStore()


@lru_cache(maxsize=1)
def get_lookup_cache() -> LookupCache:
    logger.debug("Initializing singleton LookupCache")
    return LookupCache(
        store=get_price_store(),
        ttl_seconds=settings.cache_ttl_seconds,
        max_size=settings.cache_max_size,
    )


@lru_cache(maxsize=1)
def get_timeframe_resolver() -> TimeframeResolver:
    return TimeframeResolver(get_lookup_cache())


@lru_cache(maxsize=1)
def get_valuation_service() -> ValuationService:
    logger.debug("Initializing singleton ValuationService")
    return ValuationService(
        provider=get_quote_provider(),
        resolver=get_timeframe_resolver(),
    )


@lru_cache(maxsize=1)
def get_backfill_populator() -> BackfillPopulator:
    """Populator paced by the backfill_* settings."""
    return BackfillPopulator(
        provider=get_quote_provider(),
        store=get_price_store(),
        cache=get_lookup_cache(),
    )


@lru_cache(maxsize=1)
def get_price_update_service() -> PriceUpdateService:
    return PriceUpdateService(
        provider=get_quote_provider(),
        store=get_price_store(),
        cache=get_lookup_cache(),
    )


@lru_cache(maxsize=1)
def get_instrument_service() -> InstrumentService:
    return InstrumentService(provider=get_quote_provider())


@lru_cache(maxsize=1)
def get_portfolio_service() -> PortfolioService:
    return PortfolioService()


def clear_service_caches() -> None:
    """
    Clear all service caches.

    Useful for testing or when you need to reset state.
    """
    get_quote_provider.cache_clear()
    get_price_store.cache_clear()
    get_lookup_cache.cache_clear()
    get_timeframe_resolver.cache_clear()
    get_valuation_service.cache_clear()
    get_backfill_populator.cache_clear()
    get_price_update_service.cache_clear()
    get_instrument_service.cache_clear()
    get_portfolio_service.cache_clear()
    logger.info("Cleared all service singleton caches")
