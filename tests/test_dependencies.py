# tests/test_dependencies.py
"""
Tests for the provider factory and the shared service singletons.
"""

import pytest

from heatmap.config import Settings
from heatmap.dependencies import (
    clear_service_caches,
    get_backfill_populator,
    get_lookup_cache,
    get_price_update_service,
    get_valuation_service,
)
from heatmap.services.market_data.alpha_vantage import AlphaVantageProvider
from heatmap.services.market_data.factory import create_quote_provider
from heatmap.services.market_data.fmp import FMPProvider
from heatmap.services.market_data.yahoo import YahooFinanceProvider


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, environment="test", **overrides)


class TestCreateQuoteProvider:

    @pytest.mark.parametrize("name,expected", [
        ("fmp", FMPProvider),
        ("alpha_vantage", AlphaVantageProvider),
        ("yahoo", YahooFinanceProvider),
    ])
    def test_selects_adapter(self, name, expected):
        provider = create_quote_provider(
            make_settings(quote_provider=name, fmp_api_key="k", alpha_vantage_api_key="k")
        )
        assert isinstance(provider, expected)


class TestSingletons:

    @pytest.fixture(autouse=True)
    def fresh_singletons(self):
        clear_service_caches()
        yield
        clear_service_caches()

    def test_services_share_one_cache(self):
        cache = get_lookup_cache()

        assert get_backfill_populator()._cache is cache
        assert get_price_update_service()._cache is cache

    def test_same_instance_until_cleared(self):
        first = get_valuation_service()
        assert get_valuation_service() is first

        clear_service_caches()

        assert get_valuation_service() is not first
