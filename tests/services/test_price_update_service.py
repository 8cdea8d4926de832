# tests/services/test_price_update_service.py
"""
Tests for the daily price update and single-ticker refresh.
"""

from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from heatmap.services.exceptions import ProviderUnavailableError, StockNotFoundError
from heatmap.services.lookup_cache import LookupCache
from heatmap.services.market_data.base import Quote
from heatmap.services.price_history import PriceHistoryStore
from heatmap.services.price_update_service import PriceUpdateService
from tests.conftest import create_price, create_stock

TODAY = date(2024, 4, 2)


@pytest.fixture
def cache() -> MagicMock:
    return MagicMock(spec=LookupCache)


@pytest.fixture
def service(mock_provider, cache) -> PriceUpdateService:
    return PriceUpdateService(provider=mock_provider, cache=cache)


class TestUpdateDailyPrices:

    def test_writes_missing_rows(self, db, service, mock_provider, cache):
        create_stock(db, "AAPL")
        create_stock(db, "MSFT")
        create_stock(db, "CASH")
        create_price(db, "MSFT", TODAY, "400")
        mock_provider.add_quote("AAPL", "170", pe_ratio="28.5", market_cap=2_700)
        mock_provider.add_quote("MSFT", "410")

        result = service.update_daily_prices(db, today=TODAY)

        assert result.instruments_total == 2
        assert result.rows_written == 1
        assert result.already_present == 1
        assert mock_provider.batch_requests == [["AAPL", "MSFT"]]

        row = PriceHistoryStore().get(db, "AAPL", TODAY)
        assert row.closing_price == Decimal("170")
        assert row.market_cap == 2_700
        # Existing row not overwritten
        assert PriceHistoryStore().get(db, "MSFT", TODAY).closing_price == Decimal("400")
        cache.invalidate_ticker.assert_called_once_with("AAPL")

    def test_missing_quotes_are_reported(self, db, service, mock_provider):
        create_stock(db, "AAPL")
        create_stock(db, "MSFT")
        mock_provider.add_quote("AAPL", "170")

        result = service.update_daily_prices(db, today=TODAY)

        assert result.missing_quotes == ["MSFT"]
        assert result.rows_written == 1

    def test_failed_batch_is_skipped(self, db, service, mock_provider):
        """A failing batch does not stop the following batches."""
        mock_provider.MAX_BATCH_SIZE = 1
        create_stock(db, "AAPL")
        create_stock(db, "MSFT")
        mock_provider.batch_quotes = MagicMock(side_effect=[
            ProviderUnavailableError(provider="mock", reason="down"),
            [Quote(symbol="MSFT", price=Decimal("410"))],
        ])

        result = service.update_daily_prices(db, today=TODAY)

        assert result.failed_batches == 1
        assert result.rows_written == 1
        assert PriceHistoryStore().get(db, "AAPL", TODAY) is None

    def test_batch_error_counts_failed_batches(self, db, service, mock_provider):
        create_stock(db, "AAPL")
        mock_provider.set_batch_error(ProviderUnavailableError(provider="mock", reason="down"))

        result = service.update_daily_prices(db, today=TODAY)

        assert result.failed_batches == 1
        assert result.rows_written == 0


class TestRefreshLatestPrice:

    def test_upserts_today(self, db, service, mock_provider, cache):
        create_stock(db, "AAPL")
        create_price(db, "AAPL", TODAY, "160")
        mock_provider.add_quote("AAPL", "171.25")

        row = service.refresh_latest_price(db, "AAPL", today=TODAY)

        assert row.closing_price == Decimal("171.25")
        assert len(PriceHistoryStore().history(db, "AAPL")) == 1
        cache.invalidate_ticker.assert_called_once_with("AAPL")

    def test_unknown_ticker(self, db, service):
        with pytest.raises(StockNotFoundError):
            service.refresh_latest_price(db, "NOPE", today=TODAY)
