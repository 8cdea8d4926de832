# tests/services/test_portfolio_service.py
"""
Tests for PortfolioService.

Test Coverage:
- Portfolio create/list/favorite/delete
- Holding add with catalog and duplicate checks
- Holding update, including delete-on-zero-shares
- Open/closed position split
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from heatmap.models import PortfolioHolding, Stock
from heatmap.services.exceptions import (
    DuplicateHoldingError,
    HoldingNotFoundError,
    PortfolioNotFoundError,
    StockNotFoundError,
    ValidationError,
)
from heatmap.services.portfolio_service import PortfolioService
from tests.conftest import create_holding, create_portfolio, create_stock


@pytest.fixture
def service() -> PortfolioService:
    return PortfolioService()


# =============================================================================
# PORTFOLIOS
# =============================================================================

class TestPortfolios:

    def test_create(self, db, service):
        portfolio = service.create_portfolio(db, user_id=7, name="  Growth ")

        assert portfolio.id is not None
        assert portfolio.name == "Growth"
        assert portfolio.favorite is False

    def test_create_blank_name(self, db, service):
        with pytest.raises(ValidationError) as exc_info:
            service.create_portfolio(db, user_id=7, name="  ")
        assert exc_info.value.field == "name"

    def test_list_favorites_first(self, db, service):
        first = create_portfolio(db, user_id=7, name="First")
        second = create_portfolio(db, user_id=7, name="Second")
        create_portfolio(db, user_id=8, name="Other user")

        service.set_favorite(db, second.id, True)

        assert [p.id for p in service.list_portfolios(db, 7)] == [second.id, first.id]

    def test_get_unknown(self, db, service):
        with pytest.raises(PortfolioNotFoundError):
            service.get_portfolio(db, 404)

    def test_delete_cascades_holdings(self, db, service, sample_stock):
        portfolio = create_portfolio(db)
        create_holding(db, portfolio, "AAPL")

        service.delete_portfolio(db, portfolio.id)

        assert db.scalars(select(PortfolioHolding)).all() == []


# =============================================================================
# HOLDINGS
# =============================================================================

class TestHoldings:

    def test_add_holding(self, db, service, sample_stock, sample_portfolio):
        holding = service.add_holding(
            db, sample_portfolio.id, "aapl", Decimal("10"), Decimal("150"), date(2024, 1, 2),
        )

        assert holding.stock_ticker == "AAPL"
        assert holding.is_closed is False

    def test_add_unknown_ticker(self, db, service, sample_portfolio):
        with pytest.raises(StockNotFoundError):
            service.add_holding(db, sample_portfolio.id, "NOPE", Decimal("1"), None, date(2024, 1, 2))

    def test_add_duplicate_ticker(self, db, service, sample_stock, sample_portfolio):
        service.add_holding(db, sample_portfolio.id, "AAPL", Decimal("1"), None, date(2024, 1, 2))

        with pytest.raises(DuplicateHoldingError):
            service.add_holding(db, sample_portfolio.id, "AAPL", Decimal("2"), None, date(2024, 2, 2))

    def test_add_non_positive_shares(self, db, service, sample_stock, sample_portfolio):
        with pytest.raises(ValidationError):
            service.add_holding(db, sample_portfolio.id, "AAPL", Decimal("0"), None, date(2024, 1, 2))

    def test_add_negative_purchase_price(self, db, service, sample_stock, sample_portfolio):
        with pytest.raises(ValidationError) as exc_info:
            service.add_holding(
                db, sample_portfolio.id, "AAPL", Decimal("10"), Decimal("-5"), date(2024, 1, 2),
            )
        assert exc_info.value.field == "purchase_price"

    def test_add_zero_purchase_price_allowed(self, db, service, sample_stock, sample_portfolio):
        holding = service.add_holding(
            db, sample_portfolio.id, "AAPL", Decimal("10"), Decimal("0"), date(2024, 1, 2),
        )
        assert holding.purchase_price == Decimal("0")

    def test_add_cash_creates_catalog_row(self, db, service, sample_portfolio):
        holding = service.add_holding(
            db, sample_portfolio.id, "cash", Decimal("500"), Decimal("1"), date(2024, 1, 2),
        )

        assert holding.stock_ticker == "CASH"
        assert db.get(Stock, "CASH") is not None

    def test_update_fields(self, db, service, sample_stock, sample_portfolio):
        holding = create_holding(db, sample_portfolio, "AAPL")

        updated = service.update_holding(
            db, holding.id, shares=Decimal("4"),
            selling_price=Decimal("120"), selling_date=date(2024, 5, 1),
        )

        assert updated.shares == Decimal("4")
        assert updated.is_closed is True

    def test_update_can_clear_purchase_price(self, db, service, sample_stock, sample_portfolio):
        holding = create_holding(db, sample_portfolio, "AAPL", purchase_price="100")

        updated = service.update_holding(db, holding.id, purchase_price=None)

        assert updated.purchase_price is None

    def test_update_negative_price_rejected(self, db, service, sample_stock, sample_portfolio):
        holding = create_holding(db, sample_portfolio, "AAPL", purchase_price="100")

        with pytest.raises(ValidationError) as exc_info:
            service.update_holding(db, holding.id, purchase_price=Decimal("-1"))
        assert exc_info.value.field == "purchase_price"

        with pytest.raises(ValidationError):
            service.update_holding(db, holding.id, selling_price=Decimal("-1"))

        assert service.get_holding(db, holding.id).purchase_price == Decimal("100")

    def test_update_zero_shares_deletes(self, db, service, sample_stock, sample_portfolio):
        holding = create_holding(db, sample_portfolio, "AAPL")

        assert service.update_holding(db, holding.id, shares=Decimal("0")) is None
        with pytest.raises(HoldingNotFoundError):
            service.get_holding(db, holding.id)

    def test_delete_holding(self, db, service, sample_stock, sample_portfolio):
        holding = create_holding(db, sample_portfolio, "AAPL")
        service.delete_holding(db, holding.id)

        with pytest.raises(HoldingNotFoundError):
            service.delete_holding(db, holding.id)

    def test_open_and_closed_positions(self, db, service, sample_portfolio):
        create_stock(db, "AAPL")
        create_stock(db, "MSFT")
        create_holding(db, sample_portfolio, "AAPL")
        create_holding(
            db, sample_portfolio, "MSFT",
            selling_price="300", selling_date=date(2024, 5, 1),
        )

        open_positions = service.get_open_positions(db, sample_portfolio.id)
        closed_positions = service.get_closed_positions(db, sample_portfolio.id)

        assert [h.stock_ticker for h in open_positions] == ["AAPL"]
        assert [h.stock_ticker for h in closed_positions] == ["MSFT"]
