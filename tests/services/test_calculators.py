# tests/services/test_calculators.py
"""
Unit tests for valuation calculators.

These tests verify the pure calculation logic WITHOUT database dependencies.
We use simple mock objects to simulate PortfolioHolding models.

Test Coverage:
- OpenPositionCalculator: value, gain/loss, return, quote fallbacks, cash
- ClosedPositionCalculator: realized gain/loss and proceeds
- TotalsCalculator: aggregation and the "no basis" case
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

import pytest

from heatmap.services.timeframe import TimeframeAnchor
from heatmap.services.valuation.calculators import (
    ClosedPositionCalculator,
    OpenPositionCalculator,
    TotalsCalculator,
    percent_of,
)


# =============================================================================
# MOCK OBJECTS (No database needed)
# =============================================================================

@dataclass
class MockHolding:
    """Mock PortfolioHolding for unit testing."""
    id: int
    stock_ticker: str
    shares: Decimal
    purchase_price: Decimal | None
    selling_price: Decimal | None = None
    selling_date: date | None = None


@pytest.fixture
def open_calc() -> OpenPositionCalculator:
    return OpenPositionCalculator()


@pytest.fixture
def closed_calc() -> ClosedPositionCalculator:
    return ClosedPositionCalculator()


def holding(shares="10", purchase_price="100", ticker="AAPL", **kwargs) -> MockHolding:
    return MockHolding(
        id=1,
        stock_ticker=ticker,
        shares=Decimal(shares),
        purchase_price=Decimal(purchase_price) if purchase_price is not None else None,
        **kwargs,
    )


# =============================================================================
# OPEN POSITIONS
# =============================================================================

class TestOpenPositionCalculator:

    def test_gain_on_quoted_price(self, open_calc):
        """10 shares bought at 100 and quoted at 110."""
        result = open_calc.calculate(holding(), Decimal("110"), TimeframeAnchor(price=Decimal("105")))

        assert result.current_value == Decimal("1100.00")
        assert result.initial_value == Decimal("1000.00")
        assert result.gain_loss == Decimal("100.00")
        assert result.percent_return == Decimal("10.0000")
        assert result.timeframe_change == Decimal("4.7619")
        assert result.quote_missing is False

    def test_missing_quote_values_at_purchase_price(self, open_calc):
        result = open_calc.calculate(holding(), None, TimeframeAnchor(price=Decimal("100")))

        assert result.current_price == Decimal("100")
        assert result.gain_loss == Decimal("0.00")
        assert result.quote_missing is True

    def test_no_basis_and_no_quote(self, open_calc):
        result = open_calc.calculate(holding(purchase_price=None), None, TimeframeAnchor(price=Decimal("0")))

        assert result.current_price == Decimal("0")
        assert result.current_value == Decimal("0.00")
        assert result.initial_value is None
        assert result.gain_loss is None
        assert result.percent_return is None
        assert result.timeframe_change == Decimal("0.0000")

    def test_zero_purchase_price_has_no_return(self, open_calc):
        result = open_calc.calculate(holding(purchase_price="0"), Decimal("50"), None)

        assert result.initial_value == Decimal("0.00")
        assert result.gain_loss == Decimal("500.00")
        assert result.percent_return is None
        assert result.timeframe_change is None

    def test_anchor_details_are_reported(self, open_calc):
        anchor = TimeframeAnchor(price=Decimal("90"), effective_date=date(2024, 3, 1))
        result = open_calc.calculate(holding(), Decimal("99"), anchor)

        assert result.anchor_price == Decimal("90")
        assert result.anchor_date == date(2024, 3, 1)
        assert result.used_fallback is False

    def test_cash(self, open_calc):
        result = open_calc.calculate_cash(holding(shares="500", purchase_price="1", ticker="CASH"))

        assert result.is_cash is True
        assert result.current_price == Decimal("1")
        assert result.current_value == Decimal("500.00")
        assert result.gain_loss == Decimal("0.00")
        assert result.timeframe_change == Decimal("0.0000")


# =============================================================================
# CLOSED POSITIONS
# =============================================================================

class TestClosedPositionCalculator:

    def test_loss_sale(self, closed_calc):
        """5 shares bought at 100, sold at 90."""
        result = closed_calc.calculate(holding(
            shares="5", selling_price=Decimal("90"), selling_date=date(2024, 6, 1),
        ))

        assert result.gain_loss == Decimal("-50.00")
        assert result.percent_return == Decimal("-10.0000")
        assert result.initial_value == Decimal("500.00")
        assert result.proceeds == Decimal("450.00")
        assert result.selling_date == date(2024, 6, 1)

    def test_profitable_sale(self, closed_calc):
        result = closed_calc.calculate(holding(
            shares="2", purchase_price="50", selling_price=Decimal("75"), selling_date=date(2024, 6, 1),
        ))
        assert result.gain_loss == Decimal("50.00")
        assert result.percent_return == Decimal("50.0000")

    def test_no_basis(self, closed_calc):
        result = closed_calc.calculate(holding(
            purchase_price=None, selling_price=Decimal("90"), selling_date=date(2024, 6, 1),
        ))

        assert result.gain_loss is None
        assert result.percent_return is None
        assert result.initial_value is None
        assert result.proceeds is None

    def test_no_selling_price(self, closed_calc):
        result = closed_calc.calculate(holding(selling_date=date(2024, 6, 1)))
        assert result.gain_loss is None
        assert result.initial_value is None

    def test_zero_purchase_price(self, closed_calc):
        result = closed_calc.calculate(holding(
            purchase_price="0", selling_price=Decimal("10"), selling_date=date(2024, 6, 1),
        ))
        assert result.gain_loss == Decimal("100.00")
        assert result.percent_return is None


# =============================================================================
# TOTALS
# =============================================================================

class TestTotalsCalculator:

    def test_open_and_closed(self, open_calc, closed_calc):
        open_positions = [open_calc.calculate(holding(), Decimal("110"), None)]
        closed_positions = [closed_calc.calculate(holding(
            shares="5", selling_price=Decimal("90"), selling_date=date(2024, 6, 1),
        ))]

        totals = TotalsCalculator().calculate(open_positions, closed_positions)

        assert totals.total_current_value == Decimal("1550.00")
        assert totals.total_initial_value == Decimal("1500.00")
        # +100 unrealized, -50 realized
        assert totals.total_dollar_return == Decimal("50.00")
        assert totals.total_percent_return == Decimal("3.3333")

    def test_closed_without_basis_is_excluded(self, open_calc, closed_calc):
        open_positions = [open_calc.calculate(holding(), Decimal("110"), None)]
        closed_positions = [closed_calc.calculate(holding(
            purchase_price=None, selling_price=Decimal("90"), selling_date=date(2024, 6, 1),
        ))]

        totals = TotalsCalculator().calculate(open_positions, closed_positions)

        assert totals.total_current_value == Decimal("1100.00")
        assert totals.total_initial_value == Decimal("1000.00")

    def test_empty_portfolio(self):
        totals = TotalsCalculator().calculate([], [])

        assert totals.total_current_value == Decimal("0.00")
        assert totals.total_dollar_return == Decimal("0.00")
        assert totals.total_percent_return is None

    def test_no_basis_anywhere(self, open_calc):
        open_positions = [open_calc.calculate(holding(purchase_price=None), Decimal("100"), None)]

        totals = TotalsCalculator().calculate(open_positions, [])

        assert totals.total_current_value == Decimal("1000.00")
        assert totals.total_initial_value == Decimal("0.00")
        assert totals.total_percent_return is None


class TestPercentOf:

    @pytest.mark.parametrize("num,den,expected", [
        (Decimal("1"), Decimal("4"), Decimal("25")),
        (Decimal("1"), Decimal("0"), None),
        (None, Decimal("4"), None),
        (Decimal("1"), None, None),
    ])
    def test_percent_of(self, num, den, expected):
        assert percent_of(num, den) == expected
