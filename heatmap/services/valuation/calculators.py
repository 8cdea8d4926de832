# heatmap/services/valuation/calculators.py
"""
Point-in-time valuation calculators.

Each calculator does one thing:
- OpenPositionCalculator: value, cost basis and return of an open holding
- ClosedPositionCalculator: realized result of a closed holding
- TotalsCalculator: portfolio aggregation

All are stateless and never divide by zero: a zero or unknown
denominator yields None (or 0 for a zero anchor), never NaN or Infinity.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from heatmap.models import PortfolioHolding
from heatmap.services.constants import (
    CASH_PRICE,
    CURRENCY_PRECISION,
    HUNDRED,
    PERCENTAGE_PRECISION,
    ZERO,
)
from heatmap.services.timeframe import TimeframeAnchor
from heatmap.services.valuation.types import (
    ClosedPositionValuation,
    OpenPositionValuation,
    PortfolioTotals,
)

logger = logging.getLogger(__name__)


def _money(value: Decimal | None) -> Decimal | None:
    return None if value is None else value.quantize(CURRENCY_PRECISION)


def _percent(value: Decimal | None) -> Decimal | None:
    return None if value is None else value.quantize(PERCENTAGE_PRECISION)


def percent_of(numerator: Decimal | None, denominator: Decimal | None) -> Decimal | None:
    """numerator / denominator x 100, None when either is unknown or the denominator is 0."""
    if numerator is None or denominator is None or denominator == ZERO:
        return None
    return numerator / denominator * HUNDRED


# =============================================================================
# OPEN POSITIONS
# =============================================================================

class OpenPositionCalculator:
    """Values one open holding at a current price against a timeframe anchor."""

    def calculate(
            self,
            holding: PortfolioHolding,
            quoted_price: Decimal | None,
            anchor: TimeframeAnchor | None,
    ) -> OpenPositionValuation:
        """
        Args:
            holding: Open holding
            quoted_price: Price from the batch quote, None if omitted
            anchor: Resolved timeframe anchor (unused for cash)
        """
        shares = holding.shares
        purchase_price = holding.purchase_price

        current_price = (
            quoted_price if quoted_price is not None
            else purchase_price if purchase_price is not None
            else ZERO
        )
        current_value = shares * current_price

        initial_value = shares * purchase_price if purchase_price is not None else None
        gain_loss = current_value - initial_value if initial_value is not None else None
        percent_return = percent_of(gain_loss, initial_value)

        timeframe_change = anchor.change_percent(current_price) if anchor is not None else None

        return OpenPositionValuation(
            holding_id=holding.id,
            ticker=holding.stock_ticker,
            shares=shares,
            purchase_price=purchase_price,
            current_price=current_price,
            current_value=_money(current_value),
            initial_value=_money(initial_value),
            gain_loss=_money(gain_loss),
            percent_return=_percent(percent_return),
            timeframe_change=_percent(timeframe_change),
            anchor_price=anchor.price if anchor is not None else None,
            anchor_date=anchor.effective_date if anchor is not None else None,
            used_fallback=anchor.used_fallback if anchor is not None else False,
            quote_missing=quoted_price is None,
        )

    def calculate_cash(self, holding: PortfolioHolding) -> OpenPositionValuation:
        """Cash is worth its share count and never moves."""
        shares = holding.shares
        purchase_price = holding.purchase_price
        initial_value = shares * purchase_price if purchase_price is not None else None
        gain_loss = shares - initial_value if initial_value is not None else None

        return OpenPositionValuation(
            holding_id=holding.id,
            ticker=holding.stock_ticker,
            shares=shares,
            purchase_price=purchase_price,
            current_price=CASH_PRICE,
            current_value=_money(shares),
            initial_value=_money(initial_value),
            gain_loss=_money(gain_loss),
            percent_return=_percent(percent_of(gain_loss, initial_value)),
            timeframe_change=_percent(ZERO),
            is_cash=True,
        )


# =============================================================================
# CLOSED POSITIONS
# =============================================================================

class ClosedPositionCalculator:
    """Realized result of a closed holding."""

    def calculate(self, holding: PortfolioHolding) -> ClosedPositionValuation:
        shares = holding.shares
        purchase_price = holding.purchase_price
        selling_price = holding.selling_price

        initial_value = proceeds = gain_loss = None
        if purchase_price is not None and selling_price is not None:
            initial_value = purchase_price * shares
            proceeds = selling_price * shares
            gain_loss = (selling_price - purchase_price) * shares
        elif purchase_price is None:
            logger.debug(f"Closed holding {holding.id} has no cost basis")

        return ClosedPositionValuation(
            holding_id=holding.id,
            ticker=holding.stock_ticker,
            shares=shares,
            purchase_price=purchase_price,
            selling_price=selling_price,
            selling_date=holding.selling_date,
            initial_value=_money(initial_value),
            proceeds=_money(proceeds),
            gain_loss=_money(gain_loss),
            percent_return=_percent(percent_of(gain_loss, initial_value)),
        )


# =============================================================================
# TOTALS
# =============================================================================

class TotalsCalculator:
    """
    Aggregates holdings into portfolio totals.

    total_current_value = sum(open current_value) + sum(closed proceeds)
    total_initial_value = sum(initial_value) over holdings with a known cost basis
    total_dollar_return = total_current_value - total_initial_value
                        = open gains + realized gains (+ value of open holdings without basis)
    total_percent_return = total_dollar_return / total_initial_value x 100,
                           None when total_initial_value <= 0
    """

    def calculate(
            self,
            open_positions: list[OpenPositionValuation],
            closed_positions: list[ClosedPositionValuation],
    ) -> PortfolioTotals:
        total_current = sum((p.current_value for p in open_positions), ZERO)
        total_current += sum(
            (p.proceeds for p in closed_positions if p.proceeds is not None), ZERO
        )

        total_initial = sum(
            (p.initial_value for p in open_positions if p.initial_value is not None), ZERO
        )
        total_initial += sum(
            (p.initial_value for p in closed_positions if p.initial_value is not None), ZERO
        )

        total_dollar = total_current - total_initial
        total_percent = (
            total_dollar / total_initial * HUNDRED if total_initial > ZERO else None
        )

        return PortfolioTotals(
            total_current_value=_money(total_current),
            total_initial_value=_money(total_initial),
            total_dollar_return=_money(total_dollar),
            total_percent_return=_percent(total_percent),
        )
