# heatmap/services/valuation/types.py
"""
Result types for the Valuation Engine.

Design Principles:
- Decimal for ALL financial values (never float)
- None means "unknown" (no cost basis, no anchor), never a disguised 0
- Money is quantized to CURRENCY_PRECISION, percentages to PERCENTAGE_PRECISION

Type Hierarchy:
    OpenPositionValuation    - one open holding, with timeframe change
    ClosedPositionValuation  - one closed holding, realized result
    PortfolioTotals          - aggregated figures
    PortfolioValuation       - everything returned for one request
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal


@dataclass(frozen=True)
class OpenPositionValuation:
    """
    Valuation of one open holding.

    Attributes:
        current_price: Quote, else purchase price, else 0 (cash: 1)
        current_value: shares x current_price
        initial_value: shares x purchase_price, None without cost basis
        gain_loss: current_value - initial_value, None without cost basis
        percent_return: gain_loss / initial_value x 100, None if unknown or basis is 0
        timeframe_change: Percent change against the timeframe anchor
        anchor_price / anchor_date: What the change was measured against
        used_fallback: Anchor came from the purchase price (or 0), not history
        quote_missing: No quote was returned for the ticker
    """

    holding_id: int
    ticker: str
    shares: Decimal
    purchase_price: Decimal | None
    current_price: Decimal
    current_value: Decimal
    initial_value: Decimal | None
    gain_loss: Decimal | None
    percent_return: Decimal | None
    timeframe_change: Decimal | None
    anchor_price: Decimal | None = None
    anchor_date: date | None = None
    used_fallback: bool = False
    quote_missing: bool = False
    is_cash: bool = False


@dataclass(frozen=True)
class ClosedPositionValuation:
    """
    Realized result of one closed holding.

    gain_loss = (selling_price - purchase_price) x shares
    percent_return = gain_loss / (purchase_price x shares) x 100

    initial_value and proceeds are None unless both prices are known, so
    a closed holding enters the totals completely or not at all.
    """

    holding_id: int
    ticker: str
    shares: Decimal
    purchase_price: Decimal | None
    selling_price: Decimal | None
    selling_date: date | None
    initial_value: Decimal | None
    proceeds: Decimal | None
    gain_loss: Decimal | None
    percent_return: Decimal | None


@dataclass(frozen=True)
class PortfolioTotals:
    """
    Portfolio-level figures.

    total_current_value includes the sale proceeds of closed positions, so
    total_dollar_return carries their realized gains.
    total_percent_return is None when total_initial_value <= 0.
    """

    total_current_value: Decimal
    total_initial_value: Decimal
    total_dollar_return: Decimal
    total_percent_return: Decimal | None


@dataclass
class PortfolioValuation:
    """Complete valuation of a portfolio for one timeframe."""

    portfolio_id: int
    timeframe: str
    valuation_date: date
    open_positions: list[OpenPositionValuation]
    closed_positions: list[ClosedPositionValuation]
    totals: PortfolioTotals
    warnings: list[str] = field(default_factory=list)

    @property
    def total_current_value(self) -> Decimal:
        return self.totals.total_current_value

    @property
    def total_initial_value(self) -> Decimal:
        return self.totals.total_initial_value

    @property
    def total_dollar_return(self) -> Decimal:
        return self.totals.total_dollar_return

    @property
    def total_percent_return(self) -> Decimal | None:
        return self.totals.total_percent_return
