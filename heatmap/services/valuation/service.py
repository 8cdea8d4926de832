# heatmap/services/valuation/service.py
"""
Valuation Service - Main orchestrator for portfolio valuation.

Single entry point: resolve_valuation(db, portfolio_id, timeframe).

Flow:
    1. Load open and closed holdings of the portfolio
    2. Quote every distinct non-cash ticker with one batch_quotes call
    3. Resolve each open holding's timeframe anchor
    4. Delegate per-holding math to the calculators
    5. Aggregate totals

Design Principles:
- Dependency Injection: provider, cache and resolver via constructor
- No HTTP Knowledge: raises domain exceptions, not HTTPException
- Degrades instead of failing: a provider outage values holdings at their
  purchase price and adds a warning

Usage:
    from heatmap.services.valuation import ValuationService

    service = ValuationService(provider=FMPProvider(api_key="..."))
    result = service.resolve_valuation(db, portfolio_id=1, timeframe="1m")
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from heatmap.models import Portfolio, PortfolioHolding
from heatmap.services.constants import CASH_TICKER
from heatmap.services.exceptions import MarketDataError, PortfolioNotFoundError
from heatmap.services.lookup_cache import LookupCache
from heatmap.services.market_data.base import QuoteProvider
from heatmap.services.timeframe import Timeframe, TimeframeResolver
from heatmap.services.valuation.calculators import (
    ClosedPositionCalculator,
    OpenPositionCalculator,
    TotalsCalculator,
)
from heatmap.services.valuation.types import OpenPositionValuation, PortfolioValuation

logger = logging.getLogger(__name__)


def is_cash_ticker(ticker: str) -> bool:
    return ticker.strip().upper() == CASH_TICKER


class ValuationService:
    """
    Values a portfolio for one timeframe.

    Attributes:
        _provider: Quote source for current prices
        _resolver: Timeframe anchor resolution (through the lookup cache)
        _open_calc / _closed_calc / _totals_calc: Stateless calculators
    """

    def __init__(
            self,
            provider: QuoteProvider,
            cache: LookupCache | None = None,
            resolver: TimeframeResolver | None = None,
    ) -> None:
        self._provider = provider
        self._resolver = resolver or TimeframeResolver(cache or LookupCache())

        self._open_calc = OpenPositionCalculator()
        self._closed_calc = ClosedPositionCalculator()
        self._totals_calc = TotalsCalculator()

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def resolve_valuation(
            self,
            db: Session,
            portfolio_id: int,
            timeframe: Timeframe | str = Timeframe.ONE_DAY,
            today: date | None = None,
    ) -> PortfolioValuation:
        """
        Calculate the valuation of a portfolio.

        Args:
            db: Database session
            portfolio_id: Portfolio to value
            timeframe: Timeframe token for the per-holding change
            today: Reference date (default: date.today())

        Raises:
            PortfolioNotFoundError: Portfolio does not exist
        """
        timeframe = Timeframe.parse(timeframe)
        today = today or date.today()

        portfolio = db.get(Portfolio, portfolio_id)
        if portfolio is None:
            raise PortfolioNotFoundError(portfolio_id)

        holdings = list(db.scalars(
            select(PortfolioHolding)
            .where(PortfolioHolding.portfolio_id == portfolio_id)
            .order_by(PortfolioHolding.id)
        ))
        open_holdings = [h for h in holdings if not h.is_closed]
        closed_holdings = [h for h in holdings if h.is_closed]

        logger.info(
            f"Valuing portfolio {portfolio_id} ({timeframe.value}): "
            f"{len(open_holdings)} open, {len(closed_holdings)} closed"
        )

        warnings: list[str] = []
        quotes = self._fetch_quotes(open_holdings, warnings)

        open_positions = [
            self._value_open(db, holding, quotes, timeframe, today)
            for holding in open_holdings
        ]
        closed_positions = [self._closed_calc.calculate(h) for h in closed_holdings]

        no_basis = [p.ticker for p in closed_positions if p.gain_loss is None]
        if no_basis:
            warnings.append(f"Closed positions without prices excluded from totals: {', '.join(no_basis)}")

        totals = self._totals_calc.calculate(open_positions, closed_positions)

        return PortfolioValuation(
            portfolio_id=portfolio_id,
            timeframe=timeframe.value,
            valuation_date=today,
            open_positions=open_positions,
            closed_positions=closed_positions,
            totals=totals,
            warnings=warnings,
        )

    # =========================================================================
    # PRIVATE HELPERS
    # =========================================================================

    def _fetch_quotes(
            self,
            holdings: list[PortfolioHolding],
            warnings: list[str],
    ) -> dict[str, Decimal]:
        """Quote all distinct non-cash tickers; chunked only above MAX_BATCH_SIZE."""
        tickers = sorted({
            h.stock_ticker.upper() for h in holdings if not is_cash_ticker(h.stock_ticker)
        })
        if not tickers:
            return {}

        prices: dict[str, Decimal] = {}
        batch_size = self._provider.MAX_BATCH_SIZE
        for i in range(0, len(tickers), batch_size):
            batch = tickers[i:i + batch_size]
            try:
                for quote in self._provider.batch_quotes(batch):
                    prices[quote.symbol.upper()] = quote.price
            except MarketDataError as e:
                logger.error(f"Quote fetch failed for {len(batch)} tickers: {e}")
                warnings.append(f"Quotes unavailable from {self._provider.name}")

        missing = [t for t in tickers if t not in prices]
        if missing:
            logger.warning(f"No quote returned for: {', '.join(missing)}")
            warnings.append(f"Missing quotes, valued at purchase price: {', '.join(missing)}")

        return prices

    def _value_open(
            self,
            db: Session,
            holding: PortfolioHolding,
            quotes: dict[str, Decimal],
            timeframe: Timeframe,
            today: date,
    ) -> OpenPositionValuation:
        if is_cash_ticker(holding.stock_ticker):
            return self._open_calc.calculate_cash(holding)

        quoted = quotes.get(holding.stock_ticker.upper())

        # the 1d unchanged-price check only makes sense against a live quote
        anchor = self._resolver.resolve(
            db,
            holding.stock_ticker,
            timeframe,
            purchase_price=holding.purchase_price,
            current_price=quoted,
            today=today,
        )
        return self._open_calc.calculate(holding, quoted, anchor)

