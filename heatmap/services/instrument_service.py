# heatmap/services/instrument_service.py
"""
Instrument catalog.

Lookups over the stocks table and bulk seeding from the provider's
instrument universe.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from heatmap.models import PriceHistory, Stock
from heatmap.services.constants import DEFAULT_SEARCH_LIMIT, MAX_SEARCH_LIMIT
from heatmap.services.exceptions import StockNotFoundError
from heatmap.services.market_data.base import QuoteProvider
from heatmap.utils.sql import escape_like_pattern

logger = logging.getLogger(__name__)


class InstrumentService:
    """Catalog queries and universe seeding."""

    def __init__(self, provider: QuoteProvider | None = None) -> None:
        self._provider = provider

    def get_stock(self, db: Session, ticker: str) -> Stock:
        """
        Raises:
            StockNotFoundError: Ticker is not in the catalog
        """
        stock = db.get(Stock, ticker.strip().upper())
        if stock is None:
            raise StockNotFoundError(ticker)
        return stock

    def list_stocks(self, db: Session) -> list[Stock]:
        return list(db.scalars(select(Stock).order_by(Stock.ticker)))

    def search_stocks(
            self,
            db: Session,
            prefix: str,
            limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> list[Stock]:
        """
        Tickers starting with prefix, largest market cap first.

        Market cap comes from each stock's newest price row; stocks without
        one sort last, then alphabetically.
        """
        limit = max(1, min(limit, MAX_SEARCH_LIMIT))
        pattern = f"{escape_like_pattern(prefix.strip().upper())}%"

        latest_date = (
            select(
                PriceHistory.stock_ticker.label("ticker"),
                func.max(PriceHistory.date).label("max_date"),
            )
            .group_by(PriceHistory.stock_ticker)
            .subquery()
        )
        latest_cap = (
            select(
                PriceHistory.stock_ticker.label("ticker"),
                PriceHistory.market_cap.label("market_cap"),
            )
            .join(
                latest_date,
                (PriceHistory.stock_ticker == latest_date.c.ticker)
                & (PriceHistory.date == latest_date.c.max_date),
            )
            .subquery()
        )

        stmt = (
            select(Stock)
            .outerjoin(latest_cap, Stock.ticker == latest_cap.c.ticker)
            .where(Stock.ticker.like(pattern, escape="\\"))
            .order_by(
                latest_cap.c.market_cap.is_(None),
                latest_cap.c.market_cap.desc(),
                Stock.ticker,
            )
            .limit(limit)
        )
        return list(db.scalars(stmt))

    def seed_universe(self, db: Session) -> int:
        """
        Upsert catalog rows from the provider's instrument universe.

        Existing stocks get their name and sector refreshed when the
        provider reports them.

        Returns:
            Number of stocks created

        Raises:
            UnsupportedOperationError: Provider has no universe endpoint
        """
        if self._provider is None:
            raise ValueError("seed_universe requires a provider")

        refs = self._provider.instrument_universe()
        existing = {s.ticker: s for s in db.scalars(select(Stock))}

        created = 0
        for ref in refs:
            ticker = ref.symbol.strip().upper()
            stock = existing.get(ticker)
            if stock is None:
                stock = Stock(ticker=ticker, company_name=ref.name, sector=ref.sector)
                db.add(stock)
                existing[ticker] = stock
                created += 1
            else:
                stock.company_name = ref.name or stock.company_name
                stock.sector = ref.sector or stock.sector

        db.commit()
        logger.info(f"Seeded universe from {self._provider.name}: {created} new of {len(refs)}")
        return created
