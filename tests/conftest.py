# tests/conftest.py
"""
Pytest configuration and fixtures.

This module provides shared fixtures for all tests:
- Database session fixtures (in-memory SQLite)
- Mock quote provider fixture
- Sample data factories
"""

import os

# Settings are read at import time; test mode needs no API key or database URL
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from heatmap.models import Base, Portfolio, PortfolioHolding, PriceHistory, Stock
from heatmap.services.exceptions import NoDataError
from heatmap.services.lookup_cache import LookupCache
from heatmap.services.market_data.base import (
    HistoricalPoint,
    InstrumentRef,
    Quote,
    QuoteProvider,
)


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def db(db_engine) -> Iterator[Session]:
    """Create a database session for testing."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# =============================================================================
# MOCK QUOTE PROVIDER
# =============================================================================

class MockQuoteProvider(QuoteProvider):
    """
    Mock implementation of QuoteProvider for testing.

    Quotes, history and errors are configured per ticker. Tickers without a
    configured quote are omitted from batch results and raise NoDataError
    from current_quote. Tickers without configured history get one close
    per weekday in the requested range.
    """

    def __init__(self):
        self._quotes: dict[str, Quote] = {}
        self._history: dict[str, list[HistoricalPoint]] = {}
        self._errors: dict[str, Exception] = {}
        self._batch_error: Exception | None = None
        self._universe: list[InstrumentRef] = []
        self._call_count: dict[str, int] = {"quote": 0, "batch": 0, "history": 0}
        self.batch_requests: list[list[str]] = []

    @property
    def name(self) -> str:
        return "mock"

    def add_quote(
            self,
            ticker: str,
            price: Decimal | str,
            pe_ratio: Decimal | str | None = None,
            market_cap: int | None = None,
    ) -> None:
        """Configure a successful quote for a ticker."""
        self._quotes[ticker.upper()] = Quote(
            symbol=ticker.upper(),
            price=Decimal(str(price)),
            pe_ratio=Decimal(str(pe_ratio)) if pe_ratio is not None else None,
            market_cap=market_cap,
        )

    def set_history(self, ticker: str, points: list[tuple[date, Decimal | str]]) -> None:
        """Configure the history returned for a ticker."""
        self._history[ticker.upper()] = [
            HistoricalPoint(date=d, close=Decimal(str(c))) for d, c in points
        ]

    def add_error(self, ticker: str, error: Exception) -> None:
        """Configure an error raised by every call for a ticker."""
        self._errors[ticker.upper()] = error

    def set_batch_error(self, error: Exception | None) -> None:
        """Configure an error raised by batch_quotes."""
        self._batch_error = error

    def set_universe(self, refs: list[InstrumentRef]) -> None:
        self._universe = list(refs)

    @property
    def quote_call_count(self) -> int:
        return self._call_count["quote"]

    @property
    def batch_call_count(self) -> int:
        return self._call_count["batch"]

    @property
    def history_call_count(self) -> int:
        return self._call_count["history"]

    def current_quote(self, ticker: str) -> Quote:
        self._call_count["quote"] += 1
        key = ticker.upper()
        if key in self._errors:
            raise self._errors[key]
        if key not in self._quotes:
            raise NoDataError(provider=self.name, symbol=key)
        return self._quotes[key]

    def batch_quotes(self, tickers: list[str]) -> list[Quote]:
        self._call_count["batch"] += 1
        self._check_batch_size(tickers)
        self.batch_requests.append(list(tickers))
        if self._batch_error is not None:
            raise self._batch_error
        return [
            self._quotes[t.upper()]
            for t in tickers
            if t.upper() in self._quotes and t.upper() not in self._errors
        ]

    def historical_range(
            self,
            ticker: str,
            start_date: date,
            end_date: date,
    ) -> list[HistoricalPoint]:
        self._call_count["history"] += 1
        key = ticker.upper()
        if key in self._errors:
            raise self._errors[key]
        if key in self._history:
            return [p for p in self._history[key] if start_date <= p.date <= end_date]

        points = []
        current = start_date
        price = Decimal("100.00")
        while current <= end_date:
            if current.weekday() < 5:
                points.append(HistoricalPoint(date=current, close=price))
                price += Decimal("0.50")
            current += timedelta(days=1)
        return points

    def instrument_universe(self) -> list[InstrumentRef]:
        return list(self._universe)


@pytest.fixture
def mock_provider() -> MockQuoteProvider:
    """Create a fresh mock provider for each test."""
    return MockQuoteProvider()


@pytest.fixture
def cache() -> LookupCache:
    """Fresh lookup cache for each test."""
    return LookupCache()


# =============================================================================
# SAMPLE DATA FACTORIES
# =============================================================================

def create_stock(
        db: Session,
        ticker: str = "AAPL",
        company_name: str | None = "Apple Inc.",
        sector: str | None = "Technology",
) -> Stock:
    """Factory function for creating Stock entities in the database."""
    stock = Stock(ticker=ticker, company_name=company_name, sector=sector)
    db.add(stock)
    db.commit()
    db.refresh(stock)
    return stock


def create_portfolio(
        db: Session,
        user_id: int = 1,
        name: str = "Test Portfolio",
        favorite: bool = False,
) -> Portfolio:
    """Factory function for creating Portfolio entities in the database."""
    portfolio = Portfolio(user_id=user_id, name=name, favorite=favorite)
    db.add(portfolio)
    db.commit()
    db.refresh(portfolio)
    return portfolio


def create_holding(
        db: Session,
        portfolio: Portfolio,
        ticker: str = "AAPL",
        shares: Decimal | str = "10",
        purchase_price: Decimal | str | None = "100",
        purchase_date: date = date(2024, 1, 2),
        selling_price: Decimal | str | None = None,
        selling_date: date | None = None,
) -> PortfolioHolding:
    """Factory function for creating PortfolioHolding entities in the database."""
    holding = PortfolioHolding(
        portfolio_id=portfolio.id,
        stock_ticker=ticker,
        shares=Decimal(str(shares)),
        purchase_price=Decimal(str(purchase_price)) if purchase_price is not None else None,
        purchase_date=purchase_date,
        selling_price=Decimal(str(selling_price)) if selling_price is not None else None,
        selling_date=selling_date,
    )
    db.add(holding)
    db.commit()
    db.refresh(holding)
    return holding


def create_price(
        db: Session,
        ticker: str,
        on_date: date,
        closing_price: Decimal | str,
        market_cap: int | None = None,
) -> PriceHistory:
    """Factory function for creating PriceHistory rows in the database."""
    row = PriceHistory(
        stock_ticker=ticker,
        date=on_date,
        closing_price=Decimal(str(closing_price)),
        market_cap=market_cap,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


# =============================================================================
# FIXTURE EXPORTS (for convenience imports in tests)
# =============================================================================

@pytest.fixture
def sample_stock(db: Session) -> Stock:
    return create_stock(db)


@pytest.fixture
def sample_portfolio(db: Session) -> Portfolio:
    return create_portfolio(db)
