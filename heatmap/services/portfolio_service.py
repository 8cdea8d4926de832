# heatmap/services/portfolio_service.py
"""
Portfolio and holding management.

This service handles:
- Creating, listing, favoriting and deleting portfolios
- Adding, updating and removing holdings
- Splitting holdings into open and closed positions

Design Principles:
- No HTTP Knowledge: Raises domain exceptions, not HTTPException
- Ownership checks live with the caller; user_id is an opaque owner id
- One holding per ticker per portfolio

Usage:
    from heatmap.services.portfolio_service import PortfolioService

    service = PortfolioService()
    portfolio = service.create_portfolio(db, user_id=1, name="Growth")
    service.add_holding(db, portfolio.id, "AAPL", Decimal("10"), Decimal("150"), date(2024, 1, 2))
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from heatmap.models import Portfolio, PortfolioHolding, Stock
from heatmap.services.constants import CASH_TICKER, ZERO
from heatmap.services.exceptions import (
    DuplicateHoldingError,
    HoldingNotFoundError,
    PortfolioNotFoundError,
    StockNotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_UNSET = object()


def _check_price(value: Decimal | None, field: str) -> None:
    if value is not None and value < ZERO:
        raise ValidationError(f"{field} must not be negative", field=field)


class PortfolioService:
    """CRUD over portfolios and their holdings."""

    # =========================================================================
    # PORTFOLIOS
    # =========================================================================

    def create_portfolio(self, db: Session, user_id: int, name: str) -> Portfolio:
        """
        Raises:
            ValidationError: Name is blank
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Portfolio name must not be empty", field="name")

        portfolio = Portfolio(user_id=user_id, name=name, favorite=False)
        db.add(portfolio)
        db.commit()
        db.refresh(portfolio)

        logger.info(f"Created portfolio {portfolio.id} for user {user_id}")
        return portfolio

    def list_portfolios(self, db: Session, user_id: int) -> list[Portfolio]:
        """User's portfolios, favorites first, then oldest first."""
        stmt = (
            select(Portfolio)
            .where(Portfolio.user_id == user_id)
            .order_by(Portfolio.favorite.desc(), Portfolio.id)
        )
        return list(db.scalars(stmt))

    def get_portfolio(self, db: Session, portfolio_id: int) -> Portfolio:
        portfolio = db.get(Portfolio, portfolio_id)
        if portfolio is None:
            raise PortfolioNotFoundError(portfolio_id)
        return portfolio

    def set_favorite(self, db: Session, portfolio_id: int, favorite: bool) -> Portfolio:
        portfolio = self.get_portfolio(db, portfolio_id)
        portfolio.favorite = favorite
        db.commit()
        db.refresh(portfolio)
        return portfolio

    def delete_portfolio(self, db: Session, portfolio_id: int) -> None:
        """Delete a portfolio and, through the relationship cascade, its holdings."""
        portfolio = self.get_portfolio(db, portfolio_id)
        db.delete(portfolio)
        db.commit()
        logger.info(f"Deleted portfolio {portfolio_id}")

    # =========================================================================
    # HOLDINGS
    # =========================================================================

    def add_holding(
            self,
            db: Session,
            portfolio_id: int,
            ticker: str,
            shares: Decimal,
            purchase_price: Decimal | None,
            purchase_date: date,
            selling_price: Decimal | None = None,
            selling_date: date | None = None,
    ) -> PortfolioHolding:
        """
        Add a holding to a portfolio.

        The cash pseudo-ticker gets its catalog row created on first use.

        Raises:
            PortfolioNotFoundError: Portfolio does not exist
            StockNotFoundError: Ticker is not in the catalog
            DuplicateHoldingError: Portfolio already holds the ticker
            ValidationError: Shares are not positive or a price is negative
        """
        self.get_portfolio(db, portfolio_id)
        ticker = ticker.strip().upper()
        if shares <= ZERO:
            raise ValidationError("Shares must be positive", field="shares")
        _check_price(purchase_price, "purchase_price")
        _check_price(selling_price, "selling_price")

        if db.get(Stock, ticker) is None:
            if ticker != CASH_TICKER:
                raise StockNotFoundError(ticker)
            db.add(Stock(ticker=CASH_TICKER, company_name="Cash"))
            db.flush()

        existing = db.scalar(
            select(PortfolioHolding.id).where(
                PortfolioHolding.portfolio_id == portfolio_id,
                PortfolioHolding.stock_ticker == ticker,
            )
        )
        if existing is not None:
            raise DuplicateHoldingError(portfolio_id, ticker)

        holding = PortfolioHolding(
            portfolio_id=portfolio_id,
            stock_ticker=ticker,
            shares=shares,
            purchase_price=purchase_price,
            purchase_date=purchase_date,
            selling_price=selling_price,
            selling_date=selling_date,
        )
        db.add(holding)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise DuplicateHoldingError(portfolio_id, ticker)
        db.refresh(holding)

        logger.info(f"Added {ticker} to portfolio {portfolio_id}")
        return holding

    def get_holding(self, db: Session, holding_id: int) -> PortfolioHolding:
        holding = db.get(PortfolioHolding, holding_id)
        if holding is None:
            raise HoldingNotFoundError(holding_id)
        return holding

    def update_holding(
            self,
            db: Session,
            holding_id: int,
            shares: Decimal | None = None,
            purchase_price=_UNSET,
            purchase_date: date | None = None,
            selling_price=_UNSET,
            selling_date=_UNSET,
    ) -> PortfolioHolding | None:
        """
        Update fields of a holding.

        Nullable fields (prices, selling date) are only touched when passed,
        so None clears them. Setting shares to zero or less deletes the
        holding and returns None.

        Raises:
            HoldingNotFoundError: Holding does not exist
            ValidationError: A price is negative
        """
        holding = self.get_holding(db, holding_id)
        if purchase_price is not _UNSET:
            _check_price(purchase_price, "purchase_price")
        if selling_price is not _UNSET:
            _check_price(selling_price, "selling_price")

        if shares is not None and shares <= ZERO:
            db.delete(holding)
            db.commit()
            logger.info(f"Holding {holding_id} reduced to {shares} shares, deleted")
            return None

        if shares is not None:
            holding.shares = shares
        if purchase_price is not _UNSET:
            holding.purchase_price = purchase_price
        if purchase_date is not None:
            holding.purchase_date = purchase_date
        if selling_price is not _UNSET:
            holding.selling_price = selling_price
        if selling_date is not _UNSET:
            holding.selling_date = selling_date

        db.commit()
        db.refresh(holding)
        return holding

    def delete_holding(self, db: Session, holding_id: int) -> None:
        holding = self.get_holding(db, holding_id)
        db.delete(holding)
        db.commit()

    def get_open_positions(self, db: Session, portfolio_id: int) -> list[PortfolioHolding]:
        self.get_portfolio(db, portfolio_id)
        stmt = (
            select(PortfolioHolding)
            .where(
                PortfolioHolding.portfolio_id == portfolio_id,
                PortfolioHolding.selling_date.is_(None),
            )
            .order_by(PortfolioHolding.stock_ticker)
        )
        return list(db.scalars(stmt))

    def get_closed_positions(self, db: Session, portfolio_id: int) -> list[PortfolioHolding]:
        self.get_portfolio(db, portfolio_id)
        stmt = (
            select(PortfolioHolding)
            .where(
                PortfolioHolding.portfolio_id == portfolio_id,
                PortfolioHolding.selling_date.is_not(None),
            )
            .order_by(PortfolioHolding.selling_date.desc(), PortfolioHolding.stock_ticker)
        )
        return list(db.scalars(stmt))
