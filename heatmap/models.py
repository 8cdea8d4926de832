# heatmap/models.py
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import String, Date, DateTime, ForeignKey, Numeric, UniqueConstraint, Boolean, BigInteger, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# PriceHistory has a column named "date"; annotate it through this alias
TradingDate = date


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class Stock(Base):
    """
    Instrument catalog shared by all users.

    A stock is identified by its ticker alone. Holdings and price history
    reference it by ticker.
    """
    __tablename__ = "stocks"

    ticker: Mapped[str] = mapped_column(String(16), primary_key=True)  # e.g. "AAPL"
    company_name: Mapped[str | None] = mapped_column(String, nullable=True)
    sector: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    prices: Mapped[list["PriceHistory"]] = relationship(back_populates="stock")


class PriceHistory(Base):
    """
    One closing price per stock per day.

    Rows are written by the backfill and the daily update job and are never
    deleted. The unique constraint backs the (ticker, date) existence check.
    """
    __tablename__ = "price_history"
    __table_args__ = (
        UniqueConstraint('stock_ticker', 'date', name='uq_price_history_ticker_date'),
        Index('ix_price_history_ticker_date', 'stock_ticker', 'date'),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    stock_ticker: Mapped[str] = mapped_column(ForeignKey("stocks.ticker"))
    date: Mapped[TradingDate] = mapped_column(Date)
    closing_price: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    pe_ratio: Mapped[Decimal | None] = mapped_column(Numeric(18, 8), nullable=True)
    market_cap: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    stock: Mapped["Stock"] = relationship(back_populates="prices")


class Portfolio(Base):
    __tablename__ = "portfolios"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    # Owner id from the external auth system; users live outside this core
    user_id: Mapped[int] = mapped_column(index=True)
    name: Mapped[str] = mapped_column(String)
    favorite: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    holdings: Mapped[list["PortfolioHolding"]] = relationship(
        back_populates="portfolio",
        cascade="all, delete-orphan"
    )


class PortfolioHolding(Base):
    """
    A position in one stock inside one portfolio.

    selling_date set means the position is closed. A null purchase_price
    means the cost basis is unknown.
    """
    __tablename__ = "portfolio_holdings"
    __table_args__ = (
        UniqueConstraint('portfolio_id', 'stock_ticker', name='uq_holding_portfolio_ticker'),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    portfolio_id: Mapped[int] = mapped_column(ForeignKey("portfolios.id"), index=True)
    stock_ticker: Mapped[str] = mapped_column(ForeignKey("stocks.ticker"))
    shares: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    purchase_price: Mapped[Decimal | None] = mapped_column(Numeric(18, 8), nullable=True)
    purchase_date: Mapped[date] = mapped_column(Date)
    selling_price: Mapped[Decimal | None] = mapped_column(Numeric(18, 8), nullable=True)
    selling_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    portfolio: Mapped["Portfolio"] = relationship(back_populates="holdings")
    stock: Mapped["Stock"] = relationship()

    @property
    def is_closed(self) -> bool:
        return self.selling_date is not None
