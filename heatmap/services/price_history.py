# heatmap/services/price_history.py
"""
Price History Store.

Durable (ticker, date) -> close mapping backed by the price_history table.

Guarantees:
- At most one row per (ticker, date), enforced by uq_price_history_ticker_date
- Reads never mutate
- put() and insert_new() flush but never commit; the caller owns the transaction

Usage:
    store = PriceHistoryStore()
    row = store.nearest_on_or_before(db, "AAPL", date(2024, 3, 29))
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from heatmap.models import PriceHistory
from heatmap.services.constants import DEFAULT_HISTORY_PAGE_SIZE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriceEntry:
    """A price row to be written, before it becomes a PriceHistory model."""

    ticker: str
    date: date
    closing_price: Decimal
    pe_ratio: Decimal | None = None
    market_cap: int | None = None

    def to_model(self) -> PriceHistory:
        return PriceHistory(
            stock_ticker=self.ticker,
            date=self.date,
            closing_price=self.closing_price,
            pe_ratio=self.pe_ratio,
            market_cap=self.market_cap,
        )


class PriceHistoryStore:
    """Query and write access to daily closing prices."""

    # =========================================================================
    # READS
    # =========================================================================

    def get(self, db: Session, ticker: str, on_date: date) -> PriceHistory | None:
        """Exact-date lookup. No fallback to neighbouring dates."""
        return db.scalar(
            select(PriceHistory).where(
                PriceHistory.stock_ticker == ticker,
                PriceHistory.date == on_date,
            )
        )

    def latest(self, db: Session, ticker: str) -> PriceHistory | None:
        """Newest stored row for a ticker."""
        return db.scalar(
            select(PriceHistory)
            .where(PriceHistory.stock_ticker == ticker)
            .order_by(PriceHistory.date.desc())
            .limit(1)
        )

    def nearest_on_or_before(
            self,
            db: Session,
            ticker: str,
            on_date: date,
    ) -> PriceHistory | None:
        """Newest row with date <= on_date."""
        return db.scalar(
            select(PriceHistory)
            .where(
                PriceHistory.stock_ticker == ticker,
                PriceHistory.date <= on_date,
            )
            .order_by(PriceHistory.date.desc())
            .limit(1)
        )

    def exists(self, db: Session, ticker: str, on_date: date) -> bool:
        return db.scalar(
            select(PriceHistory.id).where(
                PriceHistory.stock_ticker == ticker,
                PriceHistory.date == on_date,
            ).limit(1)
        ) is not None

    def existing_dates(
            self,
            db: Session,
            ticker: str,
            start_date: date,
            end_date: date,
    ) -> set[date]:
        """All stored dates for a ticker in [start_date, end_date], in one query."""
        rows = db.scalars(
            select(PriceHistory.date).where(
                PriceHistory.stock_ticker == ticker,
                PriceHistory.date >= start_date,
                PriceHistory.date <= end_date,
            )
        )
        return set(rows)

    def history(
            self,
            db: Session,
            ticker: str,
            limit: int = DEFAULT_HISTORY_PAGE_SIZE,
            offset: int = 0,
    ) -> list[PriceHistory]:
        """Newest-first page of rows for a ticker."""
        return list(db.scalars(
            select(PriceHistory)
            .where(PriceHistory.stock_ticker == ticker)
            .order_by(PriceHistory.date.desc())
            .limit(limit)
            .offset(offset)
        ))

    # =========================================================================
    # WRITES
    # =========================================================================

    def put(self, db: Session, entry: PriceEntry) -> PriceHistory:
        """
        Upsert by (ticker, date).

        An existing row keeps its identity and has its close, P/E and
        market cap overwritten.
        """
        row = self.get(db, entry.ticker, entry.date)
        if row is None:
            row = entry.to_model()
            db.add(row)
        else:
            row.closing_price = entry.closing_price
            row.pe_ratio = entry.pe_ratio
            row.market_cap = entry.market_cap

        try:
            db.flush()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to write price for {entry.ticker} on {entry.date}: {e}")
            raise

        return row

    def insert_new(self, db: Session, entries: Iterable[PriceEntry]) -> int:
        """
        Insert entries whose (ticker, date) is not stored yet.

        Duplicates inside the input are collapsed (first wins). Existing
        rows are left untouched.

        Returns:
            Number of rows added
        """
        by_ticker: dict[str, dict[date, PriceEntry]] = {}
        for entry in entries:
            by_ticker.setdefault(entry.ticker, {}).setdefault(entry.date, entry)

        added = 0
        for ticker, dated in by_ticker.items():
            if not dated:
                continue
            stored = self.existing_dates(db, ticker, min(dated), max(dated))
            new_rows = [e.to_model() for d, e in sorted(dated.items()) if d not in stored]
            if new_rows:
                db.add_all(new_rows)
                added += len(new_rows)

        try:
            db.flush()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to insert {added} price rows: {e}")
            raise

        return added
