# heatmap/services/market_data/populator.py
"""
Backfill Populator.

Fills the Price History Store from the configured quote provider:

    populate_history(db, ticker)   one instrument, one lookback window
    run_backfill(db)               every catalog instrument, batched and paced
    populate_all_history(db)       run_backfill, returning only the row count

Guarantees:
- Idempotent: dates already stored are skipped, a repeated run writes 0 rows
- Paced: consecutive batches start at least BACKFILL_BATCH_DELAY_SECONDS apart
- Partial success: one instrument's failure is logged and the run continues
- Serialized: a second concurrent run returns "already_running" at once
- Cancellable between batches; finished instruments stay committed

Usage:
    populator = BackfillPopulator(provider=get_quote_provider())
    result = populator.run_backfill(db)
    print(result.status, result.entries_written)
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Callable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from heatmap.config import settings
from heatmap.models import Stock
from heatmap.services.constants import CASH_TICKER
from heatmap.services.exceptions import ServiceError, StockNotFoundError, ValidationError
from heatmap.services.lookup_cache import LookupCache
from heatmap.services.market_data.base import QuoteProvider
from heatmap.services.market_data.rate_limiter import BatchRateLimiter
from heatmap.services.price_history import PriceEntry, PriceHistoryStore
from heatmap.utils.context import correlation_scope

logger = logging.getLogger(__name__)

# One backfill per process at a time
_BACKFILL_LOCK = threading.Lock()


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class BackfillResult:
    """Outcome of a backfill run."""

    status: str  # "completed", "partial", "failed", "cancelled", "already_running"
    started_at: datetime
    completed_at: datetime | None = None

    start_date: date | None = None
    end_date: date | None = None

    instruments_total: int = 0
    instruments_processed: int = 0
    batches_total: int = 0
    batches_completed: int = 0
    entries_written: int = 0

    # ticker -> error message
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def instruments_failed(self) -> int:
        return len(self.failures)


# =============================================================================
# POPULATOR
# =============================================================================

class BackfillPopulator:
    """
    Batched, rate-limited backfill of daily closes.

    Args:
        provider: Quote provider used for history and the P/E + market cap quote
        store: Price History Store (default: new instance)
        cache: Lookup cache to invalidate after writes (optional)
        batch_size: Instruments per batch (default: settings.backfill_batch_size)
        batch_delay_seconds: Minimum gap between batch starts
            (default: settings.backfill_batch_delay_seconds)
        lookback_days: Default window length (default: settings.backfill_lookback_days)
        clock / sleep: Time functions handed to the rate limiter
        run_lock: Lock serializing runs (default: the process-wide lock)
    """

    def __init__(
            self,
            provider: QuoteProvider,
            store: PriceHistoryStore | None = None,
            cache: LookupCache | None = None,
            batch_size: int | None = None,
            batch_delay_seconds: float | None = None,
            lookback_days: int | None = None,
            clock: Callable[[], float] = time.monotonic,
            sleep: Callable[[float], None] | None = None,
            run_lock: threading.Lock | None = None,
    ) -> None:
        self._provider = provider
        self._store = store or PriceHistoryStore()
        self._cache = cache
        self._batch_size = batch_size or settings.backfill_batch_size
        self._batch_delay = (
            settings.backfill_batch_delay_seconds
            if batch_delay_seconds is None else batch_delay_seconds
        )
        self._lookback_days = lookback_days or settings.backfill_lookback_days
        self._clock = clock
        self._sleep = sleep
        self._run_lock = run_lock or _BACKFILL_LOCK

        if self._batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self._batch_size}")

        logger.info(
            f"BackfillPopulator initialized (provider={provider.name}, "
            f"batch_size={self._batch_size}, batch_delay={self._batch_delay}s)"
        )

    # =========================================================================
    # SINGLE INSTRUMENT
    # =========================================================================

    def populate_history(
            self,
            db: Session,
            ticker: str,
            start_date: date | None = None,
            end_date: date | None = None,
    ) -> int:
        """
        Backfill one instrument and commit.

        1. historical_range(ticker, start, end); nothing to do if empty
        2. current_quote(ticker) once; its P/E and market cap go on every row
        3. skip dates already stored, insert the rest

        Args:
            db: Database session
            ticker: Catalog ticker
            start_date: Window start (default: end_date - lookback_days)
            end_date: Window end (default: today)

        Returns:
            Number of rows written

        Raises:
            StockNotFoundError: Ticker is not in the catalog
            ValidationError: start_date after end_date
            MarketDataError: Provider failure for this instrument
        """
        end_date = end_date or date.today()
        start_date = start_date or end_date - timedelta(days=self._lookback_days)
        if start_date > end_date:
            raise ValidationError(
                f"start_date {start_date} is after end_date {end_date}",
                field="start_date",
            )

        if db.get(Stock, ticker) is None:
            raise StockNotFoundError(ticker)

        points = self._provider.historical_range(ticker, start_date, end_date)
        if not points:
            logger.info(f"No history returned for {ticker} in {start_date}..{end_date}")
            return 0

        quote = self._provider.current_quote(ticker)

        entries = [
            PriceEntry(
                ticker=ticker,
                date=point.date,
                closing_price=point.close,
                pe_ratio=quote.pe_ratio,
                market_cap=quote.market_cap,
            )
            for point in points
        ]

        written = self._store.insert_new(db, entries)
        db.commit()

        if written and self._cache is not None:
            self._cache.invalidate_ticker(ticker)

        logger.debug(f"Backfilled {ticker}: {written} new of {len(points)} fetched")
        return written

    # =========================================================================
    # FULL CATALOG
    # =========================================================================

    def populate_all_history(
            self,
            db: Session,
            start_date: date | None = None,
            end_date: date | None = None,
            cancel_event: threading.Event | None = None,
    ) -> int:
        """Backfill every catalog instrument; returns the number of rows written."""
        return self.run_backfill(db, start_date, end_date, cancel_event).entries_written

    def run_backfill(
            self,
            db: Session,
            start_date: date | None = None,
            end_date: date | None = None,
            cancel_event: threading.Event | None = None,
            tickers: list[str] | None = None,
    ) -> BackfillResult:
        """
        Backfill instruments in fixed-size batches, pacing batch starts.

        Args:
            db: Database session
            start_date / end_date: Window, defaults as in populate_history
            cancel_event: Set it to stop the run before the next batch
            tickers: Restrict the run to these tickers (default: whole catalog)

        Returns:
            BackfillResult with status and counters
        """
        result = BackfillResult(status="in_progress", started_at=datetime.now(timezone.utc))

        if not self._run_lock.acquire(blocking=False):
            logger.info("Backfill already running, skipping")
            result.status = "already_running"
            result.completed_at = datetime.now(timezone.utc)
            return result

        try:
            with correlation_scope("backfill"):
                self._run(db, result, start_date, end_date, cancel_event, tickers)
        finally:
            self._run_lock.release()

        result.completed_at = datetime.now(timezone.utc)
        logger.info(
            f"Backfill finished: status={result.status}, "
            f"rows={result.entries_written}, "
            f"instruments={result.instruments_processed}/{result.instruments_total}, "
            f"failed={result.instruments_failed}, "
            f"batches={result.batches_completed}/{result.batches_total}"
        )
        return result

    def _run(
            self,
            db: Session,
            result: BackfillResult,
            start_date: date | None,
            end_date: date | None,
            cancel_event: threading.Event | None,
            tickers: list[str] | None,
    ) -> None:
        result.end_date = end_date or date.today()
        result.start_date = start_date or result.end_date - timedelta(days=self._lookback_days)

        all_tickers = sorted(tickers) if tickers is not None else self._catalog_tickers(db)
        batches = [
            all_tickers[i:i + self._batch_size]
            for i in range(0, len(all_tickers), self._batch_size)
        ]
        result.instruments_total = len(all_tickers)
        result.batches_total = len(batches)

        logger.info(
            f"Backfill started: {len(all_tickers)} instruments in {len(batches)} batches, "
            f"window {result.start_date}..{result.end_date}"
        )

        limiter = BatchRateLimiter(
            self._batch_delay,
            clock=self._clock,
            sleep=self._sleep,
            cancel_event=cancel_event,
        )

        for number, batch in enumerate(batches, start=1):
            if not limiter.acquire():
                logger.warning(f"Backfill cancelled before batch {number}/{len(batches)}")
                result.status = "cancelled"
                return

            batch_rows = 0
            for ticker in batch:
                try:
                    written = self.populate_history(db, ticker, result.start_date, result.end_date)
                except ServiceError as e:
                    logger.warning(f"Backfill skipped {ticker}: {e}")
                    result.failures[ticker] = str(e)
                except SQLAlchemyError as e:
                    db.rollback()
                    logger.error(f"Backfill write failed for {ticker}: {e}")
                    result.failures[ticker] = str(e)
                except Exception as e:
                    db.rollback()
                    logger.error(f"Backfill failed unexpectedly for {ticker}: {e!r}", exc_info=True)
                    result.failures[ticker] = repr(e)
                else:
                    batch_rows += written
                result.instruments_processed += 1

            result.entries_written += batch_rows
            result.batches_completed += 1
            logger.info(f"Backfill batch {number}/{len(batches)} done: {batch_rows} rows")

        if result.failures and len(result.failures) == result.instruments_total:
            result.status = "failed"
        elif result.failures:
            result.status = "partial"
        else:
            result.status = "completed"

    def _catalog_tickers(self, db: Session) -> list[str]:
        tickers = db.scalars(select(Stock.ticker).order_by(Stock.ticker)).all()
        return [t for t in tickers if t.upper() != CASH_TICKER]
