# heatmap/services/timeframe.py
"""
Timeframe Resolver.

Turns a timeframe token ("1d", "3m", "ytd", ...) into the anchor price a
percent change is measured against.

Resolution order for every timeframe except "total":
    1. anchor_date(timeframe, today)
    2. 1d only: if the close on or before the anchor equals the current
       price (within MARKET_CLOSED_EPSILON), assume the market has not
       traded since and move the anchor back one day
    3. exact lookups at anchor, anchor-1, ..., anchor-ANCHOR_LOOKBACK_DAYS,
       stopping at the first hit
    4. otherwise fall back to the purchase price, then to 0

"total" uses the purchase price directly and never touches the store.

The 1d step is a heuristic, not a market calendar: an instrument whose
price really did not move on a trading day is also shifted.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from heatmap.services.constants import (
    ANCHOR_LOOKBACK_DAYS,
    HUNDRED,
    MARKET_CLOSED_EPSILON,
    ZERO,
)
from heatmap.services.lookup_cache import LookupCache
from heatmap.utils.date_utils import start_of_year, subtract_months, subtract_years

logger = logging.getLogger(__name__)


class Timeframe(str, enum.Enum):
    ONE_DAY = "1d"
    ONE_WEEK = "1w"
    ONE_MONTH = "1m"
    THREE_MONTHS = "3m"
    SIX_MONTHS = "6m"
    YEAR_TO_DATE = "ytd"
    ONE_YEAR = "1y"
    TOTAL = "total"

    @classmethod
    def parse(cls, token: "str | Timeframe | None") -> "Timeframe":
        """Map a token to a Timeframe; unknown or empty tokens mean 1d."""
        if isinstance(token, cls):
            return token
        normalized = (token or "").strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        logger.warning(f"Unknown timeframe {token!r}, defaulting to 1d")
        return cls.ONE_DAY


def anchor_date(timeframe: Timeframe, today: date) -> date | None:
    """Calendar anchor for a timeframe, None for total."""
    if timeframe is Timeframe.ONE_DAY:
        return today - timedelta(days=1)
    if timeframe is Timeframe.ONE_WEEK:
        return today - timedelta(days=7)
    if timeframe is Timeframe.ONE_MONTH:
        return subtract_months(today, 1)
    if timeframe is Timeframe.THREE_MONTHS:
        return subtract_months(today, 3)
    if timeframe is Timeframe.SIX_MONTHS:
        return subtract_months(today, 6)
    if timeframe is Timeframe.YEAR_TO_DATE:
        return start_of_year(today)
    if timeframe is Timeframe.ONE_YEAR:
        return subtract_years(today, 1)
    return None


@dataclass(frozen=True)
class TimeframeAnchor:
    """
    Resolved anchor for one holding and timeframe.

    Attributes:
        price: Anchor price; None means the change is undefined
        effective_date: Date of the stored close used, None for fallbacks
        used_fallback: True when no stored close was found
        market_closed_shift: True when the 1d anchor was moved back a day
    """

    price: Decimal | None
    effective_date: date | None = None
    used_fallback: bool = False
    market_closed_shift: bool = False

    def change_percent(self, current_price: Decimal) -> Decimal | None:
        """
        (current - anchor) / anchor * 100.

        None when the anchor is undefined, 0 when the anchor price is 0.
        """
        if self.price is None:
            return None
        if self.price == ZERO:
            return ZERO
        return (current_price - self.price) / self.price * HUNDRED


class TimeframeResolver:
    """
    Resolves anchors through the lookup cache.

    Args:
        cache: Lookup cache wrapping the Price History Store
        lookback_days: Days probed before the anchor date
        epsilon: Price distance treated as "unchanged" for the 1d shift
    """

    def __init__(
            self,
            cache: LookupCache,
            lookback_days: int = ANCHOR_LOOKBACK_DAYS,
            epsilon: Decimal = MARKET_CLOSED_EPSILON,
    ) -> None:
        self._cache = cache
        self._lookback_days = lookback_days
        self._epsilon = epsilon

    def resolve(
            self,
            db: Session,
            ticker: str,
            timeframe: "Timeframe | str",
            purchase_price: Decimal | None,
            current_price: Decimal | None = None,
            today: date | None = None,
    ) -> TimeframeAnchor:
        """
        Find the anchor price for a holding.

        Args:
            db: Database session
            ticker: Instrument ticker
            timeframe: Timeframe or token
            purchase_price: Holding's cost per share, None if unknown
            current_price: Price the change will be measured to (1d shift only)
            today: Reference date (default: date.today())
        """
        timeframe = Timeframe.parse(timeframe)
        today = today or date.today()

        if timeframe is Timeframe.TOTAL:
            return TimeframeAnchor(price=purchase_price, used_fallback=False)

        anchor = anchor_date(timeframe, today)
        shifted = False
        if timeframe is Timeframe.ONE_DAY and current_price is not None:
            anchor, shifted = self._shift_if_market_closed(db, ticker, anchor, current_price)

        found = self._search_back(db, ticker, anchor)
        if found is not None:
            return TimeframeAnchor(
                price=found.closing_price,
                effective_date=found.date,
                market_closed_shift=shifted,
            )

        logger.debug(
            f"No close for {ticker} within {self._lookback_days} days of {anchor}, "
            f"falling back to {'purchase price' if purchase_price is not None else 'zero'}"
        )
        return TimeframeAnchor(
            price=purchase_price if purchase_price is not None else ZERO,
            used_fallback=True,
            market_closed_shift=shifted,
        )

    def ticker_change(
            self,
            db: Session,
            ticker: str,
            timeframe: "Timeframe | str",
            current_price: Decimal,
            today: date | None = None,
    ) -> Decimal | None:
        """
        Instrument-level percent change over a timeframe.

        The anchor is memoized per (ticker, timeframe, today) in the lookup
        cache; the 1d anchor also depends on the current price, which joins
        its key. The change itself is computed on every call.

        No purchase price is involved: "total" and anchors without a stored
        close give None.
        """
        timeframe = Timeframe.parse(timeframe)
        today = today or date.today()
        as_of = (today, current_price if timeframe is Timeframe.ONE_DAY else None)

        anchor = self._cache.get_anchor(ticker, timeframe.value, as_of)
        if anchor is None:
            anchor = self.resolve(db, ticker, timeframe, None, current_price, today)
            if anchor.used_fallback or anchor.price is None:
                return None
            self._cache.set_anchor(ticker, timeframe.value, as_of, anchor)

        return anchor.change_percent(current_price)

    def _shift_if_market_closed(
            self,
            db: Session,
            ticker: str,
            anchor: date,
            current_price: Decimal,
    ) -> tuple[date, bool]:
        previous = self._cache.nearest_on_or_before(db, ticker, anchor)
        if previous is not None and abs(previous.closing_price - current_price) <= self._epsilon:
            logger.debug(f"{ticker} unchanged since {previous.date}, shifting 1d anchor back")
            return anchor - timedelta(days=1), True
        return anchor, False

    def _search_back(self, db: Session, ticker: str, anchor: date):
        for offset in range(self._lookback_days + 1):
            point = self._cache.get(db, ticker, anchor - timedelta(days=offset))
            if point is not None:
                return point
        return None
