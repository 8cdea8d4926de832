# heatmap/services/market_data/rate_limiter.py
"""
Batch pacing for the historical backfill.

The backfill sends one burst of provider calls per batch. BatchRateLimiter
enforces a minimum interval between the start of consecutive batches, so
the call rate stays under the provider quota regardless of how long each
batch takes. It is a leaky bucket with a capacity of one batch.

Clock and sleep are injectable so tests never actually sleep.
"""

import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)


class BatchRateLimiter:
    """
    Minimum-interval limiter between batch starts.

    Args:
        min_interval_seconds: Smallest allowed gap between two acquire() returns
        clock: Monotonic time source
        sleep: Sleep function; receives the seconds to wait
        cancel_event: When set, waiting stops early and acquire() returns False

    Example:
        limiter = BatchRateLimiter(1.0)
        for batch in batches:
            if not limiter.acquire():
                break
            process(batch)
    """

    def __init__(
            self,
            min_interval_seconds: float,
            clock: Callable[[], float] = time.monotonic,
            sleep: Callable[[float], None] | None = None,
            cancel_event: threading.Event | None = None,
    ) -> None:
        if min_interval_seconds < 0:
            raise ValueError(f"min_interval_seconds must be >= 0, got {min_interval_seconds}")
        self._interval = min_interval_seconds
        self._clock = clock
        self._cancel_event = cancel_event
        self._sleep = sleep or self._default_sleep
        self._last_acquired: float | None = None
        self._lock = threading.Lock()

    @property
    def min_interval_seconds(self) -> float:
        return self._interval

    def acquire(self) -> bool:
        """
        Block until the next batch may start.

        The first call never waits. Returns False if the run was cancelled
        while waiting (or before), True otherwise.
        """
        with self._lock:
            if self._is_cancelled():
                return False

            if self._last_acquired is not None:
                wait = self._interval - (self._clock() - self._last_acquired)
                if wait > 0:
                    logger.debug(f"Rate limiter waiting {wait:.3f}s before next batch")
                    self._sleep(wait)
                    if self._is_cancelled():
                        return False

            self._last_acquired = self._clock()
            return True

    def reset(self) -> None:
        with self._lock:
            self._last_acquired = None

    def _is_cancelled(self) -> bool:
        return self._cancel_event is not None and self._cancel_event.is_set()

    def _default_sleep(self, seconds: float) -> None:
        # Event.wait returns early on cancellation
        if self._cancel_event is not None:
            self._cancel_event.wait(seconds)
        else:
            time.sleep(seconds)
