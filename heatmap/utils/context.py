# heatmap/utils/context.py
"""
Execution context for the heatmap core.

Holds the correlation ID of the current unit of work (a backfill run,
a scheduled job, a valuation request made by an outer layer) so every
log line it produces can be traced together.

Uses contextvars, so values are isolated per thread and per task.

Usage:
    from heatmap.utils.context import correlation_scope

    with correlation_scope("backfill"):
        logger.info("...")  # tagged backfill-<uuid>
"""

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str | None:
    """Return the current correlation ID, or None if not set."""
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID for the current context."""
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    _correlation_id_var.set(None)


def new_correlation_id(prefix: str) -> str:
    """Build an ID such as "backfill-3f2a9c1e"."""
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


@contextmanager
def correlation_scope(prefix: str) -> Iterator[str]:
    """
    Run a block under a fresh correlation ID.

    An ID that is already set is kept, so a backfill started from a
    scheduled job stays under the job's ID. The previous value is
    restored on exit.
    """
    existing = _correlation_id_var.get()
    if existing is not None:
        yield existing
        return

    token = _correlation_id_var.set(new_correlation_id(prefix))
    try:
        yield _correlation_id_var.get()
    finally:
        _correlation_id_var.reset(token)
