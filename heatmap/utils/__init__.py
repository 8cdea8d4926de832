# heatmap/utils/__init__.py
"""
Cross-cutting utilities for the heatmap core.

- logging: Logging setup with correlation ID support
- context: Correlation ID storage for runs and jobs
- date_utils: Calendar arithmetic for timeframe anchors
- sql: LIKE pattern escaping

Usage:
    from heatmap.utils import setup_logging, correlation_scope
    from heatmap.utils.date_utils import subtract_months
"""

from heatmap.utils.context import (
    get_correlation_id,
    set_correlation_id,
    clear_correlation_id,
    correlation_scope,
)
from heatmap.utils.logging import setup_logging
from heatmap.utils.sql import escape_like_pattern

__all__ = [
    "setup_logging",
    "get_correlation_id",
    "set_correlation_id",
    "clear_correlation_id",
    "correlation_scope",
    "escape_like_pattern",
]
