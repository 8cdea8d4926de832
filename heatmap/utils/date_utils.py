# heatmap/utils/date_utils.py
"""
Date utility functions for the heatmap core.

Usage:
    from heatmap.utils.date_utils import subtract_months

    anchor = subtract_months(date(2024, 3, 31), 1)  # date(2024, 2, 29)
"""

import calendar
from datetime import date


def subtract_months(d: date, months: int) -> date:
    """
    Move a date back by whole calendar months.

    The day of month is clamped to the length of the target month, so
    March 31 minus one month is the last day of February.

    Args:
        d: Starting date
        months: Number of months to go back (>= 0)

    Returns:
        The shifted date
    """
    total = d.year * 12 + (d.month - 1) - months
    year, month_index = divmod(total, 12)
    month = month_index + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(d.day, last_day))


def subtract_years(d: date, years: int) -> date:
    """Move a date back by whole years (Feb 29 clamps to Feb 28)."""
    return subtract_months(d, years * 12)


def start_of_year(d: date) -> date:
    return date(d.year, 1, 1)
