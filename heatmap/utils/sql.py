# heatmap/utils/sql.py
"""
SQL helpers for query construction.

Usage:
    from heatmap.utils.sql import escape_like_pattern

    pattern = f"{escape_like_pattern(prefix.upper())}%"
    stmt = select(Stock).where(Stock.ticker.like(pattern, escape="\\\\"))
"""


def escape_like_pattern(value: str) -> str:
    """
    Make user input literal inside a LIKE pattern.

    The backslash is escaped before % and _ so that an input like "\\%"
    does not turn into a wildcard.
    """
    escaped = value.replace("\\", "\\\\")
    for wildcard in ("%", "_"):
        escaped = escaped.replace(wildcard, "\\" + wildcard)
    return escaped
