# tests/utils/test_sql.py
"""
Tests for SQL utility functions.
"""

import pytest

from heatmap.utils.sql import escape_like_pattern


class TestEscapeLikePattern:
    """Tests for escape_like_pattern function."""

    @pytest.mark.parametrize("raw,escaped", [
        ("BRK%B", "BRK\\%B"),
        ("BRK_B", "BRK\\_B"),
        ("A\\B", "A\\\\B"),
        ("%_", "\\%\\_"),
        ("AAPL", "AAPL"),
        ("", ""),
    ])
    def test_escaping(self, raw, escaped):
        assert escape_like_pattern(raw) == escaped

    def test_escape_order_matters(self):
        """Backslash is escaped before wildcards, so \\% stays literal."""
        assert escape_like_pattern("\\%") == "\\\\\\%"
