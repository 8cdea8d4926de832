# heatmap/__init__.py
"""Portfolio heatmap core: price history, timeframe anchors, valuation and backfill."""

__version__ = "0.1.0"
