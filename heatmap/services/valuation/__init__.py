# heatmap/services/valuation/__init__.py
"""
Valuation Engine Package.

Architecture:
    valuation/
    ├── __init__.py      # This file - package exports
    ├── types.py         # Result data classes
    ├── calculators.py   # Per-holding and totals calculators
    └── service.py       # ValuationService (orchestrator)

Data Flow:
    Holdings + batch quotes → OpenPositionCalculator (with TimeframeAnchor)
    Closed holdings → ClosedPositionCalculator
    All positions → TotalsCalculator → PortfolioValuation
"""

from heatmap.services.valuation.calculators import (
    ClosedPositionCalculator,
    OpenPositionCalculator,
    TotalsCalculator,
    percent_of,
)
from heatmap.services.valuation.service import ValuationService, is_cash_ticker
from heatmap.services.valuation.types import (
    ClosedPositionValuation,
    OpenPositionValuation,
    PortfolioTotals,
    PortfolioValuation,
)

__all__ = [
    # Main service
    "ValuationService",
    "is_cash_ticker",

    # Data types
    "OpenPositionValuation",
    "ClosedPositionValuation",
    "PortfolioTotals",
    "PortfolioValuation",

    # Calculators (for testing)
    "OpenPositionCalculator",
    "ClosedPositionCalculator",
    "TotalsCalculator",
    "percent_of",
]
