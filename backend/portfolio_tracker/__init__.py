# backend/portfolio_tracker/__init__.py
"""Portfolio Tracker: lot consolidation, multi-currency valuation and period comparison."""

__version__ = "0.1.0"
