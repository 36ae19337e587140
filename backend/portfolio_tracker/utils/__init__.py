# backend/portfolio_tracker/utils/__init__.py
"""
Utility modules for the Portfolio Tracker.

- logging: Logging configuration and setup
- date_utils: Reporting-day and comparison period helpers

Usage:
    from portfolio_tracker.utils import setup_logging
    from portfolio_tracker.utils.date_utils import reporting_today
"""

from portfolio_tracker.utils.logging import setup_logging

__all__ = [
    "setup_logging",
]
