# backend/portfolio_tracker/utils/date_utils.py
"""
Date helpers bound to the reporting time zone.

"Today" and every period boundary are computed in the configured reporting
zone (Asia/Tokyo by default), not UTC, so a user in that zone does not see
periods shift at UTC midnight.

Usage:
    from portfolio_tracker.utils.date_utils import reporting_today, comparison_start_date

    start = comparison_start_date(PeriodType.WEEK, reporting_today())
"""

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from portfolio_tracker.config import settings

# Days back from today for the rolling periods; "year" is year-to-date
PERIOD_DAYS = {
    "day": 1,
    "week": 7,
    "month": 30,
}


def reporting_today(tz_name: str | None = None) -> date:
    """
    Current calendar date in the reporting time zone.

    Args:
        tz_name: IANA zone name. Defaults to settings.reporting_timezone.
    """
    return datetime.now(ZoneInfo(tz_name or settings.reporting_timezone)).date()


def comparison_start_date(period: str, today: date) -> date:
    """
    First date of the comparison window.

    period is a PeriodType or its plain value ("day", "week", ...).

    Examples:
        >>> comparison_start_date("week", date(2024, 3, 10))
        date(2024, 3, 3)
        >>> comparison_start_date("year", date(2024, 3, 10))
        date(2024, 1, 1)
    """
    name = getattr(period, "value", period)
    if name == "year":
        return date(today.year, 1, 1)
    return today - timedelta(days=PERIOD_DAYS[name])


def is_future(d: date, today: date | None = None) -> bool:
    """True if d is after today in the reporting time zone."""
    return d > (today or reporting_today())
