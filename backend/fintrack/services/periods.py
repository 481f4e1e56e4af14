"""
Named reporting periods for the dashboard.

Every window is an inclusive [start, end] range of calendar dates; "all_time"
is unbounded on both sides. Weeks start on Monday.
"""

from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple

from dateutil.relativedelta import relativedelta

DateRange = Tuple[Optional[date], Optional[date]]

PERIOD_LABELS: Dict[str, str] = {
    "current_month": "Current Month",
    "last_month": "Last Month",
    "year_to_date": "Year to Date",
    "all_time": "All Time",
    "current_week": "Current Week",
    "last_week": "Last Week",
    "today": "Today",
    "yesterday": "Yesterday",
}


def list_periods() -> List[Dict[str, str]]:
    return [{"value": value, "label": label} for value, label in PERIOD_LABELS.items()]


def _month_start(day: date) -> date:
    return day.replace(day=1)


def _month_end(day: date) -> date:
    return _month_start(day) + relativedelta(months=1) - timedelta(days=1)


def _week_start(day: date) -> date:
    return day - timedelta(days=day.weekday())


def resolve_period(period: str, today: Optional[date] = None) -> DateRange:
    """
    Resolve a named period to its date window.

    Raises:
        ValueError: unknown period name
    """
    today = today or date.today()

    if period == "current_month":
        return _month_start(today), _month_end(today)
    if period == "last_month":
        last_month = today - relativedelta(months=1)
        return _month_start(last_month), _month_end(last_month)
    if period == "year_to_date":
        return date(today.year, 1, 1), today
    if period == "all_time":
        return None, None
    if period == "current_week":
        start = _week_start(today)
        return start, start + timedelta(days=6)
    if period == "last_week":
        start = _week_start(today) - timedelta(days=7)
        return start, start + timedelta(days=6)
    if period == "today":
        return today, today
    if period == "yesterday":
        yesterday = today - timedelta(days=1)
        return yesterday, yesterday

    raise ValueError(f"Unknown period: {period}")


def previous_window(period: str, today: Optional[date] = None) -> Optional[DateRange]:
    """
    Window immediately preceding the given period, for trend comparison.

    Month periods step back one month, week periods one week, day periods one
    day, and year-to-date compares against the same span of the previous year.
    All-time has no previous window.
    """
    today = today or date.today()
    start, end = resolve_period(period, today)

    if period == "all_time":
        return None
    if period in ("current_month", "last_month"):
        earlier = start - relativedelta(months=1)
        return _month_start(earlier), _month_end(earlier)
    if period == "year_to_date":
        return start - relativedelta(years=1), end - relativedelta(years=1)
    if period in ("current_week", "last_week"):
        return start - timedelta(days=7), end - timedelta(days=7)
    return start - timedelta(days=1), end - timedelta(days=1)


def in_window(value: date, window: DateRange) -> bool:
    start, end = window
    if start is not None and value < start:
        return False
    if end is not None and value > end:
        return False
    return True
