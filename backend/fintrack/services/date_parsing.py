"""
Date normalization for imported transactions.

Candidate formats are tried in a fixed order and the first parse whose year is
inside [MIN_YEAR, MAX_YEAR] wins, so the same string always yields the same
date. Anything the formats miss goes through dateutil as a last resort.
"""

import logging
from datetime import date, datetime
from typing import Optional

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

MIN_YEAR = 1900
MAX_YEAR = 2100

# strptime accepts single-digit day and month for %d / %m
DATE_FORMATS = (
    "%m/%d/%Y",
    "%d/%m/%Y",
    "%Y-%m-%d",
    "%m-%d-%Y",
    "%d-%m-%Y",
    "%Y/%m/%d",
    "%m/%d/%y",
    "%d/%m/%y",
    "%m-%d-%y",
    "%d-%m-%y",
)


def _in_range(value: date) -> bool:
    return MIN_YEAR <= value.year <= MAX_YEAR


def parse_transaction_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a CSV date cell into a calendar date.

    Returns:
        The parsed date, or None when no format matches or the year is out of range
    """
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None

    for fmt in DATE_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt).date()
        except ValueError:
            continue
        if _in_range(parsed):
            return parsed

    try:
        parsed = date_parser.parse(text).date()
    except (ValueError, OverflowError):
        logger.debug(f"Unparseable date value: {text!r}")
        return None

    return parsed if _in_range(parsed) else None
