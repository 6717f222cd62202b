"""Lenient timestamp parsing for feed date fields."""

import logging
from datetime import datetime
from typing import Any, Optional

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

TIME_FORMAT = "%H:%M:%S"


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse a feed date string into a naive timestamp.

    The wall-clock time of the input is kept; any UTC offset is dropped.
    Unparseable or empty values return None.
    """
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return date_parser.parse(value.strip()).replace(tzinfo=None)
    except (ValueError, OverflowError) as e:
        logger.debug(f"Discarding unparseable date '{value}': {e}")
        return None


def is_all_day(start: Optional[datetime], end: Optional[datetime]) -> bool:
    """True when the range runs from 00:00:00 to 23:59:59."""
    if start is None or end is None:
        return False
    return (
        start.strftime(TIME_FORMAT) == "00:00:00"
        and end.strftime(TIME_FORMAT) == "23:59:59"
    )
