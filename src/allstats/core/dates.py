"""
Date range helpers for the primary and comparison windows.
"""
import logging
import re
from datetime import timedelta

from .models import DateRange

logger = logging.getLogger(__name__)

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([a-z]+)\s*$")

_UNIT_HOURS = {
    "h": 1, "hour": 1, "hours": 1,
    "d": 24, "day": 24, "days": 24,
    "w": 24 * 7, "week": 24 * 7, "weeks": 24 * 7,
    "m": 24 * 30, "month": 24 * 30, "months": 24 * 30,
    "y": 24 * 365, "year": 24 * 365, "years": 24 * 365,
}


def resolve_date_range(start_at: int, end_at: int) -> DateRange:
    """Build the primary window from epoch-millisecond bounds."""
    return DateRange.from_epoch_ms(start_at, end_at)


def parse_duration(token: str | None) -> timedelta | None:
    """Parse a duration token like "7d", "24h" or "30 days".

    Returns None for empty or unrecognized tokens (e.g. named periods
    such as "prev").
    """
    if not token:
        return None

    match = _DURATION_RE.match(token.lower())
    if not match:
        return None

    amount, unit = match.groups()
    hours = _UNIT_HOURS.get(unit)
    if hours is None:
        return None
    return timedelta(hours=int(amount) * hours)


def get_compare_date(compare: str | None, date_range: DateRange) -> DateRange | None:
    """Derive the comparison window for a primary range.

    The comparison window has the same length as the primary window and
    ends exactly where the primary window starts. Without a comparison
    token there is no comparison window.
    """
    if not compare:
        return None

    duration = date_range.duration
    requested = parse_duration(compare)
    if requested is not None and requested != duration:
        logger.debug(
            f"Compare token '{compare}' spans {requested}, "
            f"using primary length {duration} instead"
        )

    return DateRange(start=date_range.start - duration, end=date_range.start)
