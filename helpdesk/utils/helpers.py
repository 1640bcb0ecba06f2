"""Shared parsing helpers used by field validation and the blueprints.

parse_date:      ISO or DD.MM.YYYY → date (None on bad input)
parse_datetime:  ISO-8601 → datetime (None on bad input)
parse_bool_arg:  query-string flag → bool
"""
import logging
from datetime import date, datetime

logger = logging.getLogger(__name__)

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD.MM.YYYY (European format used by branch staff)
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(text).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(text, "%d.%m.%Y").date()
    except (ValueError, TypeError):
        return None


def parse_datetime(value):
    """Parse an ISO-8601 date-time string to a datetime object.

    Accepts a trailing ``Z`` for UTC. A bare date is read as midnight.
    Returns None for empty/invalid input.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except (ValueError, TypeError):
        return None


def parse_bool_arg(value, default=False):
    """Interpret a query-string flag ("true", "1", "yes", "on")."""
    if value is None:
        return default
    return str(value).strip().lower() in _TRUE_VALUES
