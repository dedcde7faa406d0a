"""Date parsing for ``date`` fields: lax input -> ``datetime.date``."""

from __future__ import annotations

import re
from datetime import date, datetime

import pendulum

# Calendar date first, optionally followed by a time part.
_DATE_SHAPE = re.compile(r"^\d{4}-\d{2}-\d{2}(?:[T ].+)?$")


def parse_date(value: str | date) -> date:
    """Parse a date value.

    Accepts ``date`` instances and strings such as:
    - 1980-07-20
    - 1980-07-20T00:00:00
    - 1980-07-20 13:45:00+02:00 (time and zone are discarded)

    Strings must start with a ``YYYY-MM-DD`` calendar date; time-only and
    relative inputs such as ``10:30`` or ``now`` are rejected.
    ``datetime`` instances are rejected rather than truncated.
    Raises ValueError for anything that does not parse.
    """
    if isinstance(value, datetime):
        msg = "expected a date, got a datetime"
        raise ValueError(msg)
    if isinstance(value, date):
        return value

    value_str = value.strip()
    if not value_str:
        msg = "empty date string"
        raise ValueError(msg)
    if not _DATE_SHAPE.match(value_str):
        msg = f"not a calendar date: {value_str!r}"
        raise ValueError(msg)
    try:
        parsed = pendulum.parse(value_str, exact=True)
    except (ValueError, OverflowError) as exc:
        msg = f"unparseable date: {value_str!r}"
        raise ValueError(msg) from exc
    # DateTime is a Date subclass
    if isinstance(parsed, pendulum.Date):
        return date(parsed.year, parsed.month, parsed.day)
    msg = f"not a calendar date: {value_str!r}"
    raise ValueError(msg)


def format_date(value: date) -> str:
    """Format a date as ISO-8601 ``YYYY-MM-DD``."""
    return value.isoformat()
