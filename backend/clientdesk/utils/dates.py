"""Timestamp helpers.

All stored timestamps are naive UTC, matching `datetime.utcnow` column
defaults.  Inputs with an offset are converted to UTC first.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timezone

_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Drop tzinfo after converting to UTC; naive values are assumed UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_timestamp(value: str | date | datetime) -> datetime:
    """Parse an ISO-8601 date or datetime into a naive UTC datetime.

    Raises:
        ValueError if the value cannot be parsed.
    """
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str):
        raise ValueError(f"Unsupported timestamp type: {type(value).__name__}")

    token = value.strip()
    if not token:
        raise ValueError("Empty timestamp")
    if _DATE_ONLY_RE.match(token):
        parsed = date.fromisoformat(token)
        return datetime(parsed.year, parsed.month, parsed.day)
    return to_naive_utc(datetime.fromisoformat(token.replace("Z", "+00:00")))
