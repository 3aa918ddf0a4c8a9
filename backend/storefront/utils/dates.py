"""Parsing of client-supplied booking dates"""
from datetime import datetime


def parse_scheduled_date(value: str) -> datetime:
    """Parse an ISO-8601 date/time as sent by the booking form.

    Raises ValueError for anything that is not ISO-8601.
    """
    if not value:
        raise ValueError("scheduled date is empty")
    normalized = value.strip()
    if normalized.endswith("Z"):
        normalized = normalized[:-1] + "+00:00"
    return datetime.fromisoformat(normalized)
