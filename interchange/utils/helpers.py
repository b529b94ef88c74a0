"""Shared utility functions for services and blueprints.

parse_date:      lenient date parse (returns None on bad input)
parse_datetime:  lenient ISO-8601 timestamp parse, always UTC-aware
utcnow_iso:      ISO-8601 UTC timestamp with millisecond precision
"""
import logging
from datetime import date, datetime, timezone

logger = logging.getLogger(__name__)


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS[.fff][Z] (datetime ISO → .date())
    - DD.MM.YYYY and DD/MM/YYYY (European formats)
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parsed = parse_datetime(value)
    if parsed is not None:
        return parsed.date()
    for fmt in ("%d.%m.%Y", "%d/%m/%Y"):
        try:
            return datetime.strptime(str(value).strip(), fmt).date()
        except (ValueError, TypeError):
            continue
    return None


def parse_datetime(value):
    """Parse an ISO-8601 string to an aware datetime (UTC if naive).

    A trailing ``Z`` is accepted. Returns None for empty/invalid input.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except (ValueError, TypeError):
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def utcnow_iso(now=None):
    """Return ``now`` (default: current UTC time) as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def epoch_ms(now=None):
    """Milliseconds since the Unix epoch for ``now`` (default: current time)."""
    now = now or datetime.now(timezone.utc)
    return int(now.timestamp() * 1000)
