"""Shared utility functions for services and blueprints.

parse_date:       ISO calendar date → date (None on bad input)
parse_timestamp:  ISO timestamp → aware datetime (naive values read as UTC)
utcnow:           the clock every subsystem defaults to
short_token:      log-safe prefix of a client token
run_async:        drive a dashboard coroutine from a sync Flask view
"""
import asyncio
import logging
import re
from datetime import date, datetime, timezone

logger = logging.getLogger(__name__)

_TIMESTAMP_RE = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}(?::\d{2})?)"
    r"(?:\.(?P<frac>\d{1,9}))?"
    r"(?P<tz>Z|[+-]\d{2}(?::?\d{2})?)?$"
)


def parse_date(value):
    """Parse a date string (ISO) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value)).date()
    except (ValueError, TypeError):
        return None


def _normalize_timestamp(raw):
    """Rewrite PostgreSQL-style output into what ``fromisoformat`` accepts on 3.10.

    Fractions of 1-9 digits become 6 digits; ``Z``, ``+HH`` and ``+HHMM``
    offsets become ``+HH:MM``.
    """
    match = _TIMESTAMP_RE.match(raw)
    if not match:
        return raw
    text = match.group("base")
    if match.group("frac"):
        text += "." + match.group("frac")[:6].ljust(6, "0")
    tz = match.group("tz")
    if tz == "Z":
        text += "+00:00"
    elif tz:
        digits = tz[1:].replace(":", "")
        text += f"{tz[0]}{digits[:2]}:{digits[2:4] or '00'}"
    return text


def parse_timestamp(value):
    """Parse an ISO timestamp to a timezone-aware datetime.

    Naive values are treated as UTC. A trailing ``Z``, short fractions and
    hour-only offsets (``+00``) are accepted.
    Returns None for empty/invalid input.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        ts = value
    else:
        raw = _normalize_timestamp(str(value).strip())
        try:
            ts = datetime.fromisoformat(raw)
        except ValueError:
            logger.warning("Unparseable timestamp ignored: %r", value)
            return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def utcnow():
    return datetime.now(timezone.utc)


def short_token(token):
    """First 8 characters only: full tokens never reach the logs."""
    if not token:
        return "<empty>"
    return f"{token[:8]}…"


def run_async(coro):
    """Run a coroutine to completion from synchronous (WSGI) code.

    Each request gets its own event loop; dashboard state never outlives it.
    """
    return asyncio.run(coro)
