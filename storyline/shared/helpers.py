"""
Small helpers shared across the trend and story pipelines.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1)


def utcnow() -> datetime:
    """Naive UTC now — every stored timestamp is naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_datetime(value: Any) -> Optional[datetime]:
    """Coerce a stored/ingested date into naive UTC, or None if unparsable.

    Accepts datetime objects, ISO-8601 strings (with or without "Z"), and
    epoch seconds / milliseconds.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000.0 if abs(value) > 1e11 else float(value)
        try:
            return EPOCH + timedelta(seconds=seconds)
        except OverflowError:
            return None
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def validate_date(value: Any, now: Optional[datetime] = None) -> datetime:
    """Parsed date, with unparsable dates -> now and future dates clamped to now."""
    now = now or utcnow()
    dt = parse_datetime(value)
    if dt is None:
        logger.debug(f"Unparsable date {value!r}, substituting now")
        return now
    if dt > now:
        return now
    return dt


def day_key(value: Any, now: Optional[datetime] = None) -> str:
    """UTC calendar day "YYYY-MM-DD"; unparsable dates fall into today."""
    dt = parse_datetime(value)
    if dt is None:
        dt = now or utcnow()
    return dt.strftime("%Y-%m-%d")


def format_display_date(dt: datetime) -> str:
    """"Mar 5, 2025" style date for titles and summaries."""
    return f"{dt.strftime('%b')} {dt.day}, {dt.year}"


def truncate_text(text: str, max_len: int = 40) -> str:
    """Truncate text with ellipsis."""
    if not text:
        return ""
    return text[:max_len] + "..." if len(text) > max_len else text
