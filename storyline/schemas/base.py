"""
Common enums used across the entire application.

These define the vocabulary of the system: the closed set of canonical
entity types, the trend record types, trend timeframes, sentiment labels
and the sentiment-trend classes a story can carry.
"""

from datetime import timedelta
from enum import Enum


# ══════════════════════════════════════════════════════════════════════════════
# ENUMS - Classification Types
# ══════════════════════════════════════════════════════════════════════════════

class CanonicalEntityType(str, Enum):
    """Closed entity-type vocabulary. Every raw type string maps into this."""
    PERSON = "person"
    ORGANIZATION = "organization"
    LOCATION = "location"
    CITY = "city"
    COUNTRY = "country"
    EVENT = "event"
    OTHER = "other"


class TrendEntityType(str, Enum):
    """What a trend record counts."""
    KEYWORD = "keyword"
    PERSON = "person"
    ORGANIZATION = "organization"
    LOCATION = "location"
    CITY = "city"
    COUNTRY = "country"
    EVENT = "event"
    CATEGORY = "category"


class Timeframe(str, Enum):
    """Trend aggregation window granularity."""
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def window(self) -> timedelta:
        return TIMEFRAME_WINDOWS[self]


TIMEFRAME_WINDOWS = {
    Timeframe.HOURLY: timedelta(hours=1),
    Timeframe.DAILY: timedelta(days=1),
    Timeframe.WEEKLY: timedelta(days=7),
    Timeframe.MONTHLY: timedelta(days=30),
}


class SentimentLabel(str, Enum):
    """Per-article sentiment assessment (computed upstream)."""
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class SentimentTrend(str, Enum):
    """Direction of sentiment across a story's articles."""
    IMPROVING = "improving"
    WORSENING = "worsening"
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"
