"""
Sentiment-trend classification for a story cluster.

Members with a numeric sentiment are ordered by publish date and split at
floor(n/2): the earlier half, and the later half (which takes the odd one).

  delta = mean(later) - mean(earlier)

  delta >  0.2          → improving
  delta < -0.2          → worsening
  mean(later) >  0.3    → positive
  mean(later) < -0.3    → negative
  otherwise / n < 3     → neutral

All comparisons are strict. Means and delta are rounded to 9 places first
so binary float noise (0.1 + 0.2 …) cannot push an exact boundary over.
"""

import math
from datetime import datetime
from typing import List, Optional, Sequence

from ..schemas.base import SentimentTrend
from ..schemas.news import Article
from ..shared.helpers import utcnow, validate_date

MIN_SCORED_ARTICLES = 3
DELTA_THRESHOLD = 0.2
LEVEL_THRESHOLD = 0.3
_PRECISION = 9


def _mean(values: Sequence[float]) -> float:
    return round(math.fsum(values) / len(values), _PRECISION)


def classify_sentiment_sequence(values: Sequence[float]) -> SentimentTrend:
    """Classify scores already ordered oldest → newest."""
    n = len(values)
    if n < MIN_SCORED_ARTICLES:
        return SentimentTrend.NEUTRAL

    midpoint = n // 2
    earlier = _mean(values[:midpoint])
    later = _mean(values[midpoint:])
    delta = round(later - earlier, _PRECISION)

    if delta > DELTA_THRESHOLD:
        return SentimentTrend.IMPROVING
    if delta < -DELTA_THRESHOLD:
        return SentimentTrend.WORSENING
    if later > LEVEL_THRESHOLD:
        return SentimentTrend.POSITIVE
    if later < -LEVEL_THRESHOLD:
        return SentimentTrend.NEGATIVE
    return SentimentTrend.NEUTRAL


def classify_sentiment_trend(articles: List[Article], now: Optional[datetime] = None) -> SentimentTrend:
    """Sentiment trend of a cluster; articles without a score are ignored."""
    now = now or utcnow()
    scored = [
        (validate_date(a.published_at, now), a.sentiment)
        for a in articles
        if a.sentiment is not None
    ]
    scored.sort(key=lambda pair: pair[0])
    return classify_sentiment_sequence([s for _, s in scored])
