"""
Calendar-day bucketing for story chapters.

A chapter holds one UTC calendar day of a story. Articles whose publish
date cannot be parsed (or lies in the future) land in today's bucket; a
chapter's own date is the earliest valid member date, clamped to now.
"""

import logging
from collections import OrderedDict
from datetime import datetime
from typing import Dict, List, Optional

from ..schemas.news import Article
from ..shared.helpers import day_key, utcnow, validate_date

logger = logging.getLogger(__name__)


def group_by_day(articles: List[Article], now: Optional[datetime] = None) -> "OrderedDict[str, List[Article]]":
    """{"YYYY-MM-DD": [articles]} in day order, members oldest first."""
    now = now or utcnow()
    buckets: Dict[str, List[Article]] = {}
    for article in articles:
        if article.published_at is None:
            logger.debug(f"Article {article.id} has no usable date, grouping into today")
        buckets.setdefault(day_key(validate_date(article.published_at, now)), []).append(article)

    ordered = OrderedDict()
    for key in sorted(buckets):
        ordered[key] = sorted(buckets[key], key=lambda a: validate_date(a.published_at, now))
    return ordered


def chapter_date(articles: List[Article], now: Optional[datetime] = None) -> datetime:
    """Earliest member date (future dates clamped, bad dates = now)."""
    now = now or utcnow()
    if not articles:
        return now
    return min(validate_date(a.published_at, now) for a in articles)
