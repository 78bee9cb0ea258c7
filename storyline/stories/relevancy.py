"""
Relevancy scoring for ongoing stories.

  score = round(5 × articles + 100 / days + 10 × related + views)

  articles — sum of chapter article-list lengths (not de-duplicated)
  days     — whole days since the story's last update, floored at 1

Idempotent batch pass over every ongoing story; writes the score only.
"""

import logging
import math
from datetime import datetime
from typing import Optional

from ..database import Database
from ..schemas.stories import Story
from ..shared.helpers import utcnow

logger = logging.getLogger(__name__)

ARTICLE_WEIGHT = 5
RECENCY_WEIGHT = 100
RELATED_WEIGHT = 10
SECONDS_PER_DAY = 86400


def relevancy_score(story: Story, now: Optional[datetime] = None) -> int:
    now = now or utcnow()
    elapsed_days = int((now - story.updated_at).total_seconds() // SECONDS_PER_DAY)
    days = max(1, elapsed_days)
    raw = (
        ARTICLE_WEIGHT * story.total_article_count()
        + RECENCY_WEIGHT / days
        + RELATED_WEIGHT * len(story.related_stories)
        + story.view_count
    )
    # Half-up rounding, not banker's
    return int(math.floor(raw + 0.5))


def rescore_ongoing_stories(db: Database, now: Optional[datetime] = None) -> int:
    """Recompute relevancy for all ongoing stories. Returns stories scored."""
    now = now or utcnow()
    stories = db.list_ongoing_stories()
    scores = {story.id: relevancy_score(story, now) for story in stories}
    updated = db.update_relevancy_scores(scores) if scores else 0
    logger.info(f"Relevancy: rescored {updated} ongoing stories")
    return updated
