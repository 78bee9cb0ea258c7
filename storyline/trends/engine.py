"""
TrendPipeline — keyword, entity and category trends for one timeframe.

  Window:   hourly 1h | daily 24h | weekly 7d | monthly 30d, ending now,
            bounded by ``TREND_ARTICLE_LIMIT`` articles (newest first).
  Score:    KeywordTrendScorer → EntityTrendAggregator → category trends.
  Persist:  all three sets in ONE transaction. Default is upsert with
            article-set union; ``force_refresh`` swaps the timeframe's rows
            for the fresh set atomically.

Timeframes are independent. If a scorer fails, whatever did compute is
still upserted, but a forced swap is downgraded to an upsert so a partial
result never replaces a complete one.
"""

import logging
import time
from datetime import datetime
from typing import Callable, List, Optional

from ..config import get_settings
from ..database import Database, get_database
from ..schemas.base import Timeframe
from ..schemas.pipeline import TrendRunResult
from ..schemas.trends import Trend
from ..shared.helpers import utcnow
from .entities import EntityTrendAggregator, score_categories
from .keywords import KeywordTrendScorer

logger = logging.getLogger(__name__)


class TrendPipeline:
    """Runs trend scoring for one or all timeframes."""

    def __init__(
        self,
        db: Optional[Database] = None,
        keyword_scorer: Optional[KeywordTrendScorer] = None,
        entity_aggregator: Optional[EntityTrendAggregator] = None,
        article_limit: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        settings = get_settings()
        self.db = db or get_database()
        self.keyword_scorer = keyword_scorer or KeywordTrendScorer()
        self.entity_aggregator = entity_aggregator or EntityTrendAggregator()
        self.article_limit = article_limit or settings.trend_article_limit
        self.clock = clock

    def run(self, timeframe: Timeframe, force_refresh: bool = False) -> TrendRunResult:
        """Score and persist one timeframe.

        Raises ArticleStoreError if the window cannot be read.
        """
        timeframe = Timeframe(timeframe)
        now = self.clock()
        start_time = time.time()
        result = TrendRunResult(timeframe=timeframe, force_refresh=force_refresh, started_at=now)

        articles = self.db.get_articles_between(
            now - timeframe.window, now, limit=self.article_limit,
        )
        result.articles_scanned = len(articles)
        logger.info(
            f"=== Trends START | {timeframe.value} | {len(articles)} articles | "
            f"force_refresh={force_refresh} ==="
        )

        trends: List[Trend] = []
        stages = [
            ("keyword", lambda: self.keyword_scorer.score(articles, timeframe), "keyword_trends"),
            ("entity", lambda: self.entity_aggregator.score(articles, timeframe), "entity_trends"),
            ("category", lambda: score_categories(articles, timeframe), "category_trends"),
        ]
        for name, stage, counter in stages:
            try:
                produced = stage()
            except Exception as e:
                logger.error(f"[{timeframe.value}] {name} scoring failed: {e}", exc_info=True)
                result.errors.append(f"{name}: {e}")
                continue
            trends.extend(produced)
            setattr(result, counter, len(produced))

        swap = force_refresh and not result.errors
        if force_refresh and not swap:
            logger.warning(f"[{timeframe.value}] partial result — forced refresh downgraded to upsert")

        self.db.save_trends(timeframe, trends, force_refresh=swap, now=now)

        result.completed_at = self.clock()
        logger.info(
            f"=== Trends DONE | {timeframe.value} | {result.total_trends} trends "
            f"({result.keyword_trends} kw, {result.entity_trends} ent, "
            f"{result.category_trends} cat) | {time.time() - start_time:.2f}s ==="
        )
        return result

    def run_all(self, force_refresh: bool = False) -> List[TrendRunResult]:
        """Every timeframe, shortest window first."""
        return [self.run(tf, force_refresh=force_refresh) for tf in Timeframe]
