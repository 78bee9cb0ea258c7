"""
Entity trend aggregation — the keyword machinery applied to named entities.

SOURCES (per article):
  1. Pre-extracted ``entities[]``, type-normalized. One contribution per
     (name, type) per article, weighted by the entity's own ``count``.
  2. Only when an article carries no entities at all: a spaCy NER pass
     over title + description + content[:10000] recovers people,
     organizations and places (weight 1 each).

One accumulator per canonical type (person, organization, location, city,
country, event), keyed and persisted by lowercase entity name, so an
entity keeps one trend row whatever casing its articles use. Entities of type
``other`` are not trended.

OUTPUT:
  Entities in ≥2 distinct articles, top 50 per type by count desc.

Category trends ride along: every category tag on an article counts once
per article, no minimum and no cut.
"""

import logging
from typing import Dict, List, Optional

from ..config import get_settings
from ..news.entity_normalizer import clean_entity_name, normalize_entity_type
from ..schemas.base import CanonicalEntityType, Timeframe, TrendEntityType
from ..schemas.news import Article
from ..schemas.trends import Trend
from .accumulator import TrendAccumulator

logger = logging.getLogger(__name__)

# Canonical types that get their own trend accumulator
TRENDED_TYPES = [
    CanonicalEntityType.PERSON,
    CanonicalEntityType.ORGANIZATION,
    CanonicalEntityType.LOCATION,
    CanonicalEntityType.CITY,
    CanonicalEntityType.COUNTRY,
    CanonicalEntityType.EVENT,
]


class EntityTrendAggregator:
    """Ranks named entities per canonical type for one window."""

    def __init__(
        self,
        extractor=None,
        top_n: Optional[int] = None,
        min_articles: Optional[int] = None,
    ):
        settings = get_settings()
        self._extractor = extractor
        self.top_n = top_n or settings.entity_top_n
        self.min_articles = min_articles or settings.trend_min_articles

    @property
    def extractor(self):
        """Lazy NER extractor (spaCy is only loaded if some article needs it)."""
        if self._extractor is None:
            from ..news.entity_extractor import EntityExtractor
            self._extractor = EntityExtractor()
        return self._extractor

    def accumulate(self, articles: List[Article]) -> Dict[str, TrendAccumulator]:
        accumulators = {t.value: TrendAccumulator() for t in TRENDED_TYPES}

        bare = [a for a in articles if not a.entities]
        recovered = self.extractor.extract_batch(bare) if bare else {}

        seen_articles = set()
        for article in articles:
            if article.id in seen_articles:
                continue
            seen_articles.add(article.id)

            entities = article.entities or recovered.get(article.id, [])
            contributed = set()
            for entity in entities:
                etype = normalize_entity_type(entity.type).value
                if etype not in accumulators:
                    continue
                name = clean_entity_name(entity.name)
                if not name:
                    logger.debug(f"Skipping nameless entity on article {article.id}")
                    continue
                key = name.lower()
                if (key, etype) in contributed:
                    continue
                contributed.add((key, etype))
                accumulators[etype].add(key, article, weight=entity.count)

        return accumulators

    def score(self, articles: List[Article], timeframe: Timeframe) -> List[Trend]:
        """Ranked entity trends (all types) for one timeframe."""
        tf_value = Timeframe(timeframe).value
        trends: List[Trend] = []
        for etype, acc in self.accumulate(articles).items():
            ranked = sorted(
                acc.qualifying(self.min_articles),
                key=lambda s: (-s.count, s.term),
            )[:self.top_n]
            trends.extend(s.to_trend(etype, tf_value) for s in ranked)
            if ranked:
                logger.debug(f"[{tf_value}] {etype}: {len(ranked)}/{len(acc)} entities kept")

        logger.info(f"[{tf_value}] entities: {len(trends)} trends from {len(articles)} articles")
        return trends


def score_categories(articles: List[Article], timeframe: Timeframe) -> List[Trend]:
    """Category trends: one contribution per (category, article)."""
    acc = TrendAccumulator()
    seen = set()
    for article in articles:
        if article.id in seen:
            continue
        seen.add(article.id)
        tagged = set()
        for category in (c.strip() for c in article.categories):
            if not category or category.lower() in tagged:
                continue
            tagged.add(category.lower())
            acc.add(category.lower(), article)

    tf_value = Timeframe(timeframe).value
    ranked = sorted(acc, key=lambda s: (-s.count, s.term))
    return [s.to_trend(TrendEntityType.CATEGORY.value, tf_value) for s in ranked]
