"""
Entity clustering — groups recent articles by their dominant entity.

WHY PRIMARY ENTITY:
  A story is "what is happening to X". The entity an article mentions most
  is the best cheap signal for its X, so articles are bucketed by
  (type, lowercase name) of that entity.

APPROACH:
  1. Primary entity = highest-count entity whose name has ≥3 characters
     (ties keep upstream order). Articles without one are left out.
  2. Group by "{type}:{name}". Each cluster unions categories/countries,
     keeps member sentiments, and tallies every other entity it sees:
       articles  — distinct member articles co-mentioning it (relationships)
       weight    — sum of its per-article mention counts (secondary ranking)
  3. Clusters below the size threshold are dropped; survivors are
     processed largest first.

Lightweight adjacency tally, no graph library needed.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from ..news.entity_normalizer import clean_entity_name, entity_key, normalize_entity_type
from ..schemas.news import Article
from ..schemas.stories import StoryEntity

logger = logging.getLogger(__name__)

MIN_PRIMARY_NAME_CHARS = 3
PRIMARY_IMPORTANCE = 10
MAX_SECONDARY_IMPORTANCE = 9
KEYWORD_MIN_CHARS = 4


@dataclass
class CoMention:
    """How another entity co-occurs with a cluster's primary entity."""
    name: str
    type: str
    articles: int = 0
    weight: int = 0


@dataclass
class EntityCluster:
    """Articles sharing one primary entity."""
    key: str
    name: str
    type: str
    articles: List[Article] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    countries: List[str] = field(default_factory=list)
    sentiments: List[float] = field(default_factory=list)
    co_mentions: Dict[str, CoMention] = field(default_factory=dict)

    @property
    def size(self) -> int:
        return len(self.articles)

    @property
    def article_ids(self) -> List[str]:
        return [a.id for a in self.articles]

    def add(self, article: Article) -> None:
        self.articles.append(article)
        for cat in article.categories:
            if cat not in self.categories:
                self.categories.append(cat)
        for code in article.countries:
            if code not in self.countries:
                self.countries.append(code)
        if article.sentiment is not None:
            self.sentiments.append(article.sentiment)

        primary_name = self.name.lower()
        seen = set()
        for entity in article.entities:
            name = clean_entity_name(entity.name)
            if not name or name.lower() == primary_name:
                continue
            key = entity_key(name, entity.type)
            if key in seen:
                continue
            seen.add(key)
            mention = self.co_mentions.get(key)
            if mention is None:
                mention = self.co_mentions[key] = CoMention(
                    name=name, type=normalize_entity_type(entity.type).value,
                )
            mention.articles += 1
            mention.weight += entity.count

    def primary_story_entity(self) -> StoryEntity:
        return StoryEntity(name=self.name, type=self.type, importance=PRIMARY_IMPORTANCE)

    def secondary_entities(self, limit: int = 5) -> List[StoryEntity]:
        """Top co-mentioned entities by weight; importance = min(9, weight // 2)."""
        ranked = sorted(
            self.co_mentions.values(),
            key=lambda m: (-m.weight, -m.articles, m.name.lower()),
        )[:limit]
        return [
            StoryEntity(
                name=m.name,
                type=m.type,
                importance=min(MAX_SECONDARY_IMPORTANCE, m.weight // 2),
            )
            for m in ranked
        ]

    def related_keys(self, resolved: Iterable[str], limit: int = 5) -> List[str]:
        """Co-mentioned entity keys that resolved to a story, by joint article count."""
        resolved = set(resolved)
        candidates = [
            (key, m) for key, m in self.co_mentions.items()
            if key in resolved and key != self.key
        ]
        candidates.sort(key=lambda km: (-km[1].articles, -km[1].weight, km[0]))
        return [key for key, _ in candidates[:limit]]

    def keywords(self, limit: int = 10) -> List[str]:
        """Categories plus lowercase entity names longer than 3 chars."""
        words: List[str] = []
        for cat in self.categories:
            if cat.strip() and cat.strip().lower() not in words:
                words.append(cat.strip().lower())
        mentioned = sorted(self.co_mentions.values(), key=lambda m: (-m.weight, m.name.lower()))
        for name in [self.name] + [m.name for m in mentioned]:
            word = name.lower()
            if len(word) >= KEYWORD_MIN_CHARS and word not in words:
                words.append(word)
        return words[:limit]


def select_primary_entity(article: Article) -> Optional[Tuple[str, str]]:
    """(clean name, canonical type) of the article's primary entity, or None."""
    ranked = sorted(article.entities, key=lambda e: -e.count)
    for entity in ranked:
        name = clean_entity_name(entity.name)
        if len(name) >= MIN_PRIMARY_NAME_CHARS:
            return name, normalize_entity_type(entity.type).value
    return None


def cluster_articles(articles: List[Article]) -> Dict[str, EntityCluster]:
    """Group articles by primary entity key."""
    clusters: Dict[str, EntityCluster] = {}
    skipped = 0
    seen = set()
    for article in articles:
        if article.id in seen:
            continue
        seen.add(article.id)

        primary = select_primary_entity(article)
        if primary is None:
            skipped += 1
            continue
        name, etype = primary
        key = entity_key(name, etype)
        cluster = clusters.get(key)
        if cluster is None:
            cluster = clusters[key] = EntityCluster(key=key, name=name, type=etype)
        cluster.add(article)

    if skipped:
        logger.debug(f"{skipped} articles had no qualifying primary entity")
    return clusters


def significant_clusters(clusters: Dict[str, EntityCluster], min_size: int = 4) -> List[EntityCluster]:
    """Clusters with at least min_size members, largest first."""
    kept = [c for c in clusters.values() if c.size >= min_size]
    kept.sort(key=lambda c: (-c.size, c.key))
    return kept
