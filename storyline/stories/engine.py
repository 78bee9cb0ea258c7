"""
StoryPipeline — turns the last 72 hours of articles into persistent stories.

  1. Read:      articles with entities, published in [now - 72h, now]
  2. Cluster:   by primary entity; keep clusters of ≥4 articles, largest first
  3. Resolve:   per cluster, find an ongoing story listing (name, type)
                  extend — new articles only, same-day chapters grow,
                           other days become new chapters
                  create — every day becomes a chapter, full story built
  4. Link:      directed related-story edges among this run's stories
  5. Rescore:   relevancy for every ongoing story

CONCURRENCY:
  Resolution is check-then-act, so it runs under an asyncio.Lock per entity
  key (shared by every pipeline in the process) and the store's unique
  index on ongoing primary-entity keys. A create that loses that race is
  retried as an extend of the winner's story.

ERRORS:
  Article store unreadable → ArticleStoreError propagates (run fails).
  One cluster failing (save error, bad data) → logged, recorded, skipped.
  Text generation never fails a cluster: StoryWriter falls back to templates.
  Wall-clock bound hit → remaining clusters skipped, result.incomplete set.
"""

import asyncio
import logging
import time
import weakref
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from ..config import get_settings
from ..database import Database, StoryConflictError, get_database
from ..schemas.news import Article
from ..schemas.pipeline import StoryRunResult
from ..schemas.stories import Chapter, Story, Timeline
from ..shared.helpers import EPOCH, day_key, truncate_text, utcnow
from ..tools.llm_service import LLMService
from ..tools.task_queue import TextGenerationQueue
from . import narrative
from .chapters import chapter_date, group_by_day
from .clustering import EntityCluster, cluster_articles, significant_clusters
from .relationships import link_related_stories
from .relevancy import rescore_ongoing_stories
from .sentiment import classify_sentiment_trend
from .synthesis import StoryWriter

logger = logging.getLogger(__name__)

CREATED = "created"
EXTENDED = "extended"
SKIPPED = "skipped"


def build_default_queue(use_llm: bool = True) -> TextGenerationQueue:
    """Queue over LLMService when configured, else an always-fallback queue."""
    settings = get_settings()
    generator = LLMService() if use_llm and settings.llm_configured else None
    if generator is None:
        logger.info("Text generation off — stories use template text")
    return TextGenerationQueue(generator)


class StoryPipeline:
    """Create/extend stories from recent article clusters."""

    # Entity-key locks shared by every pipeline instance, per event loop
    _locks: "weakref.WeakKeyDictionary" = weakref.WeakKeyDictionary()

    def __init__(
        self,
        db: Optional[Database] = None,
        writer: Optional[StoryWriter] = None,
        use_llm: bool = True,
        clock: Callable[[], datetime] = utcnow,
        timer: Callable[[], float] = time.monotonic,
        run_timeout: Optional[float] = None,
    ):
        settings = get_settings()
        self.db = db or get_database()
        self.writer = writer or StoryWriter(build_default_queue(use_llm))
        self.clock = clock
        self.timer = timer
        self.window = timedelta(hours=settings.story_window_hours)
        self.min_cluster_size = settings.story_min_cluster_size
        self.article_limit = settings.story_article_limit
        self.max_secondary = settings.story_max_secondary_entities
        self.max_related = settings.story_max_related
        self.max_keywords = settings.story_max_keywords
        self.run_timeout = run_timeout if run_timeout is not None else settings.story_run_timeout_seconds

    @classmethod
    def _lock_for(cls, key: str) -> asyncio.Lock:
        loop_locks = cls._locks.setdefault(asyncio.get_running_loop(), {})
        lock = loop_locks.get(key)
        if lock is None:
            lock = loop_locks[key] = asyncio.Lock()
        return lock

    # ── Run ───────────────────────────────────────────────────────────

    async def run(self) -> StoryRunResult:
        """One full clustering pass. Raises ArticleStoreError if articles can't be read."""
        now = self.clock()
        started = self.timer()
        deadline = started + self.run_timeout
        result = StoryRunResult(started_at=now)

        articles = self.db.get_articles_between(
            now - self.window, now, limit=self.article_limit, with_entities_only=True,
        )
        articles = [a for a in articles if a.entities]
        result.articles_scanned = len(articles)

        clusters = cluster_articles(articles)
        significant = significant_clusters(clusters, self.min_cluster_size)
        result.clusters_found = len(clusters)
        result.clusters_significant = len(significant)
        logger.info(
            f"=== Stories START | {len(articles)} articles | {len(clusters)} clusters | "
            f"{len(significant)} significant ==="
        )

        registry: Dict[str, str] = {}
        for index, cluster in enumerate(significant):
            if self.timer() > deadline:
                remaining = len(significant) - index
                result.incomplete = True
                result.incomplete_reason = (
                    f"wall-clock bound of {self.run_timeout:.0f}s reached with "
                    f"{remaining} clusters unprocessed"
                )
                logger.warning(f"Story run incomplete: {result.incomplete_reason}")
                break

            try:
                outcome, story_id = await self.process_cluster(cluster, now)
            except Exception as e:
                logger.error(f"Cluster {cluster.key} failed: {e}", exc_info=True)
                result.errors.append(f"{cluster.key}: {e}")
                continue

            if outcome == CREATED:
                result.stories_created += 1
            elif outcome == EXTENDED:
                result.stories_extended += 1
            else:
                result.clusters_skipped += 1
            if story_id:
                registry[cluster.key] = story_id

        result.relationships_added = link_related_stories(
            self.db, significant, registry, self.max_related,
        )
        result.stories_rescored = rescore_ongoing_stories(self.db, now)
        result.completed_at = self.clock()

        logger.info(
            f"=== Stories DONE | {result.stories_created} created | "
            f"{result.stories_extended} extended | {result.clusters_skipped} unchanged | "
            f"{len(result.errors)} errors | {self.timer() - started:.1f}s ==="
        )
        return result

    async def process_cluster(self, cluster: EntityCluster, now: datetime) -> Tuple[str, Optional[str]]:
        """Resolve one cluster to a story. Returns (outcome, story id or None)."""
        async with self._lock_for(cluster.key):
            story = self.db.find_ongoing_story(cluster.name, cluster.type)
            if story is not None:
                return await self._extend_locked(story, cluster, now)
            try:
                return await self.create_story(cluster, now)
            except StoryConflictError:
                logger.info(f"Story for {cluster.key} created concurrently, extending instead")
                story = self.db.find_ongoing_story(cluster.name, cluster.type)
                if story is None:
                    raise
                return await self._extend_locked(story, cluster, now)

    async def _extend_locked(self, story: Story, cluster: EntityCluster, now: datetime) -> Tuple[str, Optional[str]]:
        async with self._lock_for(f"story:{story.id}"):
            # Re-read under the story lock so a concurrent extend is not overwritten
            fresh = self.db.get_story(story.id) or story
            return await self.extend_story(fresh, cluster, now)

    # ── Chapters ──────────────────────────────────────────────────────

    async def build_chapter(
        self, entity: str, articles: List[Article], trend: str, now: datetime,
    ) -> Chapter:
        date = chapter_date(articles, now)
        return Chapter(
            title=await self.writer.chapter_title(entity, date, trend, articles),
            summary=await self.writer.chapter_summary(entity, date, articles),
            content=narrative.chapter_content(entity, articles, now),
            articles=[a.id for a in articles],
            published_at=date,
            updated_at=now,
        )

    # ── Extend path ───────────────────────────────────────────────────

    async def extend_story(self, story: Story, cluster: EntityCluster, now: datetime) -> Tuple[str, Optional[str]]:
        known = story.article_ids()
        new_articles = [a for a in cluster.articles if a.id not in known]
        if not new_articles:
            logger.debug(f"Story {story.id} already holds every article of {cluster.key}")
            return SKIPPED, None

        primary = story.primary_entity
        entity = primary.name if primary else cluster.name
        entity_type = primary.type if primary else cluster.type
        trend = classify_sentiment_trend(cluster.articles, now).value

        by_day = {day_key(ch.published_at): ch for ch in story.chapters}
        for day, day_articles in group_by_day(new_articles, now).items():
            chapter = by_day.get(day)
            if chapter is None:
                chapter = await self.build_chapter(entity, day_articles, trend, now)
                story.chapters.append(chapter)
                by_day[day] = chapter
                continue

            for article in day_articles:
                if article.id not in chapter.articles:
                    chapter.articles.append(article.id)
            chapter.updated_at = now
            day_set = self.db.get_articles_by_ids(chapter.articles) or day_articles
            chapter.published_at = min(chapter.published_at, chapter_date(day_set, now))
            chapter.summary = await self.writer.chapter_summary(entity, chapter.published_at, day_set)

        story.chapters.sort(key=lambda ch: ch.published_at)
        story.categories = story.categories + [c for c in cluster.categories if c not in story.categories]
        story.countries = story.countries + [c for c in cluster.countries if c not in story.countries]
        story.narrative = await self.writer.story_narrative(entity, entity_type, trend, story.chapters)
        story.predictions = await self.writer.predictions(entity, trend, story.categories, now)
        story.updated_at = now

        self.db.save_story(story)
        self.db.add_story_reference([a.id for a in new_articles], story.id)
        logger.info(
            f"Extended '{truncate_text(story.title, 60)}' with {len(new_articles)} articles "
            f"({len(story.chapters)} chapters)"
        )
        return EXTENDED, story.id

    # ── Create path ───────────────────────────────────────────────────

    async def create_story(self, cluster: EntityCluster, now: datetime) -> Tuple[str, Optional[str]]:
        trend = classify_sentiment_trend(cluster.articles, now).value

        chapters = []
        for day_articles in group_by_day(cluster.articles, now).values():
            chapters.append(await self.build_chapter(cluster.name, day_articles, trend, now))

        # Permissive window: a bad date widens the range instead of failing
        start = min(a.published_at or now for a in cluster.articles)
        end = max(a.published_at or EPOCH for a in cluster.articles)
        sources = {a.source.name for a in cluster.articles if a.source.name}

        story = Story(
            title=await self.writer.story_title(
                cluster.name, cluster.type, trend, cluster.categories, cluster.size,
            ),
            summary=await self.writer.story_summary(
                cluster.name, trend, start, end, cluster.articles, len(sources),
            ),
            narrative=await self.writer.story_narrative(cluster.name, cluster.type, trend, chapters),
            chapters=chapters,
            keywords=cluster.keywords(self.max_keywords),
            entities=[cluster.primary_story_entity()] + cluster.secondary_entities(self.max_secondary),
            categories=list(cluster.categories),
            predictions=await self.writer.predictions(cluster.name, trend, cluster.categories, now),
            timeline=Timeline(start_date=start, end_date=end, ongoing=True),
            countries=list(cluster.countries),
            view_count=0,
            related_stories=[],
            created_at=now,
            updated_at=now,
        )

        self.db.save_story(story)
        self.db.add_story_reference(cluster.article_ids, story.id)
        logger.info(
            f"Created '{truncate_text(story.title, 60)}' [{trend}] from {cluster.size} articles "
            f"in {len(chapters)} chapters"
        )
        return CREATED, story.id


async def run_story_pipeline(db: Optional[Database] = None, use_llm: bool = True) -> StoryRunResult:
    """Convenience wrapper used by the CLI."""
    return await StoryPipeline(db=db, use_llm=use_llm).run()
