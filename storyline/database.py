"""
SQL store — articles (read + story back-references), trends, and stories.

Tables:
  - articles: The ingested article store. This package only reads it by
    time window and appends story ids to ``story_references``.
  - trends: One row per (keyword, timeframe, entity_type).
  - stories: Story documents (JSON) plus indexed columns for resolution
    and ranking. At most one ongoing story per primary-entity key.
  - story_entities: (story, name, type) lookup rows for story resolution.

Every multi-row write runs in one transaction via ``get_session()``, so a
failed trend refresh or story save never leaves a half-written document.
"""

import json
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import (
    create_engine, Column, String, Integer, Float, Text, DateTime, Boolean,
    Index, UniqueConstraint, text,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool

from .config import get_settings
from .news.entity_normalizer import entity_key, normalize_entity_type
from .schemas.base import Timeframe
from .schemas.news import Article
from .schemas.stories import Story
from .schemas.trends import Trend
from .shared.helpers import utcnow

logger = logging.getLogger(__name__)

Base = declarative_base()


class ArticleStoreError(RuntimeError):
    """The article store cannot be read. Fatal for a run."""


class StoryConflictError(RuntimeError):
    """Another writer already holds an ongoing story for this entity key."""


def _dumps(value: Any) -> str:
    return json.dumps(value, default=str)


def _loads(raw: Optional[str], default: Any) -> Any:
    if not raw:
        return default
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return default


# ── Models ───────────────────────────────────────────────────────────────────

class ArticleModel(Base):
    """Ingested article (owned by the ingestion side)."""
    __tablename__ = "articles"

    id = Column(String(64), primary_key=True)
    title = Column(Text, default="")
    description = Column(Text, default="")
    content = Column(Text, default="")
    published_at = Column(DateTime, index=True)
    source_name = Column(String(300), default="")
    categories = Column(Text, default="[]")  # JSON array
    countries = Column(Text, default="[]")  # JSON array
    sentiment = Column(Float)
    sentiment_assessment = Column(String(20))
    entities = Column(Text, default="[]")  # JSON array of {name, type, count}
    story_references = Column(Text, default="[]")  # JSON array of story ids


class TrendModel(Base):
    """Ranked trend record for one timeframe."""
    __tablename__ = "trends"
    __table_args__ = (
        UniqueConstraint("keyword", "timeframe", "entity_type", name="uq_trend_key"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    keyword = Column(String(300), nullable=False)
    entity_type = Column(String(20), nullable=False, index=True)
    timeframe = Column(String(20), nullable=False, index=True)
    count = Column(Integer, default=0, index=True)
    score = Column(Float, default=0.0)
    categories = Column(Text, default="[]")
    sources = Column(Text, default="[]")
    countries = Column(Text, default="[]")
    sentiment = Column(Text, default="{}")
    articles = Column(Text, default="[]")
    first_seen_at = Column(DateTime)
    last_seen_at = Column(DateTime)


class StoryModel(Base):
    """Story document with indexed resolution/ranking columns."""
    __tablename__ = "stories"
    __table_args__ = (
        Index(
            "uq_story_ongoing_entity", "entity_key", unique=True,
            sqlite_where=text("ongoing = 1"),
            postgresql_where=text("ongoing"),
        ),
    )

    id = Column(String(64), primary_key=True)
    entity_key = Column(String(400), nullable=False)
    ongoing = Column(Boolean, default=True, index=True)
    relevancy_score = Column(Integer, default=0, index=True)
    view_count = Column(Integer, default=0)
    document = Column(Text, nullable=False)  # full Story JSON
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow)


class StoryEntityModel(Base):
    """(story, entity) lookup row."""
    __tablename__ = "story_entities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    story_id = Column(String(64), nullable=False, index=True)
    name_lower = Column(String(300), nullable=False, index=True)
    entity_type = Column(String(20), nullable=False)


# ── Database class ───────────────────────────────────────────────────────────

class Database:
    """Database manager — singleton, lazy-initialized."""

    def __init__(self, database_url: Optional[str] = None):
        settings = get_settings()
        url = database_url or settings.database_url

        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection so every session sees the same in-memory DB
            self.engine = create_engine(
                url, echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(url, echo=False)
        self.SessionLocal = sessionmaker(bind=self.engine)

    def create_tables(self):
        """Create all tables (safe to call multiple times)."""
        Base.metadata.create_all(self.engine)

    @contextmanager
    def get_session(self) -> Session:
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ── Articles ──────────────────────────────────────────────────────

    def save_articles(self, articles: Iterable[Article]) -> int:
        """Insert or replace article rows. Used by ingestion and fixtures."""
        count = 0
        with self.get_session() as session:
            for article in articles:
                session.merge(ArticleModel(
                    id=article.id,
                    title=article.title,
                    description=article.description,
                    content=article.content,
                    published_at=article.published_at,
                    source_name=article.source.name,
                    categories=_dumps(article.categories),
                    countries=_dumps(article.countries),
                    sentiment=article.sentiment,
                    sentiment_assessment=article.sentiment_assessment,
                    entities=_dumps([e.model_dump() for e in article.entities]),
                    story_references=_dumps(article.story_references),
                ))
                count += 1
        return count

    def get_articles_between(
        self,
        start: datetime,
        end: datetime,
        limit: int,
        with_entities_only: bool = False,
    ) -> List[Article]:
        """Articles with published_at in [start, end], newest first, bounded by limit.

        Raises ArticleStoreError when the store cannot be queried.
        """
        try:
            with self.get_session() as session:
                q = session.query(ArticleModel).filter(
                    ArticleModel.published_at >= start,
                    ArticleModel.published_at <= end,
                )
                if with_entities_only:
                    q = q.filter(
                        ArticleModel.entities.isnot(None),
                        ArticleModel.entities.notin_(["", "[]"]),
                    )
                rows = q.order_by(ArticleModel.published_at.desc()).limit(limit).all()
                raw = [self._article_dict(r) for r in rows]
        except SQLAlchemyError as e:
            logger.error(f"Article store unavailable: {e}")
            raise ArticleStoreError(f"cannot read articles: {e}") from e

        articles = []
        for item in raw:
            try:
                articles.append(Article.model_validate(item))
            except ValueError as e:
                logger.warning(f"Skipping malformed article {item.get('id')}: {e}")
        return articles

    def get_articles_by_ids(self, ids: Iterable[str]) -> List[Article]:
        ids = list(ids)
        if not ids:
            return []
        try:
            with self.get_session() as session:
                rows = session.query(ArticleModel).filter(ArticleModel.id.in_(ids)).all()
                raw = [self._article_dict(r) for r in rows]
        except SQLAlchemyError as e:
            raise ArticleStoreError(f"cannot read articles: {e}") from e
        return [Article.model_validate(item) for item in raw]

    def add_story_reference(self, article_ids: Iterable[str], story_id: str) -> int:
        """Append story_id to each article's story_references (set semantics).

        Per-article failures are logged and skipped. Returns rows updated.
        """
        updated = 0
        for article_id in article_ids:
            try:
                with self.get_session() as session:
                    row = session.query(ArticleModel).filter_by(id=article_id).first()
                    if row is None:
                        continue
                    refs = _loads(row.story_references, [])
                    if story_id not in refs:
                        refs.append(story_id)
                        row.story_references = _dumps(refs)
                        updated += 1
            except SQLAlchemyError as e:
                logger.warning(f"Back-reference failed for article {article_id}: {e}")
        return updated

    @staticmethod
    def _article_dict(r: ArticleModel) -> Dict[str, Any]:
        return {
            "id": r.id,
            "title": r.title,
            "description": r.description,
            "content": r.content,
            "published_at": r.published_at,
            "source": {"name": r.source_name or ""},
            "categories": _loads(r.categories, []),
            "countries": _loads(r.countries, []),
            "sentiment": r.sentiment,
            "sentiment_assessment": r.sentiment_assessment,
            "entities": _loads(r.entities, []),
            "story_references": _loads(r.story_references, []),
        }

    # ── Trends ────────────────────────────────────────────────────────

    def save_trends(
        self,
        timeframe: Timeframe,
        trends: List[Trend],
        force_refresh: bool = False,
        now: Optional[datetime] = None,
    ) -> int:
        """Persist one timeframe's trend set in a single transaction.

        Default: upsert by (keyword, timeframe, entity_type) — overwrite
        score/count/distributions, bump last_seen_at, keep first_seen_at,
        union the article-id set.
        force_refresh: delete the timeframe's rows and insert the fresh set
        in the same transaction, so readers see either the old or the new set.
        """
        now = now or utcnow()
        tf = Timeframe(timeframe).value
        with self.get_session() as session:
            if force_refresh:
                deleted = session.query(TrendModel).filter(
                    TrendModel.timeframe == tf
                ).delete(synchronize_session=False)
                logger.info(f"Replacing {deleted} {tf} trends with {len(trends)} fresh rows")
                existing = {}
            else:
                existing = {
                    (r.keyword, r.entity_type): r
                    for r in session.query(TrendModel).filter(TrendModel.timeframe == tf).all()
                }

            for trend in trends:
                row = existing.get((trend.keyword, trend.entity_type))
                if row is None:
                    row = TrendModel(
                        keyword=trend.keyword,
                        entity_type=trend.entity_type,
                        timeframe=tf,
                        articles="[]",
                        first_seen_at=now,
                    )
                    session.add(row)
                    existing[(trend.keyword, trend.entity_type)] = row

                row.count = trend.count
                row.score = trend.score
                row.categories = _dumps(trend.categories)
                row.sources = _dumps([s.model_dump() for s in trend.sources])
                row.countries = _dumps([c.model_dump() for c in trend.countries])
                row.sentiment = _dumps(trend.sentiment.model_dump())
                row.last_seen_at = now

                ids = _loads(row.articles, [])
                known = set(ids)
                ids.extend(a for a in trend.articles if a not in known)
                row.articles = _dumps(ids)
        return len(trends)

    def get_trends(
        self,
        timeframe: Optional[str] = None,
        entity_type: Optional[str] = None,
        category: Optional[str] = None,
        country: Optional[str] = None,
        limit: int = 20,
    ) -> List[Trend]:
        """Trending topics, highest count first, with optional filters."""
        with self.get_session() as session:
            q = session.query(TrendModel)
            if timeframe:
                q = q.filter(TrendModel.timeframe == Timeframe(timeframe).value)
            if entity_type:
                q = q.filter(TrendModel.entity_type == entity_type)
            rows = q.order_by(TrendModel.count.desc(), TrendModel.keyword).all()

            trends = []
            for r in rows:
                trend = self._trend_from_row(r)
                if category and category.lower() not in [c.lower() for c in trend.categories]:
                    continue
                if country and country.lower() not in [c.code.lower() for c in trend.countries]:
                    continue
                trends.append(trend)
                if len(trends) >= limit:
                    break
            return trends

    @staticmethod
    def _trend_from_row(r: TrendModel) -> Trend:
        return Trend(
            keyword=r.keyword,
            entity_type=r.entity_type,
            timeframe=r.timeframe,
            count=r.count or 0,
            score=r.score or 0.0,
            categories=_loads(r.categories, []),
            sources=_loads(r.sources, []),
            countries=_loads(r.countries, []),
            sentiment=_loads(r.sentiment, {}),
            articles=_loads(r.articles, []),
            first_seen_at=r.first_seen_at,
            last_seen_at=r.last_seen_at,
        )

    # ── Stories ───────────────────────────────────────────────────────

    def find_ongoing_story(self, name: str, entity_type: str) -> Optional[Story]:
        """Ongoing story whose entities include (name, type), case-insensitive.

        A story whose primary entity matches wins over one that only lists
        the entity as secondary.
        """
        canonical = normalize_entity_type(entity_type).value
        key = entity_key(name, canonical)
        with self.get_session() as session:
            rows = (
                session.query(StoryModel)
                .join(StoryEntityModel, StoryEntityModel.story_id == StoryModel.id)
                .filter(
                    StoryEntityModel.name_lower == name.strip().lower(),
                    StoryEntityModel.entity_type == canonical,
                    StoryModel.ongoing.is_(True),
                )
                .order_by(StoryModel.created_at)
                .all()
            )
            if not rows:
                return None
            primary = [r for r in rows if r.entity_key == key]
            row = primary[0] if primary else rows[0]
            return Story.model_validate_json(row.document)

    def get_story(self, story_id: str) -> Optional[Story]:
        with self.get_session() as session:
            row = session.query(StoryModel).filter_by(id=story_id).first()
            return Story.model_validate_json(row.document) if row else None

    def save_story(self, story: Story) -> str:
        """Insert or replace a story document and its entity lookup rows.

        Raises StoryConflictError when a different ongoing story already
        owns the same primary-entity key.
        """
        story.prepare_for_save()
        primary = story.primary_entity
        key = entity_key(primary.name, primary.type) if primary else f"story:{story.id}"
        try:
            with self.get_session() as session:
                session.merge(StoryModel(
                    id=story.id,
                    entity_key=key,
                    ongoing=story.timeline.ongoing,
                    relevancy_score=story.relevancy_score,
                    view_count=story.view_count,
                    document=story.model_dump_json(),
                    created_at=story.created_at,
                    updated_at=story.updated_at,
                ))
                session.query(StoryEntityModel).filter(
                    StoryEntityModel.story_id == story.id
                ).delete(synchronize_session=False)
                for ent in story.entities:
                    session.add(StoryEntityModel(
                        story_id=story.id,
                        name_lower=ent.name.strip().lower(),
                        entity_type=normalize_entity_type(ent.type).value,
                    ))
        except IntegrityError as e:
            raise StoryConflictError(f"ongoing story already exists for {key}") from e
        return story.id

    def add_related_stories(self, story_id: str, related_ids: Iterable[str]) -> int:
        """Union related_ids into a story's related_stories. Returns edges added."""
        with self.get_session() as session:
            row = session.query(StoryModel).filter_by(id=story_id).first()
            if row is None:
                return 0
            doc = _loads(row.document, {})
            related = doc.get("related_stories", [])
            added = 0
            for rid in related_ids:
                if rid != story_id and rid not in related:
                    related.append(rid)
                    added += 1
            if added:
                doc["related_stories"] = related
                row.document = _dumps(doc)
            return added

    def list_ongoing_stories(self) -> List[Story]:
        with self.get_session() as session:
            rows = session.query(StoryModel).filter(StoryModel.ongoing.is_(True)).all()
            return [Story.model_validate_json(r.document) for r in rows]

    def update_relevancy_scores(self, scores: Dict[str, int]) -> int:
        """Write relevancy scores; touches nothing else on the story."""
        with self.get_session() as session:
            rows = session.query(StoryModel).filter(StoryModel.id.in_(list(scores))).all()
            for row in rows:
                doc = _loads(row.document, {})
                doc["relevancy_score"] = scores[row.id]
                row.document = _dumps(doc)
                row.relevancy_score = scores[row.id]
            return len(rows)

    def get_top_stories(self, limit: int = 20) -> List[Story]:
        """Ongoing stories by relevancy score, highest first."""
        with self.get_session() as session:
            rows = (
                session.query(StoryModel)
                .filter(StoryModel.ongoing.is_(True))
                .order_by(StoryModel.relevancy_score.desc())
                .limit(limit)
                .all()
            )
            return [Story.model_validate_json(r.document) for r in rows]


# ── Singleton ────────────────────────────────────────────────────────────────

_db: Optional[Database] = None


def get_database() -> Database:
    """Get or create database instance."""
    global _db
    if _db is None:
        _db = Database()
        _db.create_tables()
    return _db
