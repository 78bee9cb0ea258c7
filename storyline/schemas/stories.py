"""
Story models — persistent, evolving narratives around one dominant entity.

A Story is split into day-bucketed Chapters. Its first entity is the
primary (clustering) entity with importance 10; the rest are secondary
entities ranked by co-mention weight.

Invariants kept by ``Story.prepare_for_save()``:
  - chapters ordered by published_at
  - an article id appears in at most one chapter
  - timeline start/end = min/max of chapter published_at
  - categories/keywords lowercased and de-duplicated
"""

import uuid
from datetime import datetime
from typing import List, Optional, Set

from pydantic import BaseModel, Field, field_validator

from ..shared.helpers import utcnow
from .base import CanonicalEntityType

TITLE_MAX_CHARS = 200
SUMMARY_MAX_CHARS = 1000


def _new_story_id() -> str:
    return uuid.uuid4().hex


class Chapter(BaseModel):
    """One calendar day of a story."""
    title: str
    summary: str = ""
    content: str = ""
    articles: List[str] = Field(default_factory=list)
    published_at: datetime
    updated_at: datetime = Field(default_factory=utcnow)


class StoryEntity(BaseModel):
    name: str
    type: CanonicalEntityType
    importance: int = Field(default=5, ge=0, le=10)

    class Config:
        use_enum_values = True


class Prediction(BaseModel):
    content: str
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    created_at: datetime = Field(default_factory=utcnow)


class Timeline(BaseModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    ongoing: bool = True


class Story(BaseModel):
    """A persistent narrative aggregate."""
    id: str = Field(default_factory=_new_story_id)
    title: str
    summary: str = ""
    narrative: str = ""
    chapters: List[Chapter] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    entities: List[StoryEntity] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    predictions: List[Prediction] = Field(default_factory=list)
    timeline: Timeline = Field(default_factory=Timeline)
    countries: List[str] = Field(default_factory=list)
    view_count: int = Field(default=0, ge=0)
    related_stories: List[str] = Field(default_factory=list)
    relevancy_score: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("title")
    @classmethod
    def clip_title(cls, v: str) -> str:
        return v.strip()[:TITLE_MAX_CHARS]

    @field_validator("summary")
    @classmethod
    def clip_summary(cls, v: str) -> str:
        return v.strip()[:SUMMARY_MAX_CHARS]

    @property
    def primary_entity(self) -> Optional[StoryEntity]:
        return self.entities[0] if self.entities else None

    def article_ids(self) -> Set[str]:
        """Every article id already absorbed by some chapter."""
        ids: Set[str] = set()
        for chapter in self.chapters:
            ids.update(chapter.articles)
        return ids

    def total_article_count(self) -> int:
        """Sum of chapter article-list lengths (not de-duplicated)."""
        return sum(len(ch.articles) for ch in self.chapters)

    def refresh_timeline(self) -> None:
        if not self.chapters:
            return
        dates = [ch.published_at for ch in self.chapters]
        self.timeline.start_date = min(dates)
        self.timeline.end_date = max(dates)

    def prepare_for_save(self) -> None:
        """Normalize the document the way every save must see it."""
        self.chapters.sort(key=lambda ch: ch.published_at)
        seen: Set[str] = set()
        for chapter in self.chapters:
            kept = []
            for article_id in chapter.articles:
                if article_id not in seen:
                    seen.add(article_id)
                    kept.append(article_id)
            chapter.articles = kept
        self.categories = _lower_unique(self.categories)
        self.keywords = _lower_unique(self.keywords)
        self.countries = _unique(self.countries)
        self.related_stories = _unique(self.related_stories)
        self.title = self.title[:TITLE_MAX_CHARS]
        self.summary = self.summary[:SUMMARY_MAX_CHARS]
        self.refresh_timeline()


def _unique(items: List[str]) -> List[str]:
    seen = set()
    out = []
    for item in items:
        if item and item not in seen:
            seen.add(item)
            out.append(item)
    return out


def _lower_unique(items: List[str]) -> List[str]:
    return _unique([i.strip().lower() for i in items if i])
