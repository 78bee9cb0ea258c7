"""
Article data models.

Articles are the raw material of the pipeline. They are ingested and
scored upstream; this package only reads them and writes back the
ids of the stories that absorbed them (``story_references``).

Hierarchy: Article → (Trend scoring, Story clustering)
"""

import logging
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

from ..shared.helpers import parse_datetime
from .base import SentimentLabel

logger = logging.getLogger(__name__)


class ArticleSource(BaseModel):
    """Publisher of an article."""
    name: str = ""


class ArticleEntity(BaseModel):
    """
    Pre-extracted named entity on an article.

    ``type`` is the raw upstream string; consumers normalize it through
    ``storyline.news.entity_normalizer`` rather than branching on it.
    """
    name: str
    type: str = "other"
    count: int = 1

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return "" if v is None else str(v).strip()

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, v):
        return v if isinstance(v, str) else "other"

    @field_validator("count", mode="before")
    @classmethod
    def default_count(cls, v):
        # Missing or zero counts weigh as a single mention
        try:
            return int(v) if v and int(v) > 0 else 1
        except (TypeError, ValueError):
            return 1


class Article(BaseModel):
    """
    A news article as projected for analytics.

    ``published_at`` is None when the stored date could not be parsed;
    downstream code substitutes its documented fallback instead of failing.
    """
    id: str
    title: str = ""
    description: str = ""
    content: str = ""
    published_at: Optional[datetime] = None
    source: ArticleSource = Field(default_factory=ArticleSource)
    categories: List[str] = Field(default_factory=list)
    countries: List[str] = Field(default_factory=list)
    sentiment: Optional[float] = None
    sentiment_assessment: Optional[SentimentLabel] = None
    entities: List[ArticleEntity] = Field(default_factory=list)
    story_references: List[str] = Field(default_factory=list)

    class Config:
        use_enum_values = True

    @field_validator("title", "description", "content", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or ""

    @field_validator("published_at", mode="before")
    @classmethod
    def lenient_date(cls, v: Any):
        dt = parse_datetime(v)
        if dt is None and v not in (None, ""):
            logger.debug(f"Unparsable publishedAt {v!r}")
        return dt

    @field_validator("source", mode="before")
    @classmethod
    def coerce_source(cls, v):
        if v is None:
            return {}
        if isinstance(v, str):
            return {"name": v}
        return v

    @field_validator("sentiment", mode="before")
    @classmethod
    def numeric_sentiment(cls, v):
        if v is None or isinstance(v, bool):
            return None
        try:
            return float(v)
        except (TypeError, ValueError):
            return None

    @field_validator("sentiment_assessment", mode="before")
    @classmethod
    def known_label(cls, v):
        if isinstance(v, str) and v.lower() in {s.value for s in SentimentLabel}:
            return v.lower()
        return None

    @field_validator("entities", mode="before")
    @classmethod
    def drop_malformed_entities(cls, v):
        if not v:
            return []
        kept = []
        for item in v:
            if isinstance(item, ArticleEntity):
                kept.append(item)
            elif isinstance(item, dict) and isinstance(item.get("name"), str) and item["name"].strip():
                kept.append(item)
            else:
                logger.debug(f"Dropping malformed entity {item!r}")
        return kept

    @field_validator("categories", "countries", mode="before")
    @classmethod
    def clean_tags(cls, v):
        if not v:
            return []
        return [str(x) for x in v if x]

    @property
    def text(self) -> str:
        """Title + description, the text keyword scoring reads."""
        return f"{self.title} {self.description}".strip()
