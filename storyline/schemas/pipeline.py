"""
Run result models returned by the trend and story pipelines.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ..shared.helpers import utcnow
from .base import Timeframe


class TrendRunResult(BaseModel):
    """Outcome of one trend pass for one timeframe."""
    timeframe: Timeframe
    force_refresh: bool = False
    articles_scanned: int = 0
    keyword_trends: int = 0
    entity_trends: int = 0
    category_trends: int = 0
    errors: List[str] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    class Config:
        use_enum_values = True

    @property
    def total_trends(self) -> int:
        return self.keyword_trends + self.entity_trends + self.category_trends


class StoryRunResult(BaseModel):
    """Outcome of one story clustering pass.

    ``incomplete`` is set when the wall-clock bound stopped the run before
    every significant cluster was processed; what was saved stays saved.
    """
    articles_scanned: int = 0
    clusters_found: int = 0
    clusters_significant: int = 0
    stories_created: int = 0
    stories_extended: int = 0
    clusters_skipped: int = 0
    relationships_added: int = 0
    stories_rescored: int = 0
    errors: List[str] = Field(default_factory=list)
    incomplete: bool = False
    incomplete_reason: str = ""
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
