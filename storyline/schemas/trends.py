"""
Trend record models.

A Trend is one ranked term (keyword, named entity or category) for one
timeframe. Records are unique per (keyword, timeframe, entity_type); the
``articles`` id set only grows between full refreshes.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from .base import Timeframe, TrendEntityType


class SourceCount(BaseModel):
    name: str
    count: int = 0


class CountryCount(BaseModel):
    code: str
    count: int = 0


class TrendSentiment(BaseModel):
    """Sentiment aggregate over a trend's distinct articles."""
    positive_count: int = 0
    neutral_count: int = 0
    negative_count: int = 0
    avg_score: float = 0.0


class Trend(BaseModel):
    """One ranked trend record."""
    keyword: str
    entity_type: TrendEntityType
    timeframe: Timeframe
    count: int = 0
    score: float = 0.0  # keyword trends only
    categories: List[str] = Field(default_factory=list)
    sources: List[SourceCount] = Field(default_factory=list)
    countries: List[CountryCount] = Field(default_factory=list)
    sentiment: TrendSentiment = Field(default_factory=TrendSentiment)
    articles: List[str] = Field(default_factory=list)
    first_seen_at: Optional[datetime] = None
    last_seen_at: Optional[datetime] = None

    class Config:
        use_enum_values = True

    @property
    def key(self) -> tuple:
        return (self.keyword, self.timeframe, self.entity_type)
