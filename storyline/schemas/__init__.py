"""
Schemas package — all data models for the storyline pipeline.

Models are organized by domain in submodules:
  - base.py: Common enums (entity types, timeframes, sentiment)
  - news.py: Article, ArticleEntity, ArticleSource
  - trends.py: Trend and its distribution value objects
  - stories.py: Story, Chapter, StoryEntity, Prediction, Timeline
  - pipeline.py: Run result models
"""

from storyline.schemas.base import (
    CanonicalEntityType, TrendEntityType, Timeframe, SentimentLabel, SentimentTrend,
)
from storyline.schemas.news import Article, ArticleEntity, ArticleSource
from storyline.schemas.trends import Trend, SourceCount, CountryCount, TrendSentiment
from storyline.schemas.stories import Story, Chapter, StoryEntity, Prediction, Timeline
from storyline.schemas.pipeline import TrendRunResult, StoryRunResult

__all__ = [
    "CanonicalEntityType", "TrendEntityType", "Timeframe", "SentimentLabel", "SentimentTrend",
    "Article", "ArticleEntity", "ArticleSource",
    "Trend", "SourceCount", "CountryCount", "TrendSentiment",
    "Story", "Chapter", "StoryEntity", "Prediction", "Timeline",
    "TrendRunResult", "StoryRunResult",
]
