"""
StoryWriter — human-readable story text, LLM first, templates always.

Every method returns usable text: it asks the TextGenerationQueue, cleans
the reply, and falls back to ``narrative`` templates when the queue
returns None (disabled, over budget, cooling down, provider error) or the
reply is unusable.

Prompts ask for plain text only. Predictions come back as numbered lines
``N. text | 0.xx`` and are parsed with confidence clamped to [0.5, 0.95].
"""

import logging
import re
from datetime import datetime
from typing import List, Optional

from ..schemas.news import Article
from ..schemas.stories import Chapter, Prediction, TITLE_MAX_CHARS, SUMMARY_MAX_CHARS
from ..shared.helpers import format_display_date, utcnow
from ..tools.llm_service import GenerationOptions
from ..tools.task_queue import TextGenerationQueue
from . import narrative

logger = logging.getLogger(__name__)

TITLE_OPTIONS = GenerationOptions(temperature=0.7, max_tokens=64)
SUMMARY_OPTIONS = GenerationOptions(temperature=0.5, max_tokens=256)
NARRATIVE_OPTIONS = GenerationOptions(temperature=0.7, max_tokens=1024)
PREDICTION_OPTIONS = GenerationOptions(temperature=0.6, max_tokens=300)

MIN_CONFIDENCE = 0.5
MAX_CONFIDENCE = 0.95
MAX_SAMPLE_HEADLINES = 5

_PREDICTION_LINE = re.compile(r"^\s*\d+[.)]\s*(.+?)\s*\|\s*([0-9]*\.?[0-9]+)\s*$")


def _clean_line(text: Optional[str], max_chars: int) -> Optional[str]:
    """First non-empty line, quotes/markdown stripped, or None."""
    if not text:
        return None
    for line in text.splitlines():
        line = line.strip().strip("#*").strip().strip("\"'").strip()
        if line:
            return line[:max_chars]
    return None


def _clean_block(text: Optional[str], max_chars: Optional[int] = None) -> Optional[str]:
    if not text or not text.strip():
        return None
    text = text.strip()
    return text[:max_chars] if max_chars else text


def _headlines(articles: List[Article]) -> str:
    titles = [a.title.strip() for a in articles if a.title.strip()][:MAX_SAMPLE_HEADLINES]
    lines = "\n".join(f"- {t}" for t in titles)
    if len(articles) > MAX_SAMPLE_HEADLINES:
        lines += f"\n- plus {len(articles) - MAX_SAMPLE_HEADLINES} more articles"
    return lines


def parse_predictions(text: Optional[str], now: Optional[datetime] = None, limit: int = 3) -> List[Prediction]:
    """Parse ``N. prediction | 0.xx`` lines; malformed lines are ignored."""
    if not text:
        return []
    now = now or utcnow()
    parsed = []
    for line in text.splitlines():
        match = _PREDICTION_LINE.match(line)
        if not match:
            continue
        content = match.group(1).strip()
        if not content:
            continue
        try:
            confidence = float(match.group(2))
        except ValueError:
            continue
        confidence = min(MAX_CONFIDENCE, max(MIN_CONFIDENCE, confidence))
        parsed.append(Prediction(content=content, confidence=confidence, created_at=now))
        if len(parsed) >= limit:
            break
    return parsed


class StoryWriter:
    """Produces titles, summaries, narratives and predictions for stories."""

    def __init__(self, queue: TextGenerationQueue):
        self.queue = queue
        self.generated = 0
        self.fallbacks = 0

    async def _ask(self, prompt: str, options: GenerationOptions) -> Optional[str]:
        text = await self.queue.submit(prompt, options)
        if text is None:
            self.fallbacks += 1
        else:
            self.generated += 1
        return text

    # ── Chapters ──────────────────────────────────────────────────────

    async def chapter_title(self, entity: str, date: datetime, trend: str, articles: List[Article]) -> str:
        prompt = (
            f"Write a headline (at most 12 words) for the {format_display_date(date)} chapter "
            f"of an ongoing news story about {entity}. Overall sentiment trend: {trend}.\n"
            f"Articles published that day:\n{_headlines(articles)}\n"
            f"Return only the headline."
        )
        title = _clean_line(await self._ask(prompt, TITLE_OPTIONS), TITLE_MAX_CHARS)
        return title or narrative.chapter_title(entity, date, trend, articles)

    async def chapter_summary(self, entity: str, date: datetime, articles: List[Article]) -> str:
        prompt = (
            f"Summarize in 1-2 sentences (at most 50 words) what happened with {entity} "
            f"on {format_display_date(date)}, in a journalistic style.\n"
            f"Articles:\n{_headlines(articles)}\n"
            f"Return only the summary."
        )
        summary = _clean_block(await self._ask(prompt, SUMMARY_OPTIONS), SUMMARY_MAX_CHARS)
        return summary or narrative.chapter_summary(entity, articles)

    # ── Stories ───────────────────────────────────────────────────────

    async def story_title(
        self, entity: str, entity_type: str, trend: str, categories: List[str], article_count: int,
    ) -> str:
        prompt = (
            f"Write an engaging, journalistic headline of 6-12 words for a news story about "
            f"{entity} (a {entity_type}).\n"
            f"Categories: {', '.join(categories) or 'general'}\n"
            f"Sentiment trend: {trend}\n"
            f"Based on {article_count} articles.\n"
            f"Return only the headline."
        )
        title = _clean_line(await self._ask(prompt, TITLE_OPTIONS), TITLE_MAX_CHARS)
        return title or narrative.story_title(entity, entity_type, trend)

    async def story_summary(
        self,
        entity: str,
        trend: str,
        start: datetime,
        end: datetime,
        articles: List[Article],
        source_count: int,
    ) -> str:
        prompt = (
            f"Write a 2-3 sentence summary (at most 75 words) of an evolving news story about {entity}.\n"
            f"Time period: {format_display_date(start)} to {format_display_date(end)}\n"
            f"Articles: {len(articles)} from {source_count} sources\n"
            f"Sentiment trend: {trend}\n"
            f"Sample headlines:\n{_headlines(articles)}\n"
            f"Return only the summary."
        )
        summary = _clean_block(await self._ask(prompt, SUMMARY_OPTIONS), SUMMARY_MAX_CHARS)
        return summary or narrative.story_summary(entity, trend, start, end, source_count, len(articles))

    async def story_narrative(self, entity: str, entity_type: str, trend: str, chapters: List[Chapter]) -> str:
        ordered = sorted(chapters, key=lambda ch: ch.published_at)
        overview = "\n".join(
            f"{format_display_date(ch.published_at)}: {ch.summary or ch.title}" for ch in ordered
        )
        prompt = (
            f"Write a 3-5 paragraph narrative about {entity} (a {entity_type}) from these "
            f"chapter summaries, in date order:\n{overview}\n"
            f"Sentiment trend: {trend}\n"
            f"Open with a strong introduction, connect the events, stay objective. "
            f"Return only the narrative."
        )
        text = _clean_block(await self._ask(prompt, NARRATIVE_OPTIONS))
        return text or narrative.story_narrative(entity, trend, ordered)

    async def predictions(
        self, entity: str, trend: str, categories: List[str], now: Optional[datetime] = None,
    ) -> List[Prediction]:
        now = now or utcnow()
        prompt = (
            f"A news story about {entity} has sentiment trend \"{trend}\" and categories "
            f"\"{', '.join(categories) or 'general'}\". Give 2-3 specific, plausible predictions "
            f"of how it may develop next, each with a confidence between 0.5 and 0.9.\n"
            f"Format each as:\n1. prediction text | 0.7"
        )
        parsed = parse_predictions(await self._ask(prompt, PREDICTION_OPTIONS), now)
        if parsed:
            return parsed
        return narrative.predictions(entity, trend, categories, now)
