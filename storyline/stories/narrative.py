"""
Deterministic fallback text for stories and chapters.

Used whenever text generation is off, over budget or failing, so every
story always has a non-empty title, summary, narrative and chapter copy.

Template choice is deterministic: an md5 of the entity name (plus a salt
per slot) indexes the option list, so identical inputs always produce
identical text while different entities still get varied phrasing.
"""

import hashlib
import re
from collections import Counter, OrderedDict
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from ..schemas.base import CanonicalEntityType, SentimentTrend
from ..schemas.news import Article
from ..schemas.stories import Chapter, Prediction
from ..shared.helpers import format_display_date, utcnow
from ..shared.stopwords import THEME_STOP
from .chapters import chapter_date

# ── Vocabularies ──────────────────────────────────────────────────────

TOPIC_VOCABULARY = (
    "announcement", "launch", "release", "policy", "decision",
    "investigation", "regulation", "controversy", "breakthrough",
    "innovation", "crisis", "scandal", "partnership", "agreement",
    "conflict", "lawsuit", "settlement", "acquisition", "merger",
)

CHAPTER_PHRASES: Dict[str, str] = {
    SentimentTrend.IMPROVING.value: "Breakthrough",
    SentimentTrend.WORSENING.value: "Faces Challenges",
    SentimentTrend.POSITIVE.value: "Success Story",
    SentimentTrend.NEGATIVE.value: "Crisis Deepens",
    SentimentTrend.NEUTRAL.value: "Developments",
}

TITLE_PHRASES: Dict[str, Sequence[str]] = {
    SentimentTrend.IMPROVING.value: ("Turning the Corner", "Momentum Builds", "A Story of Recovery"),
    SentimentTrend.WORSENING.value: ("Mounting Pressure", "Troubled Waters", "Under Strain"),
    SentimentTrend.POSITIVE.value: ("Riding High", "A Winning Streak", "Success in Focus"),
    SentimentTrend.NEGATIVE.value: ("Under Fire", "A Deepening Crisis", "Facing the Storm"),
    SentimentTrend.NEUTRAL.value: ("The Latest", "Unfolding Events", "What We Know"),
}

TYPE_PREFIX: Dict[str, str] = {
    CanonicalEntityType.PERSON.value: "The",
    CanonicalEntityType.ORGANIZATION.value: "Inside",
    CanonicalEntityType.LOCATION.value: "From",
    CanonicalEntityType.CITY.value: "From",
    CanonicalEntityType.COUNTRY.value: "From",
}

TITLE_TEMPLATES = (
    "{phrase}: {prefix} {entity} Story",
    "{entity}: {phrase}",
    "{prefix} {entity}: {phrase}",
    "{phrase} for {entity}",
)

TREND_DESCRIPTIONS: Dict[str, str] = {
    SentimentTrend.IMPROVING.value: "as coverage turns steadily more favorable",
    SentimentTrend.WORSENING.value: "as coverage turns increasingly critical",
    SentimentTrend.POSITIVE.value: "amid broadly positive coverage",
    SentimentTrend.NEGATIVE.value: "amid broadly negative coverage",
    SentimentTrend.NEUTRAL.value: "with balanced coverage",
}

SUMMARY_CLOSERS = (
    "Each chapter collects one day of reporting.",
    "The chapters below trace how the coverage developed day by day.",
    "Follow the chapters for the day-by-day account.",
)

NARRATIVE_INTROS: Dict[str, str] = {
    SentimentTrend.IMPROVING.value: "The outlook for {entity} has brightened as this story unfolded.",
    SentimentTrend.WORSENING.value: "The situation around {entity} has grown more difficult as this story unfolded.",
    SentimentTrend.POSITIVE.value: "Coverage of {entity} has been largely upbeat.",
    SentimentTrend.NEGATIVE.value: "Coverage of {entity} has been largely critical.",
    SentimentTrend.NEUTRAL.value: "Here is how the story of {entity} has developed so far.",
}

MIDDLE_TRANSITIONS = (
    "Then, on {date}: {summary}",
    "By {date}, the story had moved on: {summary}",
    "On {date}, further reporting followed: {summary}",
)

TREND_PREDICTIONS: Dict[str, tuple] = {
    SentimentTrend.IMPROVING.value: ("{entity} is likely to see continued positive momentum in upcoming coverage.", 0.7),
    SentimentTrend.WORSENING.value: ("The difficulties facing {entity} may persist before the situation stabilizes.", 0.65),
    SentimentTrend.POSITIVE.value: ("Favorable coverage of {entity} is likely to continue in the near term.", 0.75),
    SentimentTrend.NEGATIVE.value: ("Scrutiny of {entity} is likely to intensify in the coming days.", 0.7),
}

CATEGORY_PREDICTIONS: Dict[str, tuple] = {
    "politics": ("Further political reactions involving {entity} are expected.", 0.6),
    "technology": ("Technical details about {entity} are likely to emerge in follow-up reporting.", 0.65),
    "business": ("Market and industry responses to {entity} are likely to follow.", 0.7),
}

GENERAL_PREDICTION = ("More coverage of {entity} is expected as the story develops.", 0.8)

MAX_PREDICTIONS = 3

_WORD_RE = re.compile(r"[^\W\d_](?:[^\W\d_]|['-])+")


def _pick(options: Sequence[str], seed: str) -> str:
    digest = hashlib.md5(seed.lower().encode("utf-8")).hexdigest()
    return options[int(digest, 16) % len(options)]


def _squash(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def _date_range(start: datetime, end: datetime) -> str:
    if start.date() == end.date():
        return f"on {format_display_date(start)}"
    return f"from {format_display_date(start)} to {format_display_date(end)}"


def find_topic(articles: List[Article]) -> Optional[str]:
    """Most frequent news-topic word across the articles' titles/descriptions."""
    counts: Counter = Counter()
    for article in articles:
        words = set(_WORD_RE.findall(article.text.lower()))
        for topic in TOPIC_VOCABULARY:
            if topic in words:
                counts[topic] += 1
    if not counts:
        return None
    best = max(counts.values())
    return next(t for t in TOPIC_VOCABULARY if counts.get(t) == best)


def top_themes(articles: List[Article], limit: int = 3) -> List[str]:
    """Most frequent content words (longer than 3 chars, not stopwords)."""
    counts: Counter = Counter()
    for article in articles:
        for word in _WORD_RE.findall(article.text.lower()):
            word = word.strip("'-")
            if len(word) > 3 and word not in THEME_STOP:
                counts[word] += 1
    return [w for w, _ in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[:limit]]


def _join(items: List[str]) -> str:
    if len(items) <= 1:
        return "".join(items)
    return ", ".join(items[:-1]) + " and " + items[-1]


# ── Chapters ──────────────────────────────────────────────────────────

def chapter_title(entity: str, date: datetime, trend: str, articles: List[Article]) -> str:
    phrase = CHAPTER_PHRASES.get(trend, CHAPTER_PHRASES[SentimentTrend.NEUTRAL.value])
    topic = find_topic(articles)
    middle = f"{topic.capitalize()} " if topic else ""
    return f"{format_display_date(date)}: {entity} {middle}{phrase}"


def chapter_summary(entity: str, articles: List[Article]) -> str:
    """Best-documented article's description, with a coverage suffix."""
    if not articles:
        return f"New coverage of {entity}."
    complete = [a for a in articles if a.title.strip() and a.description.strip()]
    best = complete[0] if complete else articles[0]
    text = _squash(best.description or best.title) or f"New coverage of {entity}."
    if len(articles) > 1:
        text = f"{text} (covered by {len(articles)} articles)"
    return text


def chapter_content(entity: str, articles: List[Article], now: Optional[datetime] = None) -> str:
    """Source-by-source account of the day plus a closing theme paragraph."""
    by_source: "OrderedDict[str, List[Article]]" = OrderedDict()
    for article in articles:
        by_source.setdefault(article.source.name.strip() or "One report", []).append(article)

    paragraphs = []
    for i, (source, items) in enumerate(by_source.items()):
        lines = [_squash(a.description or a.title) for a in items if (a.description or a.title).strip()]
        if not lines:
            continue
        body = " ".join(lines)
        if i % 2 == 0:
            paragraphs.append(f"According to {source}, {body}")
        else:
            paragraphs.append(f"{source} reports that {body}")

    if articles:
        now = now or utcnow()
        first = chapter_date(articles, now)
        last = max(chapter_date([a], now) for a in articles)
        sources = len(by_source)
        closing = (
            f"Coverage of {entity} {_date_range(first, last)} came from "
            f"{sources} source{'s' if sources != 1 else ''}"
        )
        themes = top_themes(articles)
        if themes:
            closing += f", with recurring themes of {_join(themes)}"
        paragraphs.append(closing + ".")

    return "\n\n".join(paragraphs) or f"New coverage of {entity}."


# ── Stories ───────────────────────────────────────────────────────────

def story_title(entity: str, entity_type: str, trend: str) -> str:
    phrases = TITLE_PHRASES.get(trend, TITLE_PHRASES[SentimentTrend.NEUTRAL.value])
    template = _pick(TITLE_TEMPLATES, f"{entity}|template")
    return _squash(template.format(
        phrase=_pick(phrases, f"{entity}|phrase"),
        prefix=TYPE_PREFIX.get(entity_type, ""),
        entity=entity,
    ))


def story_summary(
    entity: str,
    trend: str,
    start: datetime,
    end: datetime,
    source_count: int,
    article_count: int,
) -> str:
    description = TREND_DESCRIPTIONS.get(trend, TREND_DESCRIPTIONS[SentimentTrend.NEUTRAL.value])
    return (
        f"This evolving story follows {entity} {_date_range(start, end)}, drawing on "
        f"{article_count} article{'s' if article_count != 1 else ''} from "
        f"{source_count} source{'s' if source_count != 1 else ''} {description}. "
        f"{_pick(SUMMARY_CLOSERS, f'{entity}|closer')}"
    )


def story_narrative(entity: str, trend: str, chapters: List[Chapter]) -> str:
    """Intro, one paragraph per chapter in date order, conclusion."""
    intro = NARRATIVE_INTROS.get(trend, NARRATIVE_INTROS[SentimentTrend.NEUTRAL.value])
    paragraphs = [intro.format(entity=entity)]

    ordered = sorted(chapters, key=lambda ch: ch.published_at)
    last = len(ordered) - 1
    for i, chapter in enumerate(ordered):
        date = format_display_date(chapter.published_at)
        summary = chapter.summary or chapter.title
        if i == 0:
            paragraphs.append(f"The story begins on {date}: {summary}")
        elif i == last:
            paragraphs.append(f"Most recently, on {date}: {summary}")
        elif i == 1:
            paragraphs.append(f"Following these initial developments, on {date}: {summary}")
        else:
            paragraphs.append(MIDDLE_TRANSITIONS[i % 3].format(date=date, summary=summary))

    if len(ordered) > 2:
        paragraphs.append(
            f"Across {len(ordered)} days of coverage, the story of {entity} has kept "
            f"developing, and further chapters will follow as new reporting arrives."
        )
    else:
        paragraphs.append(f"The story of {entity} is still taking shape.")
    return "\n\n".join(paragraphs)


def predictions(
    entity: str,
    trend: str,
    categories: List[str],
    now: Optional[datetime] = None,
) -> List[Prediction]:
    """Up to three template predictions: trend, categories, general."""
    now = now or utcnow()
    drafts = []
    if trend in TREND_PREDICTIONS:
        drafts.append(TREND_PREDICTIONS[trend])
    lowered = [c.lower() for c in categories]
    for category, draft in CATEGORY_PREDICTIONS.items():
        if category in lowered:
            drafts.append(draft)
    drafts.append(GENERAL_PREDICTION)
    return [
        Prediction(content=text.format(entity=entity), confidence=confidence, created_at=now)
        for text, confidence in drafts[:MAX_PREDICTIONS]
    ]
