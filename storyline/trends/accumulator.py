"""
Shared aggregate for one trend term.

Keyword, entity and category trends all collect the same shape per term:
a weighted count, an optional TF-IDF score, the distinct contributing
articles, how often each category/source/country co-occurs, and a
sentiment aggregate counted once per distinct article.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Set

from ..schemas.news import Article
from ..schemas.trends import CountryCount, SourceCount, Trend, TrendSentiment


@dataclass
class TermStats:
    """Running aggregate for one term."""
    term: str
    count: int = 0
    score: float = 0.0
    article_ids: List[str] = field(default_factory=list)
    categories: Counter = field(default_factory=Counter)
    sources: Counter = field(default_factory=Counter)
    countries: Counter = field(default_factory=Counter)
    positive: int = 0
    neutral: int = 0
    negative: int = 0
    sentiment_sum: float = 0.0
    sentiment_n: int = 0
    _seen: Set[str] = field(default_factory=set, repr=False)

    @property
    def article_count(self) -> int:
        return len(self.article_ids)

    def add(self, article: Article, weight: int = 1, score: float = 0.0) -> None:
        """Fold one article's contribution into this term."""
        self.count += weight
        self.score += score

        for cat in article.categories:
            self.categories[cat] += 1
        if article.source.name:
            self.sources[article.source.name] += 1
        for code in article.countries:
            self.countries[code] += 1

        if article.id in self._seen:
            return
        self._seen.add(article.id)
        self.article_ids.append(article.id)

        label = article.sentiment_assessment
        if label == "positive":
            self.positive += 1
        elif label == "negative":
            self.negative += 1
        elif label == "neutral":
            self.neutral += 1
        if article.sentiment is not None:
            self.sentiment_sum += article.sentiment
            self.sentiment_n += 1

    def to_trend(self, entity_type: str, timeframe: str, with_score: bool = False) -> Trend:
        avg = self.sentiment_sum / self.sentiment_n if self.sentiment_n else 0.0
        return Trend(
            keyword=self.term,
            entity_type=entity_type,
            timeframe=timeframe,
            count=self.count,
            score=round(self.score, 6) if with_score else 0.0,
            categories=[c for c, _ in _ranked(self.categories)],
            sources=[SourceCount(name=n, count=c) for n, c in _ranked(self.sources)],
            countries=[CountryCount(code=k, count=c) for k, c in _ranked(self.countries)],
            sentiment=TrendSentiment(
                positive_count=self.positive,
                neutral_count=self.neutral,
                negative_count=self.negative,
                avg_score=round(avg, 6),
            ),
            articles=list(self.article_ids),
        )


def _ranked(counter: Counter) -> List[tuple]:
    # Frequency desc, then name for a stable order across runs
    return sorted(counter.items(), key=lambda kv: (-kv[1], kv[0]))


class TrendAccumulator:
    """term → TermStats, created on first touch."""

    def __init__(self):
        self._terms: Dict[str, TermStats] = {}

    def add(
        self, key: str, article: Article, weight: int = 1, score: float = 0.0,
    ) -> None:
        """Fold a contribution into ``key``, which is also the persisted trend name."""
        stats = self._terms.get(key)
        if stats is None:
            stats = self._terms[key] = TermStats(term=key)
        stats.add(article, weight=weight, score=score)

    def __iter__(self) -> Iterator[TermStats]:
        return iter(self._terms.values())

    def __len__(self) -> int:
        return len(self._terms)

    def get(self, term: str):
        return self._terms.get(term)

    def qualifying(self, min_articles: int) -> List[TermStats]:
        """Terms seen in at least min_articles distinct articles."""
        return [s for s in self._terms.values() if s.article_count >= min_articles]
