"""
Keyword trend scoring — TF-IDF over one timeframe's articles.

APPROACH:
  Each article is one document: ``title + " " + description``, lowercased,
  split into word tokens that start with a letter in any script (so
  "Zürich" stays whole), stopwords and tokens of ≤2 characters removed.

  tfidf(term, doc) = tf(term, doc) × log(N / df(term))

    tf  = raw occurrences of the term in the document
    N   = documents in the window
    df  = documents containing the term

  Per term, the window-wide aggregate sums tfidf over documents and counts
  one occurrence per document that contains it. A term found in every
  document scores 0 but can still rank on count.

OUTPUT:
  Terms present in ≥2 distinct articles, ordered by (score desc, count
  desc), top 100.
"""

import logging
import math
import re
from collections import Counter
from typing import Dict, List, Optional

from ..config import get_settings
from ..schemas.base import Timeframe, TrendEntityType
from ..schemas.news import Article
from ..schemas.trends import Trend
from ..shared.stopwords import KEYWORD_STOP
from .accumulator import TrendAccumulator

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"[^\W\d_][^\W_]*")


def tokenize(text: str, min_length: int = 3) -> List[str]:
    """Lowercase word tokens (any script, letter first), stopwords and short tokens removed."""
    if not text:
        return []
    return [
        t for t in _TOKEN_RE.findall(text.lower())
        if len(t) >= min_length and t not in KEYWORD_STOP
    ]


class KeywordTrendScorer:
    """TF-IDF keyword ranking for one window of articles."""

    def __init__(
        self,
        top_n: Optional[int] = None,
        min_articles: Optional[int] = None,
        min_length: Optional[int] = None,
    ):
        settings = get_settings()
        self.top_n = top_n or settings.keyword_top_n
        self.min_articles = min_articles or settings.trend_min_articles
        self.min_length = min_length or settings.keyword_min_length

    def accumulate(self, articles: List[Article]) -> TrendAccumulator:
        """Score every (term, document) pair and fold it into the accumulator."""
        acc = TrendAccumulator()

        docs: Dict[str, Counter] = {}
        order: List[Article] = []
        for article in articles:
            if article.id in docs:
                continue
            docs[article.id] = Counter(tokenize(article.text, self.min_length))
            order.append(article)

        n_docs = len(docs)
        if n_docs == 0:
            return acc

        df: Counter = Counter()
        for tf in docs.values():
            df.update(tf.keys())

        for article in order:
            tf = docs[article.id]
            for term, freq in tf.items():
                idf = math.log(n_docs / df[term])
                acc.add(term, article, weight=1, score=freq * idf)

        return acc

    def score(self, articles: List[Article], timeframe: Timeframe) -> List[Trend]:
        """Ranked keyword trends for one timeframe."""
        acc = self.accumulate(articles)
        ranked = sorted(
            acc.qualifying(self.min_articles),
            key=lambda s: (-s.score, -s.count, s.term),
        )[:self.top_n]

        tf_value = Timeframe(timeframe).value
        trends = [
            s.to_trend(TrendEntityType.KEYWORD.value, tf_value, with_score=True)
            for s in ranked
        ]
        logger.info(
            f"[{tf_value}] keywords: {len(acc)} terms, "
            f"{len(trends)} kept from {len(articles)} articles"
        )
        return trends
