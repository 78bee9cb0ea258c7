"""
Trend scoring tests — TF-IDF keywords, entity/category aggregation,
and the upsert / forced-refresh persistence contract.
Run with pytest, or directly: python test_trends.py
"""

import math
import sys
import traceback
from datetime import datetime, timedelta

from storyline.database import Database
from storyline.schemas.base import Timeframe
from storyline.schemas.news import Article, ArticleEntity
from storyline.trends.engine import TrendPipeline
from storyline.trends.entities import EntityTrendAggregator, score_categories
from storyline.trends.keywords import KeywordTrendScorer, tokenize

T0 = datetime(2025, 3, 10, 12, 0, 0)


def make_article(aid, title, description="", hours_ago=1.0, now=T0, **kw):
    return Article(
        id=aid,
        title=title,
        description=description,
        published_at=now - timedelta(hours=hours_ago),
        **kw,
    )


def make_db():
    db = Database("sqlite://")
    db.create_tables()
    return db


class FakeExtractor:
    """Stands in for the spaCy gap-filler; records which articles it saw."""

    def __init__(self, found=None):
        self.found = found or []
        self.seen_ids = []

    def extract_batch(self, articles):
        self.seen_ids.extend(a.id for a in articles)
        return {a.id: [ArticleEntity(**e) for e in self.found] for a in articles}


def make_pipeline(db, now, extractor=None):
    return TrendPipeline(
        db=db,
        keyword_scorer=KeywordTrendScorer(top_n=100, min_articles=2, min_length=3),
        entity_aggregator=EntityTrendAggregator(extractor=extractor or FakeExtractor(), top_n=50, min_articles=2),
        clock=lambda: now,
    )


# ════════════════════════════════════════════════════════════════════
# Keyword scoring
# ════════════════════════════════════════════════════════════════════

def test_tokenize_drops_stopwords_and_short_tokens():
    tokens = tokenize("The AI startup and the quantum chips")
    assert "ai" not in tokens
    assert "the" not in tokens and "and" not in tokens
    assert tokens == ["startup", "quantum", "chips"]


def test_tokenize_keeps_accented_words_whole():
    assert tokenize("Zürich bank Société Générale São Paulo") == [
        "zürich", "bank", "société", "générale", "são", "paulo",
    ]
    assert tokenize("Ünal meets Øresund officials") == ["ünal", "meets", "øresund", "officials"]


def test_keyword_tfidf_score_and_article_filter():
    articles = [
        make_article("a1", "Quantum computing breakthrough", "Quantum chips scale AI"),
        make_article("a2", "Quantum startup raises funds", "AI"),
        make_article("a3", "Football final tonight"),
    ]
    trends = KeywordTrendScorer(top_n=100, min_articles=2).score(articles, Timeframe.DAILY)

    assert [t.keyword for t in trends] == ["quantum"], [t.keyword for t in trends]
    quantum = trends[0]
    assert abs(quantum.score - round(3 * math.log(3 / 2), 6)) < 1e-6, quantum.score
    assert quantum.count == 2
    assert quantum.articles == ["a1", "a2"]
    assert quantum.entity_type == "keyword"
    assert quantum.timeframe == "daily"


def test_keyword_order_is_score_then_count_then_name():
    articles = [
        make_article("d1", "alpha beta"),
        make_article("d2", "alpha beta beta"),
        make_article("d3", "gamma"),
        make_article("d4", "gamma delta"),
    ]
    trends = KeywordTrendScorer(top_n=100, min_articles=2).score(articles, Timeframe.DAILY)
    assert [t.keyword for t in trends] == ["beta", "alpha", "gamma"]


def test_keyword_top_n_cut():
    articles = [make_article(f"n{i}", "alpha beta gamma delta") for i in range(3)]
    articles.append(make_article("other", "unrelated words here"))
    trends = KeywordTrendScorer(top_n=2, min_articles=2).score(articles, Timeframe.DAILY)
    assert len(trends) == 2


def test_keyword_sentiment_and_distributions():
    articles = [
        make_article("s1", "Election results", categories=["politics"], countries=["us"],
                     source={"name": "Wire"}, sentiment=0.4, sentiment_assessment="positive"),
        make_article("s2", "Election recount", categories=["politics"], countries=["us"],
                     source={"name": "Daily"}, sentiment=-0.2, sentiment_assessment="negative"),
        make_article("s3", "Election night", categories=["world"], countries=["uk"],
                     source={"name": "Wire"}),
    ]
    trend = KeywordTrendScorer(top_n=100, min_articles=2).score(articles, Timeframe.DAILY)[0]
    assert trend.keyword == "election"
    assert trend.categories == ["politics", "world"]
    assert [(s.name, s.count) for s in trend.sources] == [("Wire", 2), ("Daily", 1)]
    assert [(c.code, c.count) for c in trend.countries] == [("us", 2), ("uk", 1)]
    assert trend.sentiment.positive_count == 1
    assert trend.sentiment.negative_count == 1
    assert trend.sentiment.neutral_count == 0
    assert abs(trend.sentiment.avg_score - 0.1) < 1e-9


# ════════════════════════════════════════════════════════════════════
# Entity + category aggregation
# ════════════════════════════════════════════════════════════════════

def test_entity_aggregation_weights_and_dedup():
    e1 = make_article("e1", "One", entities=[
        {"name": "ACME Corp", "type": "ORG", "count": 3},
        {"name": "acme corp", "type": "organization", "count": 5},
        {"name": "Lonely Person", "type": "person"},
        {"name": "Gizmo", "type": "widget", "count": 9},
        {"name": "Springfield", "type": "city"},
    ])
    e2 = make_article("e2", "Two", entities=[
        {"name": "ACME Corp", "type": "ORG", "count": 3},
        {"name": "Springfield", "type": "city"},
    ])
    e3 = make_article("e3", "Three")
    extractor = FakeExtractor(found=[{"name": "ACME Corp", "type": "organization", "count": 1}])

    trends = EntityTrendAggregator(extractor=extractor, top_n=50, min_articles=2).score(
        [e1, e2, e3], Timeframe.WEEKLY,
    )
    by_key = {(t.entity_type, t.keyword.lower()): t for t in trends}

    acme = by_key[("organization", "acme corp")]
    assert acme.keyword == "acme corp"
    assert acme.count == 7, acme.count
    assert acme.articles == ["e1", "e2", "e3"]
    assert by_key[("city", "springfield")].count == 2
    assert ("person", "lonely person") not in by_key
    assert all(t.entity_type != "other" for t in trends)
    # NER gap-filler only ran on the article without entities
    assert extractor.seen_ids == ["e3"]


def test_entity_top_n_per_type():
    articles = [
        make_article(f"p{i}", "x", entities=[{"name": f"Person {j}", "type": "person"} for j in range(4)])
        for i in range(2)
    ]
    trends = EntityTrendAggregator(extractor=FakeExtractor(), top_n=3, min_articles=2).score(
        articles, Timeframe.DAILY,
    )
    assert len([t for t in trends if t.entity_type == "person"]) == 3


def test_category_trends_count_once_per_article():
    articles = [
        make_article("c1", "x", categories=["Tech", "tech", "Business"]),
        make_article("c2", "y", categories=["tech"]),
    ]
    trends = score_categories(articles, Timeframe.DAILY)
    by_name = {t.keyword.lower(): t for t in trends}
    assert by_name["tech"].count == 2
    assert by_name["business"].count == 1
    assert all(t.entity_type == "category" for t in trends)


def test_entity_and_category_rows_are_keyed_by_normalized_name():
    db = make_db()
    db.save_articles([
        make_article("x1", "Quarterly report", hours_ago=5, categories=["business"],
                     entities=[{"name": "ACME Corp", "type": "ORG"}]),
        make_article("x2", "Shares climb", hours_ago=4, categories=["Business"],
                     entities=[{"name": "ACME Corp", "type": "ORG"}]),
    ])
    make_pipeline(db, T0).run(Timeframe.DAILY)

    # Newest article (read first) spells both differently
    db.save_articles([
        make_article("x3", "New plant", hours_ago=1, categories=["BUSINESS"],
                     entities=[{"name": "Acme Corp", "type": "organization"}]),
    ])
    make_pipeline(db, T0).run(Timeframe.DAILY)

    orgs = db.get_trends(timeframe="daily", entity_type="organization", limit=100)
    assert [(t.keyword, t.count) for t in orgs] == [("acme corp", 3)]
    assert sorted(orgs[0].articles) == ["x1", "x2", "x3"]
    cats = db.get_trends(timeframe="daily", entity_type="category", limit=100)
    assert [(t.keyword, t.count) for t in cats] == [("business", 3)]


# ════════════════════════════════════════════════════════════════════
# Persistence contract
# ════════════════════════════════════════════════════════════════════

def _seed_quantum(db):
    db.save_articles([
        make_article("q1", "Quantum leap", hours_ago=20),
        make_article("q2", "Quantum chips", hours_ago=2),
        make_article("q3", "Quantum market", hours_ago=1),
        make_article("f1", "Football final", hours_ago=3),
    ])


def _quantum(db, timeframe="daily"):
    found = [t for t in db.get_trends(timeframe=timeframe, entity_type="keyword", limit=100)
             if t.keyword == "quantum"]
    assert len(found) == 1
    return found[0]


def test_keyword_run_is_idempotent_without_force_refresh():
    db = make_db()
    _seed_quantum(db)
    pipeline = make_pipeline(db, T0)

    pipeline.run(Timeframe.DAILY)
    first = _quantum(db)
    pipeline.run(Timeframe.DAILY)
    second = _quantum(db)

    assert first.score == second.score
    assert first.count == second.count
    assert sorted(first.articles) == sorted(second.articles) == ["q1", "q2", "q3"]


def test_upsert_unions_articles_and_keeps_first_seen():
    db = make_db()
    _seed_quantum(db)
    make_pipeline(db, T0).run(Timeframe.DAILY)

    t1 = T0 + timedelta(hours=6)
    db.save_articles([make_article("q4", "Quantum funding", hours_ago=-1)])
    make_pipeline(db, t1).run(Timeframe.DAILY)

    trend = _quantum(db)
    assert sorted(trend.articles) == ["q1", "q2", "q3", "q4"]  # q1 left the window but stays
    assert trend.count == 3  # counts are overwritten from the new window
    assert trend.first_seen_at == T0
    assert trend.last_seen_at == t1


def test_force_refresh_replaces_the_timeframe():
    db = make_db()
    _seed_quantum(db)
    make_pipeline(db, T0).run(Timeframe.DAILY)
    make_pipeline(db, T0).run(Timeframe.WEEKLY)

    t1 = T0 + timedelta(hours=6)
    db.save_articles([make_article("q4", "Quantum funding", hours_ago=-1)])
    result = make_pipeline(db, t1).run(Timeframe.DAILY, force_refresh=True)

    assert result.force_refresh and not result.errors
    trend = _quantum(db)
    assert sorted(trend.articles) == ["q2", "q3", "q4"]
    assert trend.first_seen_at == t1
    # Other timeframes are untouched
    assert sorted(_quantum(db, "weekly").articles) == ["q1", "q2", "q3"]


def test_failed_stage_downgrades_force_refresh():
    class BrokenAggregator:
        def score(self, articles, timeframe):
            raise RuntimeError("ner exploded")

    db = make_db()
    _seed_quantum(db)
    make_pipeline(db, T0).run(Timeframe.DAILY)

    pipeline = make_pipeline(db, T0 + timedelta(hours=6))
    pipeline.entity_aggregator = BrokenAggregator()
    result = pipeline.run(Timeframe.DAILY, force_refresh=True)

    assert result.errors and "entity" in result.errors[0]
    # Union kept: the forced swap did not happen
    assert "q1" in _quantum(db).articles


def test_get_trends_filters_and_orders_by_count():
    db = make_db()
    db.save_articles([
        make_article("g1", "Budget vote", categories=["politics"], countries=["us"]),
        make_article("g2", "Budget talks", categories=["politics"], countries=["us"]),
        make_article("g3", "Budget plan", categories=["business"], countries=["uk"]),
        make_article("g4", "Vote count", categories=["politics"], countries=["uk"]),
    ])
    make_pipeline(db, T0).run(Timeframe.DAILY)

    keywords = db.get_trends(timeframe="daily", entity_type="keyword")
    counts = [t.count for t in keywords]
    assert counts == sorted(counts, reverse=True)
    assert keywords[0].keyword == "budget"

    uk_only = db.get_trends(timeframe="daily", entity_type="keyword", country="uk")
    assert {t.keyword for t in uk_only} == {"budget", "vote"}
    business = db.get_trends(timeframe="daily", entity_type="keyword", category="business")
    assert [t.keyword for t in business] == ["budget"]


if __name__ == "__main__":
    print("=" * 70)
    print("TREND SCORING")
    print("=" * 70)
    failed = 0
    for name, fn in list(globals().items()):
        if name.startswith("test_") and callable(fn):
            try:
                fn()
                print(f"  PASS  {name}")
            except Exception as e:
                failed += 1
                print(f"  FAIL  {name}: {e}")
                traceback.print_exc()
    sys.exit(1 if failed else 0)
