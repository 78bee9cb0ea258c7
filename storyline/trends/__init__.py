"""
Trend scoring: ranked keywords, entities and categories per timeframe.

Modules:
- accumulator: shared per-term aggregate (counts, articles, distributions, sentiment)
- keywords: TF-IDF keyword trend scorer
- entities: entity trend aggregator (+ category trends)
- engine: TrendPipeline — windowing, orchestration, persistence
"""
