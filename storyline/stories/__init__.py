"""
Story engine: persistent, chaptered narratives around one dominant entity.

Modules:
- clustering: primary-entity selection, grouping, co-mention tallies
- sentiment: sentiment-trend classification over a cluster
- chapters: calendar-day bucketing with date fallbacks
- narrative: deterministic template text (the fallback writer)
- synthesis: StoryWriter — LLM first, template fallback
- relationships: directed related-story edges
- relevancy: relevancy score batch pass
- engine: StoryPipeline — create/extend orchestration
"""
