"""
storyline — news analytics pipeline.

Turns a stream of ingested articles into two derived products:
  - trend signals: ranked keywords, entities and categories per timeframe
  - stories: persistent, chaptered narratives clustered around one entity
"""

__version__ = "0.1.0"
