"""
Entity handling shared by the trend and story pipelines.

Modules:
- entity_normalizer: raw entity-type strings -> closed canonical set
- entity_extractor: spaCy NER gap-filler for articles without entities
"""
