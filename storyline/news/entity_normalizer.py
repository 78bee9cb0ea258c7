"""
Entity type normalization — the single source of truth for entity types.

Upstream extractors tag entities with ad hoc strings: spaCy labels
("ORG", "GPE"), plurals ("people"), British spellings ("organisation"),
and legacy tags like "city" that some ingesters fold into "location" and
others keep separate. Everything downstream branches on the canonical
type only, never on the raw string.

  normalize_entity_type("ORG")     → organization
  normalize_entity_type("GPE")     → location
  normalize_entity_type("city")    → city
  normalize_entity_type("widget")  → other

DESIGN NOTES:
  - Total function: any input (None, numbers, garbage) maps somewhere.
  - "city" and "country" stay distinct from "location" because both have
    their own trend accumulators.
"""

import logging
import re
from typing import Dict

from ..schemas.base import CanonicalEntityType

logger = logging.getLogger(__name__)

# Maps lowercase raw tag → canonical type.
# Extend this table as new upstream tags are encountered.
TYPE_ALIASES: Dict[str, CanonicalEntityType] = {
    # People
    "person": CanonicalEntityType.PERSON,
    "persons": CanonicalEntityType.PERSON,
    "people": CanonicalEntityType.PERSON,
    "per": CanonicalEntityType.PERSON,
    "individual": CanonicalEntityType.PERSON,
    # Organizations
    "organization": CanonicalEntityType.ORGANIZATION,
    "organisation": CanonicalEntityType.ORGANIZATION,
    "organizations": CanonicalEntityType.ORGANIZATION,
    "organisations": CanonicalEntityType.ORGANIZATION,
    "org": CanonicalEntityType.ORGANIZATION,
    "company": CanonicalEntityType.ORGANIZATION,
    "companies": CanonicalEntityType.ORGANIZATION,
    "corporation": CanonicalEntityType.ORGANIZATION,
    "institution": CanonicalEntityType.ORGANIZATION,
    "agency": CanonicalEntityType.ORGANIZATION,
    # Generic places
    "location": CanonicalEntityType.LOCATION,
    "locations": CanonicalEntityType.LOCATION,
    "loc": CanonicalEntityType.LOCATION,
    "place": CanonicalEntityType.LOCATION,
    "places": CanonicalEntityType.LOCATION,
    "gpe": CanonicalEntityType.LOCATION,
    "fac": CanonicalEntityType.LOCATION,
    "facility": CanonicalEntityType.LOCATION,
    "region": CanonicalEntityType.LOCATION,
    "state": CanonicalEntityType.LOCATION,
    "province": CanonicalEntityType.LOCATION,
    # Cities
    "city": CanonicalEntityType.CITY,
    "cities": CanonicalEntityType.CITY,
    "town": CanonicalEntityType.CITY,
    # Countries
    "country": CanonicalEntityType.COUNTRY,
    "countries": CanonicalEntityType.COUNTRY,
    "nation": CanonicalEntityType.COUNTRY,
    # Events
    "event": CanonicalEntityType.EVENT,
    "events": CanonicalEntityType.EVENT,
    # Explicit other
    "other": CanonicalEntityType.OTHER,
    "misc": CanonicalEntityType.OTHER,
}

_SEPARATORS = re.compile(r"[\s_\-]+")
_WHITESPACE = re.compile(r"\s+")


def normalize_entity_type(raw_type) -> CanonicalEntityType:
    """Map any raw type tag into the closed canonical set. Never raises."""
    if not isinstance(raw_type, str):
        return CanonicalEntityType.OTHER
    key = _SEPARATORS.sub(" ", raw_type).strip().lower()
    return TYPE_ALIASES.get(key, CanonicalEntityType.OTHER)


def clean_entity_name(name) -> str:
    """Collapse whitespace and trim surrounding punctuation from an entity name."""
    if not isinstance(name, str):
        return ""
    return _WHITESPACE.sub(" ", name).strip(" \t.,;:'\"()[]")


def entity_key(name: str, entity_type) -> str:
    """Clustering/lookup key: "{type}:{lowercase name}"."""
    return f"{normalize_entity_type(entity_type).value}:{clean_entity_name(name).lower()}"
