"""
Entity normalizer tests — canonical types, totality, name cleaning.
Run with pytest, or directly: python test_entity_normalizer.py
"""

import sys
import traceback

from storyline.news.entity_normalizer import clean_entity_name, entity_key, normalize_entity_type
from storyline.schemas.base import CanonicalEntityType


def test_known_synonyms_map_to_canonical_types():
    cases = {
        "person": CanonicalEntityType.PERSON,
        "PERSON": CanonicalEntityType.PERSON,
        "people": CanonicalEntityType.PERSON,
        "ORG": CanonicalEntityType.ORGANIZATION,
        "organisation": CanonicalEntityType.ORGANIZATION,
        "Company": CanonicalEntityType.ORGANIZATION,
        "GPE": CanonicalEntityType.LOCATION,
        "place": CanonicalEntityType.LOCATION,
        "city": CanonicalEntityType.CITY,
        "Town": CanonicalEntityType.CITY,
        "country": CanonicalEntityType.COUNTRY,
        "event": CanonicalEntityType.EVENT,
    }
    for raw, expected in cases.items():
        assert normalize_entity_type(raw) == expected, f"{raw!r} -> {normalize_entity_type(raw)}"


def test_separators_and_whitespace_are_ignored():
    assert normalize_entity_type("  Organization ") == CanonicalEntityType.ORGANIZATION
    assert normalize_entity_type("org_") == CanonicalEntityType.ORGANIZATION


def test_unknown_and_garbage_inputs_map_to_other():
    for raw in ["widget", "", "   ", None, 42, ["person"], {"type": "person"}]:
        assert normalize_entity_type(raw) == CanonicalEntityType.OTHER, raw


def test_normalizer_is_idempotent_on_canonical_values():
    for member in CanonicalEntityType:
        assert normalize_entity_type(member.value) == member


def test_clean_entity_name_keeps_hyphens_and_trims_punctuation():
    assert clean_entity_name("  Coca-Cola   Co. ") == "Coca-Cola Co"
    assert clean_entity_name('"ACME Corp",') == "ACME Corp"
    assert clean_entity_name(None) == ""


def test_entity_key_is_case_insensitive_and_type_normalized():
    assert entity_key("ACME Corp", "ORG") == "organization:acme corp"
    assert entity_key("acme corp", "organization") == entity_key("ACME  Corp", "company")


if __name__ == "__main__":
    print("=" * 70)
    print("ENTITY NORMALIZER")
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
