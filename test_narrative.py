"""
Fallback narrative tests — structure, determinism and coverage of the
template text used when generation is unavailable.
Run with pytest, or directly: python test_narrative.py
"""

import sys
import traceback
from datetime import datetime

from storyline.schemas.news import Article
from storyline.schemas.stories import Chapter
from storyline.stories import narrative
from storyline.stories.synthesis import StoryWriter
from storyline.tools.task_queue import TextGenerationQueue

NOW = datetime(2025, 3, 10, 12, 0, 0)


def _article(aid, title, description="", source="Wire", day=10):
    return Article(
        id=aid, title=title, description=description,
        published_at=datetime(2025, 3, day, 9), source={"name": source},
    )


def _chapter(day, summary):
    return Chapter(title=f"Day {day}", summary=summary, published_at=datetime(2025, 3, day))


def test_find_topic_prefers_most_frequent_vocabulary_word():
    items = [
        _article("a1", "Regulators open investigation into merger"),
        _article("a2", "Merger talks stall"),
        _article("a3", "Merger approved"),
    ]
    assert narrative.find_topic(items) == "merger"
    assert narrative.find_topic([_article("a4", "Quiet day at the office")]) is None


def test_chapter_title_carries_date_topic_and_trend_phrase():
    items = [_article("a1", "Product launch draws crowds")]
    title = narrative.chapter_title("ACME Corp", datetime(2025, 3, 5), "worsening", items)
    assert title == "Mar 5, 2025: ACME Corp Launch Faces Challenges"
    plain = narrative.chapter_title("ACME Corp", datetime(2025, 3, 5), "mystery", [])
    assert plain == "Mar 5, 2025: ACME Corp Developments"


def test_chapter_summary_prefers_complete_article():
    items = [
        _article("a1", "Headline only"),
        _article("a2", "Full", "ACME   shipped the new   widget."),
    ]
    assert narrative.chapter_summary("ACME", items) == "ACME shipped the new widget. (covered by 2 articles)"
    assert narrative.chapter_summary("ACME", items[1:]) == "ACME shipped the new widget."
    assert narrative.chapter_summary("ACME", []) == "New coverage of ACME."


def test_chapter_content_groups_by_source():
    items = [
        _article("a1", "t1", "Shares rose sharply.", source="Wire"),
        _article("a2", "t2", "Analysts cheered.", source="Daily"),
        _article("a3", "t3", "Volume doubled.", source="Wire"),
    ]
    content = narrative.chapter_content("ACME", items, NOW)
    paragraphs = content.split("\n\n")
    assert paragraphs[0] == "According to Wire, Shares rose sharply. Volume doubled."
    assert paragraphs[1] == "Daily reports that Analysts cheered."
    assert paragraphs[2].startswith("Coverage of ACME on Mar 10, 2025 came from 2 sources")


def test_story_title_is_deterministic_and_mentions_entity():
    first = narrative.story_title("ACME Corp", "organization", "negative")
    assert first == narrative.story_title("ACME Corp", "organization", "negative")
    assert "ACME Corp" in first
    assert any(p in first for p in narrative.TITLE_PHRASES["negative"])
    assert "  " not in narrative.story_title("Thing", "other", "neutral")


def test_story_summary_counts_and_range():
    text = narrative.story_summary(
        "ACME", "improving", datetime(2025, 3, 8), datetime(2025, 3, 10), 3, 5,
    )
    assert "from Mar 8, 2025 to Mar 10, 2025" in text
    assert "5 articles from 3 sources" in text
    assert narrative.TREND_DESCRIPTIONS["improving"] in text
    single = narrative.story_summary("ACME", "neutral", NOW, NOW, 1, 1)
    assert "on Mar 10, 2025" in single and "1 article from 1 source " in single


def test_story_narrative_walks_chapters_in_date_order():
    chapters = [_chapter(9, "Second."), _chapter(8, "First."), _chapter(10, "Third.")]
    text = narrative.story_narrative("ACME", "neutral", chapters)
    paragraphs = text.split("\n\n")
    assert len(paragraphs) == 5
    assert paragraphs[1] == "The story begins on Mar 8, 2025: First."
    assert paragraphs[2] == "Following these initial developments, on Mar 9, 2025: Second."
    assert paragraphs[3] == "Most recently, on Mar 10, 2025: Third."
    assert paragraphs[4].startswith("Across 3 days of coverage")


def test_predictions_by_trend_and_category():
    preds = narrative.predictions("ACME", "negative", ["Business", "politics"], NOW)
    assert len(preds) == 3
    assert preds[0].confidence == 0.7 and "ACME" in preds[0].content
    assert all(p.created_at == NOW for p in preds)

    neutral = narrative.predictions("ACME", "neutral", [], NOW)
    assert [p.confidence for p in neutral] == [0.8]


def test_writer_without_generator_uses_templates():
    import asyncio

    writer = StoryWriter(TextGenerationQueue(None))
    title = asyncio.run(writer.story_title("ACME Corp", "organization", "neutral", [], 4))
    assert title == narrative.story_title("ACME Corp", "organization", "neutral")
    assert writer.fallbacks == 1 and writer.generated == 0


if __name__ == "__main__":
    print("=" * 70)
    print("NARRATIVE FALLBACK")
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
