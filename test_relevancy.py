"""
Relevancy scorer tests — formula, recency decay, rounding and the
store-wide rescoring pass.
Run with pytest, or directly: python test_relevancy.py
"""

import sys
import traceback
from datetime import datetime, timedelta

from storyline.database import Database
from storyline.schemas.stories import Chapter, Story, StoryEntity
from storyline.stories.relevancy import relevancy_score, rescore_ongoing_stories

NOW = datetime(2025, 3, 10, 12, 0, 0)


def make_story(articles=4, related=0, views=0, updated_hours_ago=0, name="ACME Corp"):
    chapter = Chapter(
        title="Day one",
        articles=[f"a{i}" for i in range(articles)],
        published_at=NOW - timedelta(days=1),
    )
    return Story(
        title=f"{name} story",
        chapters=[chapter],
        entities=[StoryEntity(name=name, type="organization", importance=10)],
        related_stories=[f"r{i}" for i in range(related)],
        view_count=views,
        updated_at=NOW - timedelta(hours=updated_hours_ago),
    )


def test_fresh_story_formula():
    # 5*4 + 100/1 + 10*2 + 7
    assert relevancy_score(make_story(articles=4, related=2, views=7), NOW) == 147


def test_recency_decays_by_whole_days():
    assert relevancy_score(make_story(articles=0, updated_hours_ago=47), NOW) == 100
    assert relevancy_score(make_story(articles=0, updated_hours_ago=48), NOW) == 50
    assert relevancy_score(make_story(articles=0, updated_hours_ago=24 * 6), NOW) == 17


def test_half_up_rounding():
    # 100/8 = 12.5 rounds up, not to even
    assert relevancy_score(make_story(articles=0, updated_hours_ago=24 * 8), NOW) == 13


def test_more_articles_related_or_views_never_lower_the_score():
    base = relevancy_score(make_story(), NOW)
    assert relevancy_score(make_story(articles=5), NOW) > base
    assert relevancy_score(make_story(related=1), NOW) > base
    assert relevancy_score(make_story(views=1), NOW) > base


def test_duplicate_article_ids_across_chapters_both_count():
    story = make_story(articles=2)
    story.chapters.append(Chapter(title="Day two", articles=["a0"], published_at=NOW))
    assert relevancy_score(story, NOW) == 5 * 3 + 100


def test_rescore_writes_only_the_score():
    db = Database("sqlite://")
    db.create_tables()
    one = make_story(name="ACME Corp", updated_hours_ago=3)
    two = make_story(name="Beta Inc", articles=1)
    db.save_story(one)
    db.save_story(two)

    assert rescore_ongoing_stories(db, NOW) == 2
    assert rescore_ongoing_stories(db, NOW) == 2

    top = db.get_top_stories()
    assert [s.id for s in top] == [one.id, two.id]
    assert top[0].relevancy_score == 120
    assert top[0].updated_at == one.updated_at
    assert top[1].relevancy_score == 105


if __name__ == "__main__":
    print("=" * 70)
    print("RELEVANCY")
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
