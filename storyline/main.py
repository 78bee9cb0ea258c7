"""
Command-line entry point for the storyline analytics pipeline.

  storyline trends [--timeframe daily|...|all] [--force-refresh]
  storyline stories [--no-llm]
  storyline relevancy
  storyline run [--force-refresh] [--no-llm]

Scheduling is external: cron or a job runner invokes these.
"""

import asyncio
import logging
import sys

from .config import get_settings
from .database import ArticleStoreError, get_database
from .schemas.base import Timeframe
from .stories.engine import run_story_pipeline
from .stories.relevancy import rescore_ongoing_stories
from .trends.engine import TrendPipeline

# Configure logging
logging.basicConfig(
    level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

# Suppress noisy loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


def _run_trends(timeframe: str, force_refresh: bool) -> None:
    pipeline = TrendPipeline()
    if timeframe == "all":
        results = pipeline.run_all(force_refresh=force_refresh)
    else:
        results = [pipeline.run(Timeframe(timeframe), force_refresh=force_refresh)]

    print("\n" + "=" * 60)
    print("TREND RESULTS")
    print("=" * 60)
    for r in results:
        print(
            f"{r.timeframe:<8} articles={r.articles_scanned:<5} keywords={r.keyword_trends:<4} "
            f"entities={r.entity_trends:<4} categories={r.category_trends:<4} errors={len(r.errors)}"
        )
    print("=" * 60 + "\n")


async def _run_stories(use_llm: bool) -> None:
    result = await run_story_pipeline(use_llm=use_llm)

    print("\n" + "=" * 60)
    print("STORY RESULTS")
    print("=" * 60)
    print(f"Articles scanned: {result.articles_scanned}")
    print(f"Clusters: {result.clusters_found} ({result.clusters_significant} significant)")
    print(f"Stories created: {result.stories_created}")
    print(f"Stories extended: {result.stories_extended}")
    print(f"Unchanged: {result.clusters_skipped}")
    print(f"Relationships added: {result.relationships_added}")
    print(f"Stories rescored: {result.stories_rescored}")
    if result.incomplete:
        print(f"\nRUN INCOMPLETE: {result.incomplete_reason}")
    if result.errors:
        print(f"\nErrors: {len(result.errors)}")
        for error in result.errors[:5]:
            print(f"   - {error}")
    print("=" * 60 + "\n")


async def cli_main() -> int:
    """Command-line interface for running the pipeline."""
    import argparse

    parser = argparse.ArgumentParser(description="Storyline news analytics pipeline")
    sub = parser.add_subparsers(dest="command", required=True)

    trends = sub.add_parser("trends", help="Score keyword/entity/category trends")
    trends.add_argument(
        "--timeframe",
        choices=[t.value for t in Timeframe] + ["all"],
        default="all",
        help="Timeframe to score (default: all)"
    )
    trends.add_argument(
        "--force-refresh",
        action="store_true",
        help="Atomically replace the timeframe's trends instead of upserting"
    )

    stories = sub.add_parser("stories", help="Cluster recent articles into stories")
    stories.add_argument("--no-llm", action="store_true", help="Template text only")

    sub.add_parser("relevancy", help="Recompute relevancy for ongoing stories")

    run = sub.add_parser("run", help="Trends for every timeframe, then stories")
    run.add_argument("--force-refresh", action="store_true")
    run.add_argument("--no-llm", action="store_true")

    args = parser.parse_args()

    try:
        if args.command == "trends":
            _run_trends(args.timeframe, args.force_refresh)
        elif args.command == "stories":
            await _run_stories(use_llm=not args.no_llm)
        elif args.command == "relevancy":
            count = rescore_ongoing_stories(get_database())
            print(f"Rescored {count} ongoing stories")
        elif args.command == "run":
            _run_trends("all", args.force_refresh)
            await _run_stories(use_llm=not args.no_llm)
    except ArticleStoreError as e:
        logger.error(f"Run aborted, article store unavailable: {e}")
        return 1
    return 0


def main():
    """Entry point for CLI."""
    sys.exit(asyncio.run(cli_main()))


if __name__ == "__main__":
    main()
