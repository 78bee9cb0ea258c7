"""
Related-story discovery — directed edges between stories of one run.

For each cluster that resolved to a story, its co-mention tally is
filtered to entities that resolved to a story in the same run, ranked by
joint article count, cut to the top N, and each target (other than the
story itself) is unioned into the source's ``related_stories``.

Edges are directed: A → B only records that B ranks in A's own top N.
"""

import logging
from typing import Dict, List

from ..database import Database
from .clustering import EntityCluster

logger = logging.getLogger(__name__)


def plan_relationships(
    clusters: List[EntityCluster],
    registry: Dict[str, str],
    max_related: int = 5,
) -> Dict[str, List[str]]:
    """{source story id: [related story ids]} from this run's clusters.

    ``registry`` maps cluster key → story id for every cluster that
    resolved to a story this run.
    """
    plan: Dict[str, List[str]] = {}
    for cluster in clusters:
        source_id = registry.get(cluster.key)
        if source_id is None:
            continue
        targets = plan.setdefault(source_id, [])
        for key in cluster.related_keys(registry.keys(), limit=max_related):
            target_id = registry[key]
            if target_id != source_id and target_id not in targets:
                targets.append(target_id)
    return {source: targets for source, targets in plan.items() if targets}


def link_related_stories(
    db: Database,
    clusters: List[EntityCluster],
    registry: Dict[str, str],
    max_related: int = 5,
) -> int:
    """Persist this run's relationship edges. Returns edges newly added."""
    added = 0
    for source_id, targets in plan_relationships(clusters, registry, max_related).items():
        try:
            added += db.add_related_stories(source_id, targets)
        except Exception as e:
            logger.warning(f"Could not link related stories for {source_id}: {e}")
    logger.info(f"Relationships: {added} new edges across {len(registry)} stories")
    return added
