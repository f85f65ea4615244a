"""
Connectivity repair after level sampling.

Sampling drops nodes level by level, which can cut kept nodes off from their
roots. The repairer rebuilds the set of nodes that must survive:

1. every root and highlight;
2. every ancestor of a sampled node, walking up until territory that was
   already walked is hit (a highlight seeded in step 1 is climbed through);
3. a shortest stitching path (over parents and children, bounded depth) from
   each still-unconnected highlight to the nearest node that reaches a root;
4. children reached from roots/highlights that are sampled, kept or
   highlighted.

All traversals read the adjacency of the fully assembled graph.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from .models import HierarchyGraph

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_DEPTH = 15


@dataclass
class RepairResult:
    keep: Set[str] = field(default_factory=set)
    disconnected_highlights: List[str] = field(default_factory=list)
    # highlight -> path (highlight first) used to stitch it in
    stitched: Dict[str, List[str]] = field(default_factory=dict)


def _walk_up(start: str, parents: Dict[str, List[str]], must_keep: Set[str], walked: Set[str]) -> None:
    """
    Add every ancestor of `start` to `must_keep`.

    Expansion stops only at nodes in `walked`, whose ancestors are already kept.
    Being in `must_keep` is not enough: a seeded highlight still needs its own
    ancestors walked.
    """
    if start in walked:
        return
    walked.add(start)
    queue = deque([start])
    while queue:
        current = queue.popleft()
        for parent in parents.get(current, ()):
            if parent in walked:
                continue
            walked.add(parent)
            must_keep.add(parent)
            queue.append(parent)


def _reachable(
    sources: Iterable[str],
    allowed: Set[str],
    parents: Dict[str, List[str]],
    children: Dict[str, List[str]],
) -> Set[str]:
    """Undirected reachability from `sources`, staying inside `allowed`."""
    reached = {s for s in sources if s in allowed}
    queue = deque(reached)
    while queue:
        current = queue.popleft()
        for neighbour in (*parents.get(current, ()), *children.get(current, ())):
            if neighbour in allowed and neighbour not in reached:
                reached.add(neighbour)
                queue.append(neighbour)
    return reached


def find_stitch_path(
    start: str,
    targets: Set[str],
    parents: Dict[str, List[str]],
    children: Dict[str, List[str]],
    max_depth: int = DEFAULT_SEARCH_DEPTH,
) -> Optional[List[str]]:
    """
    Bounded BFS over both directions from `start` to the nearest node in
    `targets`.

    Returns the path from `start` to the target (both included), or None when
    no target lies within `max_depth` hops.
    """
    came_from: Dict[str, Optional[str]] = {start: None}
    frontier = [start]
    for _ in range(max_depth):
        next_frontier: List[str] = []
        for current in frontier:
            for neighbour in (*parents.get(current, ()), *children.get(current, ())):
                if neighbour in came_from:
                    continue
                came_from[neighbour] = current
                if neighbour in targets:
                    path = [neighbour]
                    while came_from[path[-1]] is not None:
                        path.append(came_from[path[-1]])
                    path.reverse()
                    return path
                next_frontier.append(neighbour)
        if not next_frontier:
            break
        frontier = next_frontier
    return None


def repair_connectivity(
    graph: HierarchyGraph,
    sampled: Set[str],
    max_depth: int = DEFAULT_SEARCH_DEPTH,
) -> RepairResult:
    """
    Compute the node set that keeps every sampled node, root and highlight
    connected.

    Args:
        graph: The fully assembled graph (levels and roles set)
        sampled: Nodes kept by the level sampler
        max_depth: Hop ceiling for highlight stitching

    Returns:
        RepairResult with the nodes to keep and any highlights left isolated
    """
    parents = graph.parents()
    children = graph.children()
    roots = graph.roots
    highlights = graph.highlights
    highlight_set = set(highlights)
    result = RepairResult()

    root_set = set(roots)
    must_keep: Set[str] = root_set | highlight_set

    walked: Set[str] = set()
    for qid in sampled:
        _walk_up(qid, parents, must_keep, walked)

    # Only territory that reaches a root can anchor a stitch
    connected = _reachable(roots, must_keep | sampled, parents, children)
    for highlight in highlights:
        if highlight in connected:
            continue
        path = find_stitch_path(highlight, (root_set | connected) - {highlight}, parents, children, max_depth)
        joined = set()
        if path is not None:
            joined = _reachable(path, must_keep | sampled | set(path), parents, children)
        if not joined & root_set:
            logger.warning(
                "Highlight %s has no path to a root within %d hops; keeping it isolated",
                highlight,
                max_depth,
            )
            result.disconnected_highlights.append(highlight)
            continue
        must_keep.update(path)
        result.stitched[highlight] = path
        connected |= joined
        logger.debug("Stitched highlight %s via %d-hop path", highlight, len(path) - 1)

    queue = deque(q for q in (*roots, *highlights) if q in graph)
    visited = set(queue)
    while queue:
        current = queue.popleft()
        for child in children.get(current, ()):
            if child in visited:
                continue
            if child in sampled or child in must_keep or child in highlight_set:
                must_keep.add(child)
                visited.add(child)
                queue.append(child)

    result.keep = must_keep
    logger.info(
        "Connectivity repair keeps %d of %d nodes (%d sampled, %d highlights stitched, %d isolated)",
        len(must_keep),
        len(graph),
        len(sampled),
        len(result.stitched),
        len(result.disconnected_highlights),
    )
    return result
