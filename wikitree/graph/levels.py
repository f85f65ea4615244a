"""
Level assignment by multi-source BFS.

All roots start at level 0 together, so a node's level is its minimum hop
count from any root along the child relation. Nodes no root reaches get no
level and are never candidates for level sampling.
"""

import logging
from collections import deque
from typing import Dict, Iterable, List, Optional

from .models import HierarchyGraph

logger = logging.getLogger(__name__)


def assign_levels(graph: HierarchyGraph, roots: Optional[Iterable[str]] = None) -> Dict[str, int]:
    """
    Compute the Level Map and record each node's level on the graph.

    Args:
        graph: Assembled hierarchy graph
        roots: Root QIDs (defaults to the nodes whose role is root)

    Returns:
        Mapping of QID -> level for every node reachable from a root
    """
    children = graph.children()
    roots = list(graph.roots if roots is None else roots)

    levels: Dict[str, int] = {}
    queue = deque()
    for root in roots:
        if root in graph and root not in levels:
            levels[root] = 0
            queue.append(root)

    while queue:
        current = queue.popleft()
        next_level = levels[current] + 1
        for child in children.get(current, ()):
            if child not in levels:
                levels[child] = next_level
                queue.append(child)

    for node in graph.nodes():
        node.level = levels.get(node.id)

    unreached = len(graph) - len(levels)
    logger.info(
        "Assigned levels to %d nodes (max depth %d, %d unreached)",
        len(levels),
        max(levels.values(), default=0),
        unreached,
    )
    return levels


def nodes_by_level(levels: Dict[str, int]) -> Dict[int, List[str]]:
    """Group a Level Map into level -> QIDs, levels ascending, QIDs in discovery order."""
    grouped: Dict[int, List[str]] = {}
    for qid, level in levels.items():
        grouped.setdefault(level, []).append(qid)
    return dict(sorted(grouped.items()))
