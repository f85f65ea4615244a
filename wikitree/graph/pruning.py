"""
Island pruning.

After repair, anything that cannot reach a surviving root or highlight
(treating edges as undirected) is a leftover fragment and is removed.
"""

import logging

from .models import ROLE_HIGHLIGHT, ROLE_ROOT, HierarchyGraph

logger = logging.getLogger(__name__)


def anchored_nodes(graph: HierarchyGraph) -> set:
    """Nodes in a connected component that contains a root or highlight."""
    anchors = set(graph.ids_with_role(ROLE_ROOT, ROLE_HIGHLIGHT))
    reached = set()
    for component in graph.undirected_components():
        if component & anchors:
            reached |= component
    return reached


def prune_islands(graph: HierarchyGraph) -> HierarchyGraph:
    """Return a new graph without components that hold no root or highlight."""
    reached = anchored_nodes(graph)
    removed = len(graph) - len(reached)
    if not removed:
        return graph
    logger.info("Pruned %d island nodes", removed)
    return graph.restrict_to(reached)
