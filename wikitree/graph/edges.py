"""
Edge materialization and label finalization.

Edges are re-derived from the surviving entities' own claims (plus the
`inferred` edges that hold unresolved nodes in place), so nothing that points
outside the final node set can reach the render contract. Node labels
get a "shown/total" children suffix so the UI can show how hard a branch was
sampled.
"""

import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .models import (
    INFERRED_RELATION,
    STATUS_CONNECTED,
    STATUS_DISCONNECTED,
    STATUS_UNRESOLVED,
    HierarchyGraph,
    RenderEdge,
    RenderGraph,
    RenderNode,
)

logger = logging.getLogger(__name__)


def materialize_edges(graph: HierarchyGraph, relation_labels: Optional[Dict[str, str]] = None) -> List[RenderEdge]:
    """Build de-duplicated parent -> child edges among the nodes of `graph`."""
    relation_labels = relation_labels or {}
    seen: Set[Tuple[str, str, str]] = set()
    edges: List[RenderEdge] = []
    claimed = [
        (parent, node.id, relation)
        for node in graph.nodes()
        for relation, parent in node.entity.hierarchy_claims()
    ]
    inferred = [edge for edge in graph.edges() if edge[2] == INFERRED_RELATION]
    for key in claimed + inferred:
        parent, child, relation = key
        if parent == child or parent not in graph or child not in graph or key in seen:
            continue
        seen.add(key)
        edges.append(
            RenderEdge(
                source=parent,
                target=child,
                relation=relation,
                relation_label=relation_labels.get(relation, relation),
            )
        )
    return edges


def final_label(label: str, shown: int, total: int) -> str:
    if total <= 0:
        return label
    return f"{label}\n({shown}/{total})"


def materialize(
    graph: HierarchyGraph,
    full_children: Dict[str, List[str]],
    relation_labels: Optional[Dict[str, str]] = None,
    disconnected: Iterable[str] = (),
) -> RenderGraph:
    """
    Produce the render contract for a pruned graph.

    Args:
        graph: Final (repaired and pruned) graph
        full_children: ChildrenMap of the assembled graph, for the label totals
        relation_labels: PID -> human label for edge captions
        disconnected: Highlights that could not be connected to a root
    """
    disconnected = set(disconnected)
    edges = materialize_edges(graph, relation_labels)

    nodes: List[RenderNode] = []
    for node in graph.nodes():
        if node.id in disconnected:
            status = STATUS_DISCONNECTED
        elif not node.entity.is_resolved:
            status = STATUS_UNRESOLVED
        else:
            status = STATUS_CONNECTED
        children = full_children.get(node.id, [])
        shown = sum(1 for c in children if c in graph)
        nodes.append(
            RenderNode(
                id=node.id,
                label=final_label(node.display_label, shown, len(children)),
                role=node.role,
                sampled_at_level=node.sampled_at_level,
                level=node.level,
                image=node.entity.image_url,
                status=status,
            )
        )

    logger.info("Materialized %d nodes and %d edges", len(nodes), len(edges))
    return RenderGraph(
        nodes=nodes,
        edges=edges,
        disconnected_highlights=sorted(q for q in disconnected if q in graph),
    )
