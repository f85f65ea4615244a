"""
Graph data structures for the hierarchy pipeline.

`HierarchyGraph` owns a networkx MultiDiGraph whose edges run parent -> child
(superclass -> subclass, class -> instance) keyed by the relation PID, so a
(source, target, relation) triple can only exist once. Stages never delete from
a graph they are iterating; `restrict_to` returns a new, reduced graph instead.

The render models at the bottom are the output contract consumed by the API
and any external graph-drawing component.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

import networkx as nx
from pydantic import BaseModel

from wikitree.ingestion.entities import Entity

ROLE_ROOT = "root"
ROLE_HIGHLIGHT = "highlight"
ROLE_NONE = "none"

STATUS_CONNECTED = "connected"
STATUS_DISCONNECTED = "disconnected"
STATUS_UNRESOLVED = "unresolved"

# Edge key for bare nodes attached to the root whose query found them
INFERRED_RELATION = "inferred"


@dataclass
class Node:
    """Graph-side wrapper around an Entity."""

    entity: Entity
    role: str = ROLE_NONE
    level: Optional[int] = None
    sampled_at_level: bool = False

    @property
    def id(self) -> str:
        return self.entity.qid

    @property
    def display_label(self) -> str:
        return self.entity.label or self.entity.qid


class HierarchyGraph:
    """Directed hierarchy graph with read-only parent/child indices."""

    def __init__(self, graph: Optional[nx.MultiDiGraph] = None):
        self.graph = graph if graph is not None else nx.MultiDiGraph()
        self._children: Optional[Dict[str, List[str]]] = None
        self._parents: Optional[Dict[str, List[str]]] = None

    def __contains__(self, qid: object) -> bool:
        return qid in self.graph

    def __len__(self) -> int:
        return self.graph.number_of_nodes()

    def __iter__(self) -> Iterator[str]:
        return iter(self.graph.nodes)

    def add_node(self, entity: Entity, role: str = ROLE_NONE) -> Node:
        node = Node(entity=entity, role=role)
        self.graph.add_node(entity.qid, node=node)
        self._invalidate()
        return node

    def add_edge(self, parent: str, child: str, relation: str) -> bool:
        """Add parent -> child; ignored (False) if an endpoint is missing or it is a self-loop."""
        if parent == child or parent not in self.graph or child not in self.graph:
            return False
        if self.graph.has_edge(parent, child, key=relation):
            return False
        self.graph.add_edge(parent, child, key=relation, relation=relation)
        self._invalidate()
        return True

    def _invalidate(self) -> None:
        self._children = None
        self._parents = None

    def node(self, qid: str) -> Node:
        return self.graph.nodes[qid]["node"]

    def nodes(self) -> Iterator[Node]:
        for _, data in self.graph.nodes(data="node"):
            yield data

    def edges(self) -> Iterator[Tuple[str, str, str]]:
        """Yield (source, target, relation) triples."""
        for source, target, relation in self.graph.edges(keys=True):
            yield source, target, relation

    def children(self) -> Dict[str, List[str]]:
        """ChildrenMap: qid -> ordered, de-duplicated child qids."""
        if self._children is None:
            self._children = {n: list(self.graph.successors(n)) for n in self.graph.nodes}
        return self._children

    def parents(self) -> Dict[str, List[str]]:
        """ParentMap: qid -> ordered, de-duplicated parent qids."""
        if self._parents is None:
            self._parents = {n: list(self.graph.predecessors(n)) for n in self.graph.nodes}
        return self._parents

    def ids_with_role(self, *roles: str) -> List[str]:
        return [node.id for node in self.nodes() if node.role in roles]

    @property
    def roots(self) -> List[str]:
        return self.ids_with_role(ROLE_ROOT)

    @property
    def highlights(self) -> List[str]:
        return self.ids_with_role(ROLE_HIGHLIGHT)

    def restrict_to(self, keep: Iterable[str]) -> "HierarchyGraph":
        """Return a new graph holding only `keep` (and the edges among them)."""
        keep_set: Set[str] = {q for q in keep if q in self.graph}
        reduced = nx.MultiDiGraph()
        for qid in self.graph.nodes:
            if qid in keep_set:
                reduced.add_node(qid, node=replace(self.node(qid)))
        for source, target, relation in self.graph.edges(keys=True):
            if source in keep_set and target in keep_set:
                reduced.add_edge(source, target, key=relation, relation=relation)
        return HierarchyGraph(reduced)

    def undirected_components(self) -> List[Set[str]]:
        return [set(c) for c in nx.connected_components(self.graph.to_undirected(as_view=True))]


class RenderNode(BaseModel):
    """A node of the render contract."""

    id: str
    label: str
    role: str = ROLE_NONE
    sampled_at_level: bool = False
    level: Optional[int] = None
    image: Optional[str] = None
    status: str = STATUS_CONNECTED


class RenderEdge(BaseModel):
    """An edge of the render contract (source is the parent)."""

    source: str
    target: str
    relation: str
    relation_label: str


class RenderGraph(BaseModel):
    """Render-ready node/edge lists plus run metadata."""

    nodes: List[RenderNode] = []
    edges: List[RenderEdge] = []
    disconnected_highlights: List[str] = []
    stats: Dict[str, int] = {}
    generation: int = 0
    stale: bool = False
