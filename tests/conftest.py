"""
Pytest configuration and shared fixtures for WikiTree Explorer tests.

This module provides:
- Builders for REST-style entity payloads and Entity objects
- An in-memory fake entity repository (no network)
- A factory for small hierarchy graphs with roles set
"""

import random
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pytest

from wikitree.graph.models import ROLE_HIGHLIGHT, ROLE_NONE, ROLE_ROOT, HierarchyGraph
from wikitree.ingestion.entities import Entity, PropertyInfo
from wikitree.ingestion.queries import ANCESTORS, DESCENDANTS, QueryDescriptor


def item_payload(
    qid: str,
    label: Optional[str] = None,
    subclass_of: Sequence[str] = (),
    instance_of: Sequence[str] = (),
    image: Optional[str] = None,
) -> Dict:
    """Build a Wikibase REST API item payload."""
    statements: Dict[str, List[Dict]] = {}
    if subclass_of:
        statements["P279"] = [{"property": {"id": "P279"}, "value": {"type": "value", "content": q}} for q in subclass_of]
    if instance_of:
        statements["P31"] = [{"property": {"id": "P31"}, "value": {"type": "value", "content": q}} for q in instance_of]
    if image:
        statements["P18"] = [{"property": {"id": "P18"}, "value": {"type": "value", "content": image}}]
    return {
        "id": qid,
        "type": "item",
        "labels": {"en": label or f"label {qid}"},
        "statements": statements,
    }


def make_entity(qid: str, label: Optional[str] = None, subclass_of=(), instance_of=(), image=None) -> Entity:
    return Entity.from_json(qid, item_payload(qid, label, subclass_of, instance_of, image))


class FakeRepository:
    """
    In-memory stand-in for AsyncWikidataClient.

    `parents` maps child QID -> list of (relation, parent QID); query answers
    are derived from it by transitive closure unless given explicitly.
    """

    def __init__(
        self,
        parents: Dict[str, List[Tuple[str, str]]],
        labels: Optional[Dict[str, str]] = None,
        failing: Iterable[str] = (),
        queries: Optional[Dict[Tuple[str, str], List[str]]] = None,
    ):
        self.parents = parents
        self.labels = labels or {}
        self.failing = set(failing)
        self.queries = queries
        self.fetched: List[str] = []
        self.query_calls: List[QueryDescriptor] = []
        self.property_calls: List[str] = []

    def _all_ids(self) -> set:
        ids = set(self.parents)
        for claims in self.parents.values():
            ids.update(p for _, p in claims)
        return ids

    def _closure(self, start: str, step) -> List[str]:
        seen: List[str] = []
        stack = [start]
        while stack:
            current = stack.pop()
            for nxt in step(current):
                if nxt not in seen:
                    seen.append(nxt)
                    stack.append(nxt)
        return seen

    async def run_query(self, descriptor: QueryDescriptor) -> List[str]:
        self.query_calls.append(descriptor)
        if self.queries is not None:
            return list(self.queries.get((descriptor.kind, descriptor.root), []))
        if descriptor.kind == DESCENDANTS:
            children: Dict[str, List[str]] = {}
            for child, claims in self.parents.items():
                for _, parent in claims:
                    children.setdefault(parent, []).append(child)
            return self._closure(descriptor.root, lambda q: children.get(q, []))
        if descriptor.kind == ANCESTORS:
            return self._closure(
                descriptor.root,
                lambda q: [p for rel, p in self.parents.get(q, []) if rel == "P279"],
            )
        return []

    async def fetch_entity(self, qid: str) -> Optional[Entity]:
        self.fetched.append(qid)
        if qid in self.failing or qid not in self._all_ids():
            return None
        claims = self.parents.get(qid, [])
        return make_entity(
            qid,
            self.labels.get(qid),
            subclass_of=[p for rel, p in claims if rel == "P279"],
            instance_of=[p for rel, p in claims if rel == "P31"],
        )

    async def fetch_property(self, pid: str) -> Optional[PropertyInfo]:
        self.property_calls.append(pid)
        return PropertyInfo(pid=pid, label={"P279": "subclass of", "P31": "instance of"}.get(pid, pid))


def build_hierarchy(
    edges: Iterable[Tuple[str, str]],
    roots: Iterable[str] = (),
    highlights: Iterable[str] = (),
    extra_nodes: Iterable[str] = (),
    relation: str = "P279",
) -> HierarchyGraph:
    """Build a HierarchyGraph from (parent, child) pairs with matching entity claims."""
    edges = list(edges)
    parents: Dict[str, List[str]] = {}
    order: List[str] = []
    for parent, child in edges:
        for q in (parent, child):
            if q not in order:
                order.append(q)
        parents.setdefault(child, []).append(parent)
    for q in extra_nodes:
        if q not in order:
            order.append(q)

    roots, highlights = set(roots), set(highlights)
    graph = HierarchyGraph()
    for qid in order:
        role = ROLE_ROOT if qid in roots else ROLE_HIGHLIGHT if qid in highlights else ROLE_NONE
        kwargs = {"subclass_of": parents.get(qid, [])} if relation == "P279" else {"instance_of": parents.get(qid, [])}
        graph.add_node(make_entity(qid, **kwargs), role=role)
    for parent, child in edges:
        graph.add_edge(parent, child, relation)
    return graph


@pytest.fixture
def entity_factory():
    return make_entity


@pytest.fixture
def payload_factory():
    return item_payload


@pytest.fixture
def graph_factory():
    return build_hierarchy


@pytest.fixture
def fake_repository_factory():
    return FakeRepository


@pytest.fixture
def rng():
    """Deterministic random source for sampling."""
    return random.Random(1234)


@pytest.fixture
def chain_repository():
    """Q144 -> Q39367 -> Q9394 subclass chain."""
    return FakeRepository(
        {
            "Q39367": [("P279", "Q144")],
            "Q9394": [("P279", "Q39367")],
        },
        labels={"Q144": "dog", "Q39367": "dog breed", "Q9394": "terrier"},
    )
