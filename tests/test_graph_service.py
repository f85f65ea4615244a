"""
End-to-end tests for the hierarchy pipeline (wikitree/graph/graph_service.py).
"""

import asyncio
import random

import pytest

from wikitree.common.config import SamplingConfig
from wikitree.graph.graph_service import GraphRequest, HierarchyGraphService, RequestGenerations


def _assert_no_dangling_edges(result):
    ids = {n.id for n in result.nodes}
    for edge in result.edges:
        assert edge.source in ids and edge.target in ids


def _assert_components_anchored(result):
    ids = {n.id for n in result.nodes}
    anchors = {n.id for n in result.nodes if n.role in ("root", "highlight")}
    adjacency = {q: set() for q in ids}
    for edge in result.edges:
        adjacency[edge.source].add(edge.target)
        adjacency[edge.target].add(edge.source)
    reached = set(anchors)
    stack = list(anchors)
    while stack:
        for nxt in adjacency[stack.pop()]:
            if nxt not in reached:
                reached.add(nxt)
                stack.append(nxt)
    assert reached == ids


def _assert_connected_highlights_reach_root(result):
    roots = {n.id for n in result.nodes if n.role == "root"}
    adjacency = {n.id: set() for n in result.nodes}
    for edge in result.edges:
        adjacency[edge.source].add(edge.target)
        adjacency[edge.target].add(edge.source)
    for node in result.nodes:
        if node.role != "highlight" or node.status != "connected":
            continue
        reached, stack = {node.id}, [node.id]
        while stack:
            for nxt in adjacency[stack.pop()]:
                if nxt not in reached:
                    reached.add(nxt)
                    stack.append(nxt)
        assert reached & roots, f"{node.id} is reported connected but cannot reach a root"


def _random_hierarchy(seed, size=120):
    """Random DAG: every node Qn (n > 1) gets 1-2 parents with smaller ids."""
    rnd = random.Random(seed)
    parents = {}
    for n in range(2, size + 1):
        chosen = {rnd.randint(1, n - 1) for _ in range(rnd.choice((1, 1, 2)))}
        parents[f"Q{n}"] = [(rnd.choice(("P279", "P279", "P31")), f"Q{p}") for p in sorted(chosen)]
    return parents


@pytest.mark.asyncio
async def test_chain_scenario_without_sampling(chain_repository):
    service = HierarchyGraphService(
        chain_repository,
        SamplingConfig(sample_count_threshold=10, min_nodes_per_level=1, max_nodes_per_level=10),
    )
    result = await service.build(GraphRequest(upward=["Q144"]))

    assert {n.id for n in result.nodes} == {"Q144", "Q39367", "Q9394"}
    assert len(result.edges) == 2
    _assert_no_dangling_edges(result)
    labels = {n.id: n.label for n in result.nodes}
    assert labels["Q144"] == "dog\n(1/1)"
    assert labels["Q9394"] == "terrier"
    assert {e.relation_label for e in result.edges} == {"subclass of"}
    assert result.stats["final_nodes"] == 3


@pytest.mark.asyncio
async def test_empty_input_produces_empty_result(chain_repository):
    service = HierarchyGraphService(chain_repository)
    result = await service.build(GraphRequest(highlights=["Q144"]))

    assert result.nodes == [] and result.edges == []
    assert chain_repository.fetched == []
    assert chain_repository.query_calls == []


@pytest.mark.asyncio
async def test_disconnected_highlight_is_retained(fake_repository_factory):
    repo = fake_repository_factory({"Q2": [("P279", "Q1")], "Q50": [("P279", "Q49")]})
    service = HierarchyGraphService(repo)
    result = await service.build(GraphRequest(upward=["Q1"], highlights=["Q50"]))

    by_id = {n.id: n for n in result.nodes}
    assert "Q50" in by_id
    assert by_id["Q50"].status == "disconnected"
    assert result.disconnected_highlights == ["Q50"]
    _assert_no_dangling_edges(result)


@pytest.mark.asyncio
async def test_unresolved_entities_render_as_bare_ids(fake_repository_factory):
    repo = fake_repository_factory({"Q2": [("P279", "Q1")], "Q3": [("P279", "Q1")]}, failing={"Q3"})
    service = HierarchyGraphService(repo)
    result = await service.build(GraphRequest(upward=["Q1"]))

    by_id = {n.id: n for n in result.nodes}
    assert by_id["Q3"].label == "Q3"
    assert by_id["Q3"].status == "unresolved"
    assert by_id["Q3"].image is None
    assert ("Q1", "Q3", "inferred") in {(e.source, e.target, e.relation) for e in result.edges}
    assert result.stats["unresolved_nodes"] == 1
    assert by_id["Q1"].label.endswith("(2/2)")
    _assert_no_dangling_edges(result)


@pytest.mark.asyncio
async def test_failed_mid_level_class_keeps_its_subtree(fake_repository_factory):
    repo = fake_repository_factory(
        {"Q2": [("P279", "Q1")], "Q3": [("P279", "Q2")], "Q4": [("P279", "Q3")]},
        failing={"Q2"},
    )
    service = HierarchyGraphService(repo)
    result = await service.build(GraphRequest(upward=["Q1"]))

    assert {n.id for n in result.nodes} == {"Q1", "Q2", "Q3", "Q4"}
    _assert_components_anchored(result)
    _assert_no_dangling_edges(result)


@pytest.mark.asyncio
@pytest.mark.parametrize("seed", range(5))
async def test_highlight_above_sampled_child_stays_attached_to_root(fake_repository_factory, seed):
    parents = {f"Q{n}": [("P279", "Q1")] for n in range(100, 140)}
    parents["Q2"] = [("P279", "Q100")]
    parents.update({f"Q{n}": [("P279", "Q101")] for n in range(200, 239)})
    parents["Q3"] = [("P279", "Q2")]
    repo = fake_repository_factory(parents)
    config = SamplingConfig(sample_rate_percent=10, sample_count_threshold=30, min_nodes_per_level=1, max_nodes_per_level=4)
    service = HierarchyGraphService(repo, config)

    result = await service.build(GraphRequest(upward=["Q1"], highlights=["Q2"], seed=seed))

    by_id = {n.id: n for n in result.nodes}
    assert by_id["Q2"].status == "connected"
    assert result.disconnected_highlights == []
    assert "Q100" in by_id
    _assert_connected_highlights_reach_root(result)
    _assert_components_anchored(result)


@pytest.mark.asyncio
async def test_seeded_requests_are_reproducible(fake_repository_factory):
    repo = fake_repository_factory(_random_hierarchy(3))
    config = SamplingConfig(sample_rate_percent=20, sample_count_threshold=5, min_nodes_per_level=2, max_nodes_per_level=6)
    service = HierarchyGraphService(repo, config)

    first = await service.build(GraphRequest(upward=["Q1"], seed=11))
    second = await service.build(GraphRequest(upward=["Q1"], seed=11))

    assert [n.id for n in first.nodes] == [n.id for n in second.nodes]


@pytest.mark.asyncio
@pytest.mark.parametrize("seed", range(6))
async def test_invariants_hold_on_random_hierarchies(fake_repository_factory, seed):
    parents = _random_hierarchy(seed)
    repo = fake_repository_factory(parents)
    rnd = random.Random(seed)
    highlights = [f"Q{rnd.randint(2, 120)}" for _ in range(3)]
    config = SamplingConfig(sample_rate_percent=15, sample_count_threshold=4, min_nodes_per_level=1, max_nodes_per_level=5)
    service = HierarchyGraphService(repo, config, rng=random.Random(seed))

    result = await service.build(GraphRequest(upward=["Q1"], downward=["Q60"], highlights=highlights))

    ids = {n.id for n in result.nodes}
    _assert_no_dangling_edges(result)
    _assert_components_anchored(result)
    _assert_connected_highlights_reach_root(result)
    assert set(highlights) <= ids
    assert {"Q1", "Q60"} <= ids
    assert len({(e.source, e.target, e.relation) for e in result.edges}) == len(result.edges)


def test_request_generations_are_monotonic():
    generations = RequestGenerations()
    first = generations.issue()
    second = generations.issue()
    assert second > first
    assert generations.is_current(second)
    assert not generations.is_current(first)


@pytest.mark.asyncio
async def test_stale_run_is_not_published(fake_repository_factory):
    slow_release = asyncio.Event()

    class SlowRepository(fake_repository_factory):
        async def run_query(self, descriptor):
            if descriptor.root == "Q144":
                await slow_release.wait()
            return await super().run_query(descriptor)

    repo = SlowRepository(
        {"Q39367": [("P279", "Q144")], "Q9394": [("P279", "Q39367")], "Q2": [("P279", "Q1")]}
    )
    service = HierarchyGraphService(repo)

    older = asyncio.ensure_future(service.build(GraphRequest(upward=["Q144"])))
    await asyncio.sleep(0)
    newer = await service.build(GraphRequest(upward=["Q1"]))
    slow_release.set()
    stale = await older

    assert newer.stale is False
    assert stale.stale is True
    assert stale.generation < newer.generation
    assert service.latest is newer
