"""
Graph service: runs the full extraction pipeline for one request.

assemble -> assign levels -> sample levels -> repair connectivity ->
prune islands -> materialize edges

Each run is stamped with a request generation. Overlapping runs are allowed to
race, but only the result of the most recently issued request is published;
older results come back marked `stale`.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from time import perf_counter
from typing import Dict, List, Optional

from wikitree.common.config import SamplingConfig
from wikitree.ingestion.constants import HIERARCHY_PROPERTIES

from .assembler import GraphAssembler
from .connectivity import repair_connectivity
from .edges import materialize
from .levels import assign_levels
from .models import RenderGraph
from .pruning import prune_islands
from .sampling import LevelSampler

logger = logging.getLogger(__name__)


@dataclass
class GraphRequest:
    """User inputs for one pipeline run."""

    upward: List[str] = field(default_factory=list)
    downward: List[str] = field(default_factory=list)
    highlights: List[str] = field(default_factory=list)
    sampling: Optional[SamplingConfig] = None
    seed: Optional[int] = None


class RequestGenerations:
    """Monotonically increasing request counter."""

    def __init__(self) -> None:
        self._latest = 0

    @property
    def latest(self) -> int:
        return self._latest

    def issue(self) -> int:
        self._latest += 1
        return self._latest

    def is_current(self, generation: int) -> bool:
        return generation == self._latest


class HierarchyGraphService:
    """Service for building sampled hierarchy graphs."""

    def __init__(
        self,
        repository,
        sampling: Optional[SamplingConfig] = None,
        *,
        max_concurrency: int = 4,
        follow_instance_of_upward: bool = False,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize graph service.

        Args:
            repository: Entity repository (see GraphAssembler)
            sampling: Default sampling bounds; requests may override them
            max_concurrency: Fan-out bound for entity fetches
            follow_instance_of_upward: Let downward roots climb via instance-of
            rng: Random source for sampling when a request carries no seed
        """
        self.repository = repository
        self.sampling = sampling or SamplingConfig()
        self.assembler = GraphAssembler(
            repository,
            max_concurrency=max_concurrency,
            follow_instance_of_upward=follow_instance_of_upward,
        )
        self.rng = rng or random.Random()
        self.generations = RequestGenerations()
        self.latest: Optional[RenderGraph] = None

    async def _relation_labels(self) -> Dict[str, str]:
        labels: Dict[str, str] = {}
        for pid in HIERARCHY_PROPERTIES:
            try:
                info = await self.repository.fetch_property(pid)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Could not fetch label for %s: %s", pid, exc)
                info = None
            labels[pid] = info.label if info is not None else pid
        return labels

    async def run(self, request: GraphRequest) -> RenderGraph:
        """Run the pipeline without generation bookkeeping."""
        start = perf_counter()
        config = request.sampling or self.sampling
        rng = random.Random(request.seed) if request.seed is not None else self.rng

        graph = await self.assembler.assemble(request.upward, request.downward, request.highlights)
        if len(graph) == 0:
            return RenderGraph()

        full_children = graph.children()
        levels = assign_levels(graph)
        sample = LevelSampler(config, rng).sample(graph, levels)
        repair = repair_connectivity(graph, sample.kept, config.highlight_search_depth)
        repaired = graph.restrict_to(repair.keep)
        final = prune_islands(repaired)

        relation_labels = await self._relation_labels()
        result = materialize(final, full_children, relation_labels, repair.disconnected_highlights)
        result.stats = {
            "assembled_nodes": len(graph),
            "assembled_edges": graph.graph.number_of_edges(),
            "unresolved_nodes": sum(1 for n in graph.nodes() if not n.entity.is_resolved),
            "leveled_nodes": len(levels),
            "sampled_nodes": len(sample.kept),
            "truncated_levels": len(sample.truncated_levels),
            "kept_after_repair": len(repaired),
            "final_nodes": len(result.nodes),
            "final_edges": len(result.edges),
        }
        logger.info(
            "Built hierarchy graph in %.2f seconds: %d -> %d nodes, %d edges",
            perf_counter() - start,
            len(graph),
            len(result.nodes),
            len(result.edges),
        )
        return result

    async def build(self, request: GraphRequest) -> RenderGraph:
        """Run the pipeline for a new request and publish it if still current."""
        generation = self.generations.issue()
        result = await self.run(request)
        result.generation = generation

        # Yield once so large synchronous passes don't starve other tasks
        await asyncio.sleep(0)
        result.stale = not self.publish(result)
        return result

    def publish(self, result: RenderGraph) -> bool:
        """Apply `result` only if it belongs to the latest issued request."""
        if not self.generations.is_current(result.generation):
            logger.info(
                "Discarding stale result for generation %d (latest is %d)",
                result.generation,
                self.generations.latest,
            )
            return False
        self.latest = result
        return True
