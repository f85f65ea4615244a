"""
Graph assembly: turn root/highlight QID lists into an in-memory hierarchy graph.

Upward roots grow the tree beneath them (descendants query), downward roots
grow the tree above them (ancestors query). Every discovered QID is fetched
with bounded concurrency and joined before any edge is built.

An entity whose fetch fails has no claims, so nothing would link it into the
tree. It is kept as a bare node and hung off the root whose query found it with
an `inferred` edge (below an upward root, above a downward root).
"""

import asyncio
import logging
from typing import Dict, Iterable, List, Optional

from wikitree.ingestion.constants import is_qid
from wikitree.ingestion.entities import Entity
from wikitree.ingestion.queries import DESCENDANTS, QueryDescriptor, ancestors_query, descendants_query

from .models import INFERRED_RELATION, ROLE_HIGHLIGHT, ROLE_NONE, ROLE_ROOT, HierarchyGraph

logger = logging.getLogger(__name__)


def clean_qids(values: Optional[Iterable[str]]) -> List[str]:
    """Strip, de-duplicate (keeping order) and drop anything that is not a QID."""
    cleaned: List[str] = []
    seen = set()
    for value in values or []:
        qid = value.strip().upper() if isinstance(value, str) else value
        if not is_qid(qid):
            logger.debug("Dropping malformed identifier %r", value)
            continue
        if qid not in seen:
            seen.add(qid)
            cleaned.append(qid)
    return cleaned


class GraphAssembler:
    """
    Builds a HierarchyGraph from an entity repository.

    The repository must provide `run_query(descriptor) -> list[str]` and
    `fetch_entity(qid) -> Entity | None` coroutines.
    """

    def __init__(self, repository, max_concurrency: int = 4, follow_instance_of_upward: bool = False):
        self.repository = repository
        self.max_concurrency = max(1, int(max_concurrency))
        self.follow_instance_of_upward = follow_instance_of_upward

    async def _discover(self, upward: List[str], downward: List[str]) -> Dict[str, QueryDescriptor]:
        """Run all hierarchy queries; map each returned id to the first query that found it."""
        descriptors = [descendants_query(q) for q in upward]
        descriptors += [ancestors_query(q, self.follow_instance_of_upward) for q in downward]
        results = await asyncio.gather(
            *(self.repository.run_query(d) for d in descriptors), return_exceptions=True
        )

        discovered: Dict[str, QueryDescriptor] = {}
        for descriptor, result in zip(descriptors, results):
            if isinstance(result, Exception):
                logger.warning("%s query for %s failed: %s", descriptor.kind, descriptor.root, result)
                continue
            logger.info("%s query for %s returned %d ids", descriptor.kind, descriptor.root, len(result))
            for qid in result:
                discovered.setdefault(qid, descriptor)
        return discovered

    async def _fetch_all(self, qids: List[str]) -> Dict[str, Entity]:
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _fetch(qid: str) -> Optional[Entity]:
            async with semaphore:
                return await self.repository.fetch_entity(qid)

        results = await asyncio.gather(*(_fetch(q) for q in qids), return_exceptions=True)

        entities: Dict[str, Entity] = {}
        failures = 0
        for qid, result in zip(qids, results):
            if isinstance(result, Exception):
                logger.warning("Fetching %s failed: %s", qid, result)
            elif result is None:
                logger.warning("Could not resolve %s; showing it as a bare id", qid)
            else:
                entities[qid] = result
                continue
            failures += 1
            entities[qid] = Entity.unresolved(qid)
        if failures:
            logger.warning("%d of %d entities could not be resolved; showing bare ids", failures, len(qids))
        return entities

    async def assemble(
        self,
        upward: Iterable[str],
        downward: Iterable[str] = (),
        highlights: Iterable[str] = (),
    ) -> HierarchyGraph:
        """Fetch and assemble the full reachable subgraph for the given roots."""
        upward = clean_qids(upward)
        downward = clean_qids(downward)
        highlights = clean_qids(highlights)

        graph = HierarchyGraph()
        if not upward and not downward:
            logger.info("No roots supplied; skipping assembly")
            return graph

        discovered = await self._discover(upward, downward)

        # dict preserves first-seen order
        qid_set = dict.fromkeys(upward + downward + highlights + list(discovered))
        universe = [q for q in qid_set if is_qid(q)]
        dropped = len(qid_set) - len(universe)
        if dropped:
            logger.debug("Discarded %d malformed ids from query results", dropped)

        entities = await self._fetch_all(universe)

        root_set = set(upward) | set(downward)
        highlight_set = set(highlights)
        for qid in universe:
            if qid in root_set:
                role = ROLE_ROOT
            elif qid in highlight_set:
                role = ROLE_HIGHLIGHT
            else:
                role = ROLE_NONE
            graph.add_node(entities[qid], role=role)

        edge_count = 0
        for qid in universe:
            for relation, parent in entities[qid].hierarchy_claims():
                if graph.add_edge(parent, qid, relation):
                    edge_count += 1

        for qid in universe:
            descriptor = discovered.get(qid)
            if entities[qid].is_resolved or qid in root_set or descriptor is None:
                continue
            if descriptor.kind == DESCENDANTS:
                added = graph.add_edge(descriptor.root, qid, INFERRED_RELATION)
            else:
                added = graph.add_edge(qid, descriptor.root, INFERRED_RELATION)
            if added:
                edge_count += 1
                logger.debug("Attached unresolved %s to root %s", qid, descriptor.root)

        logger.info(
            "Assembled graph: %d nodes, %d edges (%d upward roots, %d downward roots, %d highlights)",
            len(graph),
            edge_count,
            len(upward),
            len(downward),
            len(highlights),
        )
        return graph
