"""
Command-line entry point: build a sampled hierarchy graph and save it as JSON.

Usage:
    wikitree-build --up Q144 --highlight Q38280 --out data/graph/dog.json
"""

import argparse
import asyncio
import json
import logging
import os
from typing import List, Optional

from wikitree.common.config import DEFAULT_CONFIG_PATH, load_config
from wikitree.common.logging_utils import setup_logging
from wikitree.ingestion.entity_cache import EntityCache
from wikitree.ingestion.wikidata_client_async import AsyncWikidataClient

from .graph_service import GraphRequest, HierarchyGraphService
from .models import RenderGraph

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_PATH = os.path.join("data", "graph", "hierarchy.json")


def save_graph(result: RenderGraph, path: str) -> None:
    """Write the render contract as pretty-printed JSON."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(result.model_dump(), f, ensure_ascii=False, indent=2)
    logger.info("Saved %d nodes and %d edges to %s", len(result.nodes), len(result.edges), path)


async def main_async(args: argparse.Namespace) -> RenderGraph:
    config = load_config(args.config)
    sampling = config.sampling.with_overrides(
        sample_rate_percent=args.sample_rate,
        sample_count_threshold=args.sample_count,
        min_nodes_per_level=args.min_nodes,
        max_nodes_per_level=args.max_nodes,
    )

    client = AsyncWikidataClient(config.wikidata, cache=EntityCache())
    try:
        service = HierarchyGraphService(
            client,
            sampling,
            max_concurrency=config.wikidata.max_concurrency,
            follow_instance_of_upward=config.wikidata.follow_instance_of_upward,
        )
        request = GraphRequest(
            upward=args.up,
            downward=args.down,
            highlights=args.highlight,
            seed=args.seed,
        )
        result = await service.build(request)
    finally:
        client.close()

    for qid in result.disconnected_highlights:
        logger.warning("Highlight %s is not connected to any root", qid)
    save_graph(result, args.out)
    return result


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build a sampled Wikidata hierarchy graph.")
    parser.add_argument("--up", nargs="*", default=[], help="Upward roots (their subclasses/instances are fetched).")
    parser.add_argument("--down", nargs="*", default=[], help="Downward roots (their superclasses are fetched).")
    parser.add_argument("--highlight", nargs="*", default=[], help="Entities that must always be shown.")
    parser.add_argument("--sample-rate", type=float, default=None, help="Percent of an over-full level to keep.")
    parser.add_argument("--sample-count", type=int, default=None, help="Level size above which sampling starts.")
    parser.add_argument("--min-nodes", type=int, default=None, help="Minimum nodes kept per sampled level.")
    parser.add_argument("--max-nodes", type=int, default=None, help="Maximum nodes kept per sampled level.")
    parser.add_argument("--seed", type=int, default=None, help="Seed for reproducible sampling.")
    parser.add_argument("--config", default=None, help="Path to config.yaml (default: ./config.yaml).")
    parser.add_argument(
        "--out",
        default=DEFAULT_OUTPUT_PATH,
        help=f"Output JSON path (default: {DEFAULT_OUTPUT_PATH}).",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point that parses CLI arguments and runs the async pipeline."""
    args = parse_args(argv)
    setup_logging(args.config or DEFAULT_CONFIG_PATH)
    asyncio.run(main_async(args))


if __name__ == "__main__":
    main()
