"""
Per-level random sampling.

Levels at or below `sample_count_threshold` nodes are kept whole. Larger
levels are shuffled with the injected random source and cut to
ceil(rate% * size), clamped to [min_nodes_per_level, max_nodes_per_level]
and never above the level size.
"""

import logging
import math
import random
from dataclasses import dataclass, field
from typing import Dict, Optional, Set, Tuple

from wikitree.common.config import SamplingConfig

from .levels import nodes_by_level
from .models import HierarchyGraph

logger = logging.getLogger(__name__)


@dataclass
class LevelSample:
    """Outcome of level sampling."""

    kept: Set[str] = field(default_factory=set)
    # level -> (kept, total)
    level_counts: Dict[int, Tuple[int, int]] = field(default_factory=dict)

    @property
    def truncated_levels(self) -> Dict[int, Tuple[int, int]]:
        return {lvl: c for lvl, c in self.level_counts.items() if c[0] < c[1]}


def keep_count(level_size: int, config: SamplingConfig) -> int:
    """Number of nodes to keep at a level of `level_size` nodes."""
    if level_size <= config.sample_count_threshold:
        return level_size
    wanted = math.ceil(config.sample_rate_percent / 100.0 * level_size)
    wanted = max(config.min_nodes_per_level, min(config.max_nodes_per_level, wanted))
    return min(wanted, level_size)


class LevelSampler:
    """Selects a bounded subset of every over-full level."""

    def __init__(self, config: Optional[SamplingConfig] = None, rng: Optional[random.Random] = None):
        self.config = config or SamplingConfig()
        self.rng = rng or random.Random()

    def sample(self, graph: HierarchyGraph, levels: Dict[str, int]) -> LevelSample:
        result = LevelSample()
        for level, qids in nodes_by_level(levels).items():
            count = keep_count(len(qids), self.config)
            if count < len(qids):
                candidates = list(qids)
                self.rng.shuffle(candidates)
                chosen = candidates[:count]
                logger.info("Level %d: sampled %d of %d nodes", level, count, len(qids))
            else:
                chosen = qids
            result.kept.update(chosen)
            result.level_counts[level] = (len(chosen), len(qids))

        for qid in result.kept:
            graph.node(qid).sampled_at_level = True
        return result
