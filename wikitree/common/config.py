"""
Configuration management.

Loads settings from config.yaml into validated dataclasses. A missing file
(or a missing section) falls back to the defaults below, so the pipeline can
run without any configuration on disk.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Optional

import yaml

DEFAULT_CONFIG_PATH = os.getenv("WIKITREE_CONFIG", "config.yaml")


class ConfigError(ValueError):
    """Raised when a configuration value is out of range."""


def load_yaml(path: str) -> Dict[str, Any]:
    """Load a YAML mapping, returning an empty dict if the file is absent."""
    if not os.path.exists(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")
    return data


@dataclass(frozen=True)
class SamplingConfig:
    """Per-level sampling bounds used by the level sampler and repairer."""

    sample_rate_percent: float = 20.0
    sample_count_threshold: int = 30
    min_nodes_per_level: int = 3
    max_nodes_per_level: int = 25
    highlight_search_depth: int = 15

    def __post_init__(self) -> None:
        if not 0 <= self.sample_rate_percent <= 100:
            raise ConfigError(
                f"sample_rate_percent must be within [0, 100], got {self.sample_rate_percent}"
            )
        if self.sample_count_threshold < 1:
            raise ConfigError(
                f"sample_count_threshold must be >= 1, got {self.sample_count_threshold}"
            )
        if self.min_nodes_per_level < 1:
            raise ConfigError(f"min_nodes_per_level must be >= 1, got {self.min_nodes_per_level}")
        if self.max_nodes_per_level < self.min_nodes_per_level:
            raise ConfigError(
                "max_nodes_per_level (%d) must be >= min_nodes_per_level (%d)"
                % (self.max_nodes_per_level, self.min_nodes_per_level)
            )
        if self.highlight_search_depth < 1:
            raise ConfigError(
                f"highlight_search_depth must be >= 1, got {self.highlight_search_depth}"
            )

    def with_overrides(self, **overrides: Any) -> "SamplingConfig":
        """Return a copy with the non-None overrides applied (and re-validated)."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self


@dataclass(frozen=True)
class WikidataSettings:
    """Connection settings for the Wikidata REST API and SPARQL endpoint."""

    rest_url: str = "https://www.wikidata.org/w/rest.php/wikibase/v1"
    sparql_url: str = "https://query.wikidata.org/sparql"
    user_agent: str = "WikiTree-Explorer/0.1.0 (https://github.com/wikitree/wikitree-explorer) Python/requests"
    language: str = "en"
    timeout: float = 30.0
    max_concurrency: int = 4
    max_retries: int = 5
    base_delay: float = 0.5
    max_delay: float = 16.0
    rate_limit: float = 10.0
    follow_instance_of_upward: bool = False

    def __post_init__(self) -> None:
        if self.max_concurrency < 1:
            raise ConfigError(f"max_concurrency must be >= 1, got {self.max_concurrency}")
        if self.max_retries < 1:
            raise ConfigError(f"max_retries must be >= 1, got {self.max_retries}")
        if self.rate_limit <= 0:
            raise ConfigError(f"rate_limit must be > 0, got {self.rate_limit}")


@dataclass(frozen=True)
class ApiSettings:
    """HTTP surface settings."""

    rate_limit: str = "30/minute"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])


@dataclass(frozen=True)
class AppConfig:
    wikidata: WikidataSettings = field(default_factory=WikidataSettings)
    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    api: ApiSettings = field(default_factory=ApiSettings)


def _section(config: Dict[str, Any], name: str, cls: type) -> Any:
    raw = config.get(name) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"config section '{name}' must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = set(raw) - known
    if unknown:
        raise ConfigError(f"unknown keys in '{name}' section: {', '.join(sorted(unknown))}")
    return cls(**raw)


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load the full application config from YAML."""
    config = load_yaml(config_path or DEFAULT_CONFIG_PATH)
    return AppConfig(
        wikidata=_section(config, "wikidata", WikidataSettings),
        sampling=_section(config, "sampling", SamplingConfig),
        api=_section(config, "api", ApiSettings),
    )
