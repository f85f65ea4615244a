"""
Entity model for Wikidata items and properties.

Wraps the Wikibase REST API JSON (`/entities/items/{qid}`) and exposes the
pieces the graph pipeline needs: a display label, an optional image URL and
the outgoing subclass-of / instance-of claims.
"""

from __future__ import annotations

import urllib.parse
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional, Tuple

from .constants import (
    COMMONS_FILE_PATH_URL,
    HIERARCHY_PROPERTIES,
    IMAGE_PROPERTY,
    IMAGE_THUMB_WIDTH,
    is_qid,
)


def label_from_json(payload: Optional[Dict[str, Any]], lang: str = "en") -> Optional[str]:
    """
    Pick a label from a REST API payload.

    Prefers `lang`, then English, then whatever language comes first.
    """
    if not payload or not payload.get("labels"):
        return None
    labels = payload["labels"]
    return labels.get(lang) or labels.get("en") or next(iter(labels.values()), None)


def image_filename_from_json(payload: Optional[Dict[str, Any]]) -> Optional[str]:
    """Return the Commons file name of the first P18 statement, if any."""
    if not payload or not payload.get("statements"):
        return None
    claims = payload["statements"].get(IMAGE_PROPERTY)
    if not isinstance(claims, list) or not claims:
        return None
    value = claims[0].get("value") or {}
    content = value.get("content")
    return content if isinstance(content, str) and content else None


def commons_image_url(filename: str, width: int = IMAGE_THUMB_WIDTH) -> str:
    """Build a Special:FilePath thumbnail URL for a Commons file name."""
    encoded = urllib.parse.quote(filename.replace(" ", "_"))
    return f"{COMMONS_FILE_PATH_URL}{encoded}?width={width}"


@dataclass(frozen=True)
class Entity:
    """A fetched Wikidata item. Immutable once built."""

    qid: str
    label: str
    image_url: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_json(cls, qid: str, payload: Dict[str, Any], lang: str = "en") -> "Entity":
        filename = image_filename_from_json(payload)
        return cls(
            qid=qid,
            label=label_from_json(payload, lang) or qid,
            image_url=commons_image_url(filename) if filename else None,
            raw=payload or {},
        )

    @classmethod
    def unresolved(cls, qid: str) -> "Entity":
        """Bare stand-in for an entity whose fetch failed."""
        return cls(qid=qid, label=qid)

    @property
    def is_resolved(self) -> bool:
        return bool(self.raw)

    def hierarchy_claims(self) -> Iterator[Tuple[str, str]]:
        """Yield (property_id, target_qid) for each subclass-of / instance-of claim."""
        statements = self.raw.get("statements") or {}
        for pid in HIERARCHY_PROPERTIES:
            for claim in statements.get(pid) or []:
                value = claim.get("value") or {}
                target = value.get("content")
                if is_qid(target):
                    yield pid, target


@dataclass(frozen=True)
class PropertyInfo:
    """A Wikidata property, reduced to what edge labels need."""

    pid: str
    label: str

    @classmethod
    def from_json(cls, pid: str, payload: Dict[str, Any], lang: str = "en") -> "PropertyInfo":
        return cls(pid=pid, label=label_from_json(payload, lang) or pid)
