"""
Shared constants for Wikidata ingestion.
"""

import re
from typing import Tuple

# Hierarchy properties traversed by the graph pipeline
SUBCLASS_OF = "P279"
INSTANCE_OF = "P31"
HIERARCHY_PROPERTIES: Tuple[str, ...] = (SUBCLASS_OF, INSTANCE_OF)

# P18 holds the Commons file name of an item's image
IMAGE_PROPERTY = "P18"

QID_PATTERN = re.compile(r"^Q\d+$")
PID_PATTERN = re.compile(r"^P\d+$")

ENTITY_URI_PREFIX = "http://www.wikidata.org/entity/"
COMMONS_FILE_PATH_URL = "https://commons.wikimedia.org/wiki/Special:FilePath/"
IMAGE_THUMB_WIDTH = 120


def is_qid(value: object) -> bool:
    return isinstance(value, str) and QID_PATTERN.match(value) is not None


def is_pid(value: object) -> bool:
    return isinstance(value, str) and PID_PATTERN.match(value) is not None
