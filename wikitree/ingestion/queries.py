"""
SPARQL query generation for hierarchy traversal.

Each root QID yields two query descriptors: its transitive descendants
(subclasses and instances below it) and its transitive ancestors (superclasses
above it). Generation is pure string construction; callers are responsible
for passing well-formed QIDs.
"""

from dataclasses import dataclass
from typing import Tuple

DESCENDANTS = "descendants"
ANCESTORS = "ancestors"


@dataclass(frozen=True)
class QueryDescriptor:
    """A query for the set of QIDs related to `root` in direction `kind`."""

    kind: str
    root: str
    sparql: str


def descendants_query(root_qid: str) -> QueryDescriptor:
    """Everything that is a subclass or instance of `root_qid`, transitively."""
    sparql = f"SELECT DISTINCT ?i WHERE {{ ?i (wdt:P279|wdt:P31)/wdt:P279* wd:{root_qid} }}"
    return QueryDescriptor(DESCENDANTS, root_qid, sparql)


def ancestors_query(root_qid: str, follow_instance_of: bool = False) -> QueryDescriptor:
    """
    Everything `root_qid` is transitively a subclass of.

    With `follow_instance_of` the first hop may also be instance-of, so an
    item (rather than a class) still grows the class tree above it.
    """
    if follow_instance_of:
        sparql = f"SELECT DISTINCT ?i WHERE {{ wd:{root_qid} (wdt:P31|wdt:P279)/wdt:P279* ?i }}"
    else:
        sparql = f"SELECT DISTINCT ?i WHERE {{ wd:{root_qid} wdt:P279+ ?i }}"
    return QueryDescriptor(ANCESTORS, root_qid, sparql)


def generate_queries(root_qid: str, follow_instance_of: bool = False) -> Tuple[QueryDescriptor, QueryDescriptor]:
    """Return the (descendants, ancestors) pair for one root."""
    return descendants_query(root_qid), ancestors_query(root_qid, follow_instance_of)
