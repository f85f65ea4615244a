"""
Tests for SPARQL query generation (wikitree/ingestion/queries.py).
"""

from wikitree.ingestion.queries import (
    ANCESTORS,
    DESCENDANTS,
    ancestors_query,
    descendants_query,
    generate_queries,
)


def test_descendants_query_targets_root_via_subclass_or_instance():
    descriptor = descendants_query("Q144")
    assert descriptor.kind == DESCENDANTS
    assert descriptor.root == "Q144"
    assert "(wdt:P279|wdt:P31)/wdt:P279* wd:Q144" in descriptor.sparql
    assert descriptor.sparql.startswith("SELECT DISTINCT ?i WHERE")


def test_ancestors_query_walks_subclass_upward():
    descriptor = ancestors_query("Q144")
    assert descriptor.kind == ANCESTORS
    assert "wd:Q144 wdt:P279+ ?i" in descriptor.sparql
    assert "P31" not in descriptor.sparql


def test_ancestors_query_can_start_with_instance_of():
    descriptor = ancestors_query("Q42", follow_instance_of=True)
    assert "wd:Q42 (wdt:P31|wdt:P279)/wdt:P279* ?i" in descriptor.sparql


def test_generate_queries_returns_pair_and_is_pure():
    first = generate_queries("Q5")
    second = generate_queries("Q5")
    assert first == second
    assert [d.kind for d in first] == [DESCENDANTS, ANCESTORS]
    assert all(d.root == "Q5" for d in first)
