"""
Hierarchy graph extraction and sampling for WikiTree Explorer.

This package assembles Wikidata subclass/instance subgraphs around user
chosen roots, bounds their size per depth level, and repairs and prunes the
result so it renders as connected structures with no dangling edges.
"""
