"""
WikiTree Explorer.

Extracts and samples subgraphs of the Wikidata class/instance hierarchy
(subclass-of / instance-of) for rendering by an external graph component.
"""

__version__ = "0.1.0"
