"""
Wikidata access layer: SPARQL query generation, entity parsing and the
rate-limited async repository used by the graph pipeline.
"""
