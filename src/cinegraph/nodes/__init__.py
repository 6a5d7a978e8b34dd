# -----------------------------------------------------------
# GraphRAG system built with Agentic Reasoning
# Pipeline node functions for the movie query graph.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""Pipeline node functions for the movie query graph."""

from cinegraph.nodes.classifier import classify, classify_query
from cinegraph.nodes.entity_resolver import resolve_entities, resolve_query_entities
from cinegraph.nodes.graph_handler import answer_from_graph, handle_graph_query
from cinegraph.nodes.similarity_handler import (
    answer_from_similarity,
    handle_similarity_query,
)

__all__ = [
    "answer_from_graph",
    "answer_from_similarity",
    "classify",
    "classify_query",
    "handle_graph_query",
    "handle_similarity_query",
    "resolve_entities",
    "resolve_query_entities",
]
