# -----------------------------------------------------------
# GraphRAG system built with Agentic Reasoning
# Movie question answering over a knowledge graph and a vector index.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""Movie question answering over a knowledge graph and a vector index.

Every query is resolved against the graph, classified, and answered by
either the graph handler or the similarity handler.
"""

from cinegraph.graph import graph

__all__ = ["graph"]
