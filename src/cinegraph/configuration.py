# -----------------------------------------------------------
# GraphRAG system built with Agentic Reasoning
# Runtime configuration for the movie query pipeline.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""Runtime configuration for the movie query pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Configuration:
    """Runtime configuration for the pipeline, decoupled from environment secrets."""

    model: str = field(
        default="gemini-2.5-flash",
        metadata={"description": "The name of the language model to use."},
    )
    embedding_model: str = field(
        default="gemini-embedding-001",
        metadata={"description": "Embedding model used to build the movie index."},
    )
    temperature: float = field(
        default=0.0,
        metadata={"description": "Sampling temperature for every model call."},
    )
    entity_match_limit: int = field(
        default=5,
        metadata={"description": "Max graph matches per label and match mode."},
    )
    resolution_concurrency: int = field(
        default=4,
        metadata={"description": "Candidates resolved against the graph at once."},
    )
    similarity_top_k: int = field(
        default=50,
        metadata={"description": "Nearest neighbours fetched for a source movie."},
    )
    fallback_top_k: int = field(
        default=20,
        metadata={"description": "Nearest neighbours fetched for unguided search."},
    )
    recommendation_count: int = field(
        default=10,
        metadata={"description": "Number of recommendations the model picks."},
    )
    max_rendered_rows: int = field(
        default=50,
        metadata={"description": "Result rows shown to the answer renderer."},
    )
