# -----------------------------------------------------------
# GraphRAG system built with Agentic Reasoning
# Pydantic models for per-request pipeline values.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""Pydantic models for per-request pipeline values."""

from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, Field


class ResolvedEntity(BaseModel):
    """A query term matched to a stored graph node."""
    search_term: str = Field(description="Substring of the user query that was looked up.")
    label: str = Field(description="Node label of the match, e.g. Movie or Actor.")
    node_name: str = Field(description="Canonical stored name or title of the node.")
    match_type: Literal["exact", "partial"] = Field(description="Case-insensitive equality or substring match.")


class EntityResolution(BaseModel):
    """Outcome of resolving every extracted term of one query."""
    query: str
    entities: List[ResolvedEntity] = Field(default_factory=list)
    unresolved: List[str] = Field(default_factory=list)


class Classification(BaseModel):
    """Schema for the query classifier response."""
    type: Literal["graph", "similarity"] = Field(description="Which handler answers the query.")
    reasoning: str = Field(default="", description="One sentence explaining the choice.")
