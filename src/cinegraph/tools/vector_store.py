# -----------------------------------------------------------
# GraphRAG system built with Agentic Reasoning
# Reusable Pinecone vector search functions.
# Pure functions with dependency injection; clients are always passed in.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

from pinecone import Pinecone


def vector_search(
    client: Pinecone,
    index_name: str,
    query_vector: list[float],
    top_k: int = 5,
) -> list[dict]:
    """Search a Pinecone vector index for nearest neighbours.

    Args:
        client: Pinecone client instance (injected).
        index_name: Name of the Pinecone index to query.
        query_vector: The query embedding vector.
        top_k: Number of top results to return.

    Returns:
        list[dict]: Matches in rank order as ``{"id", "score", "metadata"}``.
    """
    index = client.Index(index_name)
    response = index.query(vector=query_vector, top_k=top_k, include_metadata=True)

    return [
        {
            "id": match["id"],
            "score": match["score"],
            "metadata": dict(match.get("metadata") or {}),
        }
        for match in response.get("matches") or []
    ]
