# -----------------------------------------------------------
# GraphRAG system built with Agentic Reasoning
# Pinecone client manager with dependency injection.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

import asyncio

from pinecone import Pinecone


class PineconeClient:
    """Manager for the Pinecone client and the movie index name.

    Args:
        api_key: Pinecone API key.
        index_name: Name of the index holding the movie chunks.
    """

    def __init__(self, api_key: str, index_name: str) -> None:
        """Initialize with API key and index name."""
        self._api_key = api_key
        self.index_name = index_name
        self._client: Pinecone | None = None

    async def get_client(self) -> Pinecone:
        """Get or lazily initialize the Pinecone client.

        Returns:
            Pinecone: The Pinecone client instance.
        """
        if self._client is None:
            self._client = await asyncio.to_thread(Pinecone, api_key=self._api_key)
        return self._client
