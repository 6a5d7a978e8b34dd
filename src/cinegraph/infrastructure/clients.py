# -----------------------------------------------------------
# GraphRAG system built with Agentic Reasoning
# Client wiring layer.
# This is the only module (besides settings.py) that reads secrets
# and instantiates infrastructure clients. All other modules receive
# injected dependencies.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

from dataclasses import dataclass

import structlog

from cinegraph.infrastructure.gemini_client import GeminiClient
from cinegraph.infrastructure.neo4j_client import Neo4jClient
from cinegraph.infrastructure.pinecone_client import PineconeClient
from cinegraph.settings import Settings

logger = structlog.get_logger()


@dataclass
class Services:
    """Process-scoped client handles shared by every request."""

    neo4j: Neo4jClient
    pinecone: PineconeClient
    gemini: GeminiClient

    async def close(self) -> None:
        """Tear down connections held by the clients."""
        await self.neo4j.close()
        logger.info("services_closed")


def build_services(settings: Settings) -> Services:
    """Create the client managers from settings.

    Args:
        settings: Loaded application settings.

    Returns:
        Services: Client managers; connections open lazily on first use.
    """
    return Services(
        neo4j=Neo4jClient(
            uri=settings.neo4j_uri,
            username=settings.neo4j_username,
            password=settings.neo4j_password.get_secret_value(),
        ),
        pinecone=PineconeClient(
            api_key=settings.pinecone_api_key.get_secret_value(),
            index_name=settings.pinecone_index_name,
        ),
        gemini=GeminiClient(
            api_key=settings.gemini_api_key.get_secret_value(),
        ),
    )
