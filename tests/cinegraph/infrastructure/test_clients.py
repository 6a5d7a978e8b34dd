# -----------------------------------------------------------
# GraphRAG system built with Agentic Reasoning
# Tests for the client wiring layer.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""Tests for the client wiring layer."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from cinegraph.infrastructure.clients import Services, build_services
from cinegraph.infrastructure.gemini_client import GeminiClient
from cinegraph.infrastructure.neo4j_client import Neo4jClient
from cinegraph.infrastructure.pinecone_client import PineconeClient
from cinegraph.settings import Settings

pytestmark = pytest.mark.anyio


def _settings() -> Settings:
    return Settings(
        _env_file=None,
        neo4j_uri="bolt://localhost:7687",
        neo4j_username="neo4j",
        neo4j_password="secret",
        gemini_api_key="gemini-key",
        pinecone_api_key="pinecone-key",
        pinecone_index_name="movies-test",
    )


def test_build_services_wires_clients_from_settings():
    services = build_services(_settings())

    assert isinstance(services.neo4j, Neo4jClient)
    assert isinstance(services.pinecone, PineconeClient)
    assert isinstance(services.gemini, GeminiClient)
    assert services.neo4j._password == "secret"
    assert services.gemini._api_key == "gemini-key"
    assert services.pinecone._api_key == "pinecone-key"
    assert services.pinecone.index_name == "movies-test"


def test_build_services_does_not_connect():
    services = build_services(_settings())

    assert services.neo4j._driver is None
    assert services.pinecone._client is None
    assert services.gemini._client is None


async def test_services_close_closes_neo4j():
    neo4j = MagicMock()
    neo4j.close = AsyncMock()
    services = Services(neo4j=neo4j, pinecone=MagicMock(), gemini=MagicMock())

    await services.close()

    neo4j.close.assert_awaited_once()
