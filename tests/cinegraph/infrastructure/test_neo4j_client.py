# -----------------------------------------------------------
# GraphRAG system built with Agentic Reasoning
# Tests for Neo4j async driver manager.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""Tests for Neo4j async driver manager."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from cinegraph.infrastructure.neo4j_client import Neo4jClient

pytestmark = pytest.mark.anyio


def _client() -> Neo4jClient:
    return Neo4jClient(uri="bolt://localhost:7687", username="neo4j", password="pw")


def test_neo4j_client_stores_config():
    """Verify constructor stores connection parameters without connecting."""
    client = _client()
    assert client._uri == "bolt://localhost:7687"
    assert client._username == "neo4j"
    assert client._password == "pw"
    assert client._driver is None


@patch("cinegraph.infrastructure.neo4j_client.AsyncGraphDatabase")
async def test_get_driver_creates_driver(mock_adb):
    """Verify get_driver creates the driver with credentials."""
    mock_driver = MagicMock()
    mock_adb.driver.return_value = mock_driver

    driver = await _client().get_driver()

    assert driver is mock_driver
    mock_adb.driver.assert_called_once_with(
        "bolt://localhost:7687",
        auth=("neo4j", "pw"),
        max_connection_lifetime=300,
    )


@patch("cinegraph.infrastructure.neo4j_client.AsyncGraphDatabase")
async def test_get_driver_returns_cached(mock_adb):
    """Verify repeated calls return the same cached driver."""
    mock_adb.driver.return_value = MagicMock()

    client = _client()
    driver1 = await client.get_driver()
    driver2 = await client.get_driver()

    assert driver1 is driver2
    mock_adb.driver.assert_called_once()


@patch("cinegraph.infrastructure.neo4j_client.AsyncGraphDatabase")
async def test_concurrent_get_driver_creates_one_driver(mock_adb):
    """Verify concurrent first calls share one driver."""
    mock_adb.driver.return_value = MagicMock()

    client = _client()
    drivers = await asyncio.gather(*(client.get_driver() for _ in range(5)))

    assert all(d is drivers[0] for d in drivers)
    mock_adb.driver.assert_called_once()


@patch("cinegraph.infrastructure.neo4j_client.AsyncGraphDatabase")
async def test_close_releases_driver(mock_adb):
    """Verify close() closes and forgets the driver."""
    mock_driver = MagicMock()
    mock_driver.close = AsyncMock()
    mock_adb.driver.return_value = mock_driver

    client = _client()
    await client.get_driver()
    await client.close()

    assert client._driver is None
    mock_driver.close.assert_awaited_once()


async def test_close_without_driver_is_noop():
    client = _client()
    await client.close()
    assert client._driver is None
