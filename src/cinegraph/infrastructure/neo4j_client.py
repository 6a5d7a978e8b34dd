# -----------------------------------------------------------
# GraphRAG system built with Agentic Reasoning
# Neo4j async driver manager with dependency injection.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

import asyncio

import structlog
from neo4j import AsyncDriver, AsyncGraphDatabase

logger = structlog.get_logger()


class Neo4jClient:
    """Manager for the Neo4j asynchronous driver.

    The driver owns a connection pool that is shared read-only by every
    request, so exactly one is created per client and it lives until
    ``close()`` is awaited at shutdown.
    """

    def __init__(self, uri: str, username: str, password: str) -> None:
        """Initialize with connection parameters.

        Args:
            uri: Neo4j connection URI.
            username: Neo4j username.
            password: Neo4j password.
        """
        self._uri = uri
        self._username = username
        self._password = password
        self._driver: AsyncDriver | None = None
        self._lock = asyncio.Lock()

    async def get_driver(self) -> AsyncDriver:
        """Get or lazily initialize the Neo4j async driver.

        Returns:
            AsyncDriver: The Neo4j async driver instance.
        """
        if self._driver is not None:
            return self._driver
        async with self._lock:
            if self._driver is None:
                self._driver = await asyncio.to_thread(
                    AsyncGraphDatabase.driver,
                    self._uri,
                    auth=(self._username, self._password),
                    max_connection_lifetime=300,
                )
                logger.info("neo4j_driver_created", uri=self._uri)
        return self._driver

    async def close(self) -> None:
        """Close the driver and release its connection pool."""
        if self._driver is not None:
            await self._driver.close()
            self._driver = None
            logger.info("neo4j_driver_closed")
