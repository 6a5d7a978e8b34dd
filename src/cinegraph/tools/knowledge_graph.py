"""Reusable Neo4j knowledge graph query functions.

Pure functions with dependency injection; clients are always passed in.
"""

from typing import Any

from neo4j import READ_ACCESS, AsyncDriver


def to_plain(value: Any) -> Any:
    """Convert driver value types into plain Python structures.

    Temporal and spatial values expose ``to_native()``; lists and maps are
    converted recursively so results can be JSON-encoded for prompts.

    Args:
        value: A value taken from a result record.

    Returns:
        Any: The equivalent built-in value.
    """
    if isinstance(value, dict):
        return {key: to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(item) for item in value]
    to_native = getattr(value, "to_native", None)
    if callable(to_native):
        return to_native()
    return value


async def query_knowledge_graph(
    query: str,
    driver: AsyncDriver,
    parameters: dict | None = None,
) -> list[dict]:
    """Execute a read-only Cypher query against the Neo4j knowledge graph.

    Args:
        query: Cypher query string to execute.
        driver: Neo4j async driver instance (injected).
        parameters: Optional Cypher query parameters for safe parameterized queries.

    Returns:
        list[dict]: List of result records as plain dictionaries.
    """
    async with driver.session(default_access_mode=READ_ACCESS) as session:
        result = await session.run(query, parameters=parameters or {})
        records = await result.data()
    return [to_plain(record) for record in records]
