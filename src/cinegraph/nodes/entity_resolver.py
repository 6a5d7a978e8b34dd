"""Entity extraction and graph resolution for user queries.

The model proposes candidate names; only the graph decides what they are.
Each candidate is looked up under every node label, exact match first and
substring match as a fallback.
"""

import asyncio
import json
from typing import Any

import structlog
from google import genai
from langgraph.runtime import Runtime
from neo4j import AsyncDriver

from cinegraph.configuration import Configuration
from cinegraph.context import AgentContext
from cinegraph.models import EntityResolution, ResolvedEntity
from cinegraph.state import State
from cinegraph.tools.gemini import extract_text, gemini_generate, parse_json_text
from cinegraph.tools.knowledge_graph import query_knowledge_graph
from cinegraph.tools.plan_schema import NAME_PROPERTY

logger = structlog.get_logger()

# Labels are searched in this order for every candidate
NODE_TYPES: tuple[tuple[str, str], ...] = tuple(
    (label, NAME_PROPERTY[label])
    for label in ("Movie", "Director", "Actor", "Genre", "Theme", "Award")
)

EXTRACTION_PROMPT = """You extract entity names from movie-related queries.

Extract ALL names, titles, and specific terms from the query.
Do NOT extract generic words like "movies", "recommend", "find", "show".
Do NOT extract adjectives like "good", "best", "latest".
DO extract: person names, movie titles, genre names, theme names, award names.

Respond ONLY with a JSON array of strings. No markdown, no backticks.

Examples:
"Movies directed by Christopher Nolan" -> ["Christopher Nolan"]
"Action movies with Tom Hardy" -> ["Action", "Tom Hardy"]
"How is DiCaprio related to Nolan?" -> ["DiCaprio", "Nolan"]
"Movies like Inception" -> ["Inception"]
"Sci-fi movies that won Oscar" -> ["Sci-fi", "Oscar"]
"Recommend me a good thriller" -> ["thriller"]"""

EXACT_MATCH_QUERY = (
    "MATCH (n:{label}) WHERE toLower(n.{prop}) = toLower($name) "
    "RETURN n.{prop} AS node_name LIMIT $limit"
)

PARTIAL_MATCH_QUERY = (
    "MATCH (n:{label}) WHERE toLower(n.{prop}) CONTAINS toLower($name) "
    "RETURN n.{prop} AS node_name LIMIT $limit"
)


def _clean_candidates(raw: object) -> list[str]:
    """Keep non-blank strings, dropping exact repeats."""
    if not isinstance(raw, list):
        return []
    names = (item.strip() for item in raw if isinstance(item, str) and item.strip())
    return list(dict.fromkeys(names))


async def extract_entities(
    query: str,
    client: genai.Client,
    configuration: Configuration,
) -> list[str]:
    """Ask the model for candidate entity names in the query.

    Never raises on bad model output: an unparseable answer yields ``[]``.
    """
    text = await asyncio.to_thread(
        gemini_generate,
        client,
        query,
        system_instruction=EXTRACTION_PROMPT,
        model=configuration.model,
        temperature=configuration.temperature,
        response_mime_type="application/json",
    )
    try:
        raw = parse_json_text(text)
    except json.JSONDecodeError:
        logger.warning("entity_extraction_unparseable", response=str(text)[:200])
        return []
    if not isinstance(raw, list):
        logger.warning("entity_extraction_not_a_list", response=str(text)[:200])
    return _clean_candidates(raw)


async def resolve_entity(
    name: str,
    driver: AsyncDriver,
    limit: int = 5,
) -> list[ResolvedEntity]:
    """Find every node whose name matches a candidate, across all labels.

    Args:
        name: Candidate name as written by the user.
        driver: Neo4j async driver instance (injected).
        limit: Max matches per label and match mode.

    Returns:
        list[ResolvedEntity]: Exact matches if any label had one, else the
            partial matches. Empty when nothing matched.
    """
    matches: list[ResolvedEntity] = []
    params = {"name": name, "limit": limit}

    for label, prop in NODE_TYPES:
        rows = await query_knowledge_graph(
            EXACT_MATCH_QUERY.format(label=label, prop=prop), driver=driver, parameters=params
        )
        match_type = "exact"
        if not rows:
            rows = await query_knowledge_graph(
                PARTIAL_MATCH_QUERY.format(label=label, prop=prop),
                driver=driver,
                parameters=params,
            )
            match_type = "partial"

        matches.extend(
            ResolvedEntity(
                search_term=name,
                label=label,
                node_name=row["node_name"],
                match_type=match_type,
            )
            for row in rows
        )

    exact = [m for m in matches if m.match_type == "exact"]
    return exact or matches


async def resolve_query_entities(
    query: str,
    driver: AsyncDriver,
    client: genai.Client,
    configuration: Configuration | None = None,
) -> EntityResolution:
    """Extract entity names from a query and resolve each in the graph.

    Args:
        query: The user's question.
        driver: Neo4j async driver instance (injected).
        client: Gemini client instance (injected).
        configuration: Runtime configuration.

    Returns:
        EntityResolution: Matches in candidate order, plus the candidates
            that matched nothing. Every candidate lands in exactly one of
            the two lists.
    """
    configuration = configuration or Configuration()
    names = await extract_entities(query, client, configuration)
    logger.info("entities_extracted", candidates=names)
    if not names:
        return EntityResolution(query=query)

    semaphore = asyncio.Semaphore(configuration.resolution_concurrency)

    async def _bounded(name: str) -> list[ResolvedEntity]:
        async with semaphore:
            return await resolve_entity(name, driver, configuration.entity_match_limit)

    # Spellings differing only in case share one lookup, made with the first.
    lookups: dict[str, str] = {}
    for name in names:
        lookups.setdefault(name.lower(), name)
    results = await asyncio.gather(*(_bounded(name) for name in lookups.values()))
    by_key = dict(zip(lookups, results))

    entities: list[ResolvedEntity] = []
    unresolved: list[str] = []
    for name in names:
        matches = [
            m.model_copy(update={"search_term": name}) for m in by_key[name.lower()]
        ]
        if matches:
            entities.extend(matches)
            for m in matches:
                logger.info(
                    "entity_resolved",
                    term=name,
                    label=m.label,
                    node_name=m.node_name,
                    match_type=m.match_type,
                )
        else:
            unresolved.append(name)
            logger.info("entity_unresolved", term=name)

    return EntityResolution(query=query, entities=entities, unresolved=unresolved)


async def resolve_entities(state: State, runtime: Runtime[AgentContext]) -> dict[str, Any]:
    """Pipeline node: resolve the entities named in the latest user message.

    Args:
        state: Current graph state.
        runtime: LangGraph runtime carrying the shared clients.

    Returns:
        dict[str, Any]: State update with query and resolution.
    """
    services = runtime.context.services
    query = extract_text(state.messages[-1].content)
    resolution = await resolve_query_entities(
        query,
        driver=await services.neo4j.get_driver(),
        client=await services.gemini.get_client(),
        configuration=runtime.context.configuration,
    )
    return {"query": query, "resolution": resolution}
