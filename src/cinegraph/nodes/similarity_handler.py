"""Similarity handler: vector candidates cross-checked against the graph.

Nearest neighbours from the vector index are a noisy proxy for taste, so
candidates only survive if the graph confirms they share a genre with the
source movie. The model then picks and explains the best of the survivors.
"""

import asyncio
import re
from typing import Any

import structlog
from google import genai
from langchain_core.messages import AIMessage
from langgraph.runtime import Runtime
from neo4j import AsyncDriver
from pinecone import Pinecone

from cinegraph.configuration import Configuration
from cinegraph.context import AgentContext
from cinegraph.models import EntityResolution
from cinegraph.state import State
from cinegraph.tools.gemini import gemini_embed, gemini_generate
from cinegraph.tools.knowledge_graph import query_knowledge_graph
from cinegraph.tools.vector_store import vector_search

logger = structlog.get_logger()

_TITLE_PATTERN = re.compile(r"Movie Title:\s*(.+)", re.IGNORECASE)

MOVIE_GENRES_QUERY = (
    "MATCH (m:Movie)-[:BELONGS_TO]->(g:Genre) "
    "WHERE m.title = $title RETURN g.name AS genre"
)

MOVIE_THEMES_QUERY = (
    "MATCH (m:Movie)-[:EXPLORES]->(t:Theme) "
    "WHERE m.title = $title RETURN t.name AS theme"
)

GENRE_OVERLAP_QUERY = (
    "MATCH (m:Movie)-[:BELONGS_TO]->(g:Genre) "
    "WHERE m.title IN $titles "
    "WITH m, collect(g.name) AS genres "
    "WHERE any(genre IN genres WHERE genre IN $source_genres) "
    "RETURN m.title AS title, genres"
)

RECOMMENDER_SYSTEM_PROMPT = (
    "You are a movie recommendation expert. Respond ONLY with a numbered list "
    "of movie recommendations with short explanations. Never respond with JSON."
)

SIMILAR_PROMPT = """The user wants movies similar to: "{title}"
  - Genres: {genres}
  - Themes: {themes}

Here are {count} movies that share at least one genre:
{candidates}

Pick the {pick} BEST matches. Rank by:
1. Genre overlap (most important)
2. Theme similarity (from the movie info)
3. Overall vibe/style match

For each pick, explain in 1-2 sentences WHY it's similar.
Do NOT mention databases, vectors, scores, or technical terms.
Format as a numbered list."""

FALLBACK_PROMPT = """The user asked: "{query}"

Here are {count} movies from our collection:
{candidates}

Pick the {pick} BEST matches for what the user is looking for.
For each pick, explain in 1-2 sentences WHY it fits.
Do NOT mention databases, vectors, scores, or technical terms.
Format as a numbered list."""


def extract_title(chunk_text: str) -> str | None:
    """Pull the movie title out of an indexed chunk's ``Movie Title:`` line."""
    match = _TITLE_PATTERN.search(chunk_text or "")
    return match.group(1).strip() if match else None


async def _search(
    text: str,
    top_k: int,
    client: genai.Client,
    pinecone: Pinecone,
    index_name: str,
    configuration: Configuration,
) -> list[dict]:
    vector = await asyncio.to_thread(
        gemini_embed, client, text, model=configuration.embedding_model
    )
    return await asyncio.to_thread(
        vector_search, pinecone, index_name, vector, top_k=top_k
    )


async def _recommend(prompt: str, client: genai.Client, configuration: Configuration) -> str:
    return await asyncio.to_thread(
        gemini_generate,
        client,
        prompt,
        system_instruction=RECOMMENDER_SYSTEM_PROMPT,
        model=configuration.model,
        temperature=configuration.temperature,
    )


async def fallback_vector_search(
    query: str,
    client: genai.Client,
    pinecone: Pinecone,
    index_name: str,
    configuration: Configuration,
) -> str:
    """Recommend from raw query similarity when no source movie is known."""
    logger.info("similarity_fallback", query=query)
    matches = await _search(
        query, configuration.fallback_top_k, client, pinecone, index_name, configuration
    )
    if not matches:
        return "I couldn't find any matching movies."

    texts = [m["metadata"].get("text", "") for m in matches]
    prompt = FALLBACK_PROMPT.format(
        query=query,
        count=len(texts),
        candidates="\n\n".join(
            f"--- Movie {i} ---\n{text}" for i, text in enumerate(texts, 1)
        ),
        pick=configuration.recommendation_count,
    )
    return await _recommend(prompt, client, configuration)


async def handle_similarity_query(
    query: str,
    resolution: EntityResolution,
    driver: AsyncDriver,
    client: genai.Client,
    pinecone: Pinecone,
    index_name: str,
    configuration: Configuration | None = None,
) -> str:
    """Recommend movies similar to the movie named in the query.

    Args:
        query: The user's question.
        resolution: Entities resolved for this query.
        driver: Neo4j async driver instance (injected).
        client: Gemini client instance (injected).
        pinecone: Pinecone client instance (injected).
        index_name: Pinecone index holding the movie chunks.
        configuration: Runtime configuration.

    Returns:
        str: A ranked recommendation list, or an explanation of why none
            could be made.
    """
    configuration = configuration or Configuration()
    source = next((e for e in resolution.entities if e.label == "Movie"), None)
    if source is None:
        return await fallback_vector_search(query, client, pinecone, index_name, configuration)

    title = source.node_name
    matches = await _search(
        title, configuration.similarity_top_k, client, pinecone, index_name, configuration
    )
    if not matches:
        return "I couldn't find any similar movies."
    logger.info("similarity_candidates", source=title, count=len(matches))

    genre_rows, theme_rows = await asyncio.gather(
        query_knowledge_graph(MOVIE_GENRES_QUERY, driver=driver, parameters={"title": title}),
        query_knowledge_graph(MOVIE_THEMES_QUERY, driver=driver, parameters={"title": title}),
    )
    source_genres = [row["genre"] for row in genre_rows]
    source_themes = [row["theme"] for row in theme_rows]
    if not source_genres:
        logger.warning("similarity_source_without_genres", source=title)
        return await fallback_vector_search(query, client, pinecone, index_name, configuration)

    # First chunk per title wins; order follows vector rank.
    chunks: dict[str, str] = {}
    for match in matches:
        text = match["metadata"].get("text", "")
        candidate = extract_title(text)
        if candidate and candidate.lower() != title.lower() and candidate not in chunks:
            chunks[candidate] = text

    rows = await query_knowledge_graph(
        GENRE_OVERLAP_QUERY,
        driver=driver,
        parameters={"titles": list(chunks), "source_genres": source_genres},
    )
    shared = {row["title"]: row["genres"] for row in rows}
    survivors = [t for t in chunks if t in shared]
    logger.info("similarity_genre_matched", source=title, kept=len(survivors), candidates=len(chunks))

    if not survivors:
        return (
            f'I found movies in the collection but none share genres with "{title}" '
            f"({', '.join(source_genres)}). Try a broader search."
        )

    candidates = "\n\n".join(
        f"- {t} [Genres: {', '.join(shared[t])}]\n  Info: {chunks[t]}" for t in survivors
    )
    prompt = SIMILAR_PROMPT.format(
        title=title,
        genres=", ".join(source_genres),
        themes=", ".join(source_themes),
        count=len(survivors),
        candidates=candidates,
        pick=configuration.recommendation_count,
    )
    return await _recommend(prompt, client, configuration)


async def answer_from_similarity(state: State, runtime: Runtime[AgentContext]) -> dict[str, Any]:
    """Pipeline node: answer via the similarity handler."""
    services = runtime.context.services
    answer = await handle_similarity_query(
        state.query,
        state.resolution or EntityResolution(query=state.query),
        driver=await services.neo4j.get_driver(),
        client=await services.gemini.get_client(),
        pinecone=await services.pinecone.get_client(),
        index_name=services.pinecone.index_name,
        configuration=runtime.context.configuration,
    )
    return {"messages": [AIMessage(content=answer)]}
