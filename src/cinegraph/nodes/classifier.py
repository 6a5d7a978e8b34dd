"""Graph-versus-similarity classification grounded on resolved entities."""

import asyncio
import json
from typing import Any

import structlog
from google import genai
from langgraph.runtime import Runtime
from pydantic import ValidationError

from cinegraph.configuration import Configuration
from cinegraph.context import AgentContext
from cinegraph.models import Classification, EntityResolution
from cinegraph.state import State
from cinegraph.tools.gemini import gemini_generate, parse_json_text

logger = structlog.get_logger()

CLASSIFIER_PROMPT = """You are a query classifier for a movie knowledge graph.

RESOLVED ENTITIES (we already looked these up in the database):
{entity_context}

CLASSIFY the query as ONE of:

1. "graph" - anything that can be answered from structured data:
   - Finding movies/actors/directors based on specific criteria
   - Getting information about a specific entity
   - Finding how two entities are related
   - Counting, listing, filtering
   - Examples: "Movies directed by [Director]", "Tell me about [Movie]",
     "How is [Actor] related to [Director]?", "How many [Genre] movies are there?"

2. "similarity" - finding similar or recommended items based on taste:
   - The query explicitly asks for "similar", "like", "recommend"
   - The user wants to discover new things based on something they liked
   - Examples: "Movies like [Movie]", "Recommend something like [Movie]",
     "I liked [Movie], what else should I watch?"

Respond ONLY with JSON: {{"type": "graph" or "similarity", "reasoning": "one sentence"}}
No markdown, no backticks."""

FALLBACK = Classification(type="graph", reasoning="Default fallback")


def build_entity_context(resolution: EntityResolution) -> str:
    """Render resolved and unresolved terms as grounding lines for a prompt."""
    if resolution.entities:
        lines = [
            f'"{e.search_term}" is a {e.label} (full name: "{e.node_name}")'
            for e in resolution.entities
        ]
    else:
        lines = ["No entities were found in the database."]
    if resolution.unresolved:
        lines.append(
            "These terms were NOT found in the database: "
            + ", ".join(resolution.unresolved)
        )
    return "\n".join(lines)


async def classify_query(
    query: str,
    resolution: EntityResolution,
    client: genai.Client,
    configuration: Configuration | None = None,
) -> Classification:
    """Decide whether graph traversal or similarity search answers the query.

    Falls back to ``graph`` whenever the model's answer cannot be used.
    """
    configuration = configuration or Configuration()
    prompt = CLASSIFIER_PROMPT.format(entity_context=build_entity_context(resolution))
    result = await asyncio.to_thread(
        gemini_generate,
        client,
        query,
        system_instruction=prompt,
        model=configuration.model,
        temperature=configuration.temperature,
        response_schema=Classification,
    )
    try:
        classification = Classification.model_validate(parse_json_text(result))
    except (json.JSONDecodeError, ValidationError):
        logger.warning("classification_unparseable", response=str(result)[:200])
        return FALLBACK

    logger.info(
        "query_classified",
        type=classification.type,
        reasoning=classification.reasoning,
    )
    return classification


async def classify(state: State, runtime: Runtime[AgentContext]) -> dict[str, Any]:
    """Pipeline node: classify the query using its resolved entities."""
    classification = await classify_query(
        state.query,
        state.resolution or EntityResolution(query=state.query),
        client=await runtime.context.services.gemini.get_client(),
        configuration=runtime.context.configuration,
    )
    return {"classification": classification}
