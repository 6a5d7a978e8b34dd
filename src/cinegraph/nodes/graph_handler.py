"""Graph query handler: plan, compile, execute, and render.

Covers factual lookups, entity descriptions, and relationship paths.
The model only ever emits a JSON plan; Cypher comes from the whitelisted
compiler or from fixed describe/path templates.
"""

import asyncio
import json
from typing import Any

import structlog
from google import genai
from langchain_core.messages import AIMessage
from langgraph.runtime import Runtime
from neo4j import AsyncDriver

from cinegraph.configuration import Configuration
from cinegraph.context import AgentContext
from cinegraph.models import EntityResolution
from cinegraph.state import State
from cinegraph.tools.cypher_templates import (
    CompiledQuery,
    compile_plan,
    describe_query,
    path_query,
)
from cinegraph.tools.gemini import gemini_generate, parse_json_text
from cinegraph.tools.knowledge_graph import query_knowledge_graph
from cinegraph.tools.plan_schema import (
    DescribeStep,
    InvalidPlanError,
    PathStep,
    Plan,
    PlanningError,
    parse_plan,
    validate_plan,
)

logger = structlog.get_logger()

REPHRASE_MESSAGE = "Query planning failed. Please rephrase your question."

PLANNER_PROMPT = """You are a query planner for a movie knowledge graph.

RESOLVED ENTITIES (already verified in the database):
{entity_context}

IMPORTANT: Use the exact full names from above in filter, describe, and path values.
For example, if "Nolan" resolved to Director "Christopher Nolan", use "Christopher Nolan" not "Nolan".

GRAPH SCHEMA:
Nodes: Movie(title,year), Director(name), Actor(name), Genre(name), Theme(name), Award(name,category)
Relationships: Director-[:DIRECTED]->Movie, Actor-[:ACTED_IN]->Movie, Movie-[:BELONGS_TO]->Genre, Movie-[:EXPLORES]->Theme, Movie-[:WON]->Award

OUTPUT a JSON plan using ONLY these step types:

1. "traversal": {{"type":"traversal","from":"Label","rel":"RELATIONSHIP","to":"Label"}}
2. "filter": {{"type":"filter","field":"Label.property","op":"=","value":"some value"}}
   Operators: =, <>, >, <, >=, <=, CONTAINS, STARTS WITH
3. "projection": {{"type":"projection","fields":["Label.property"],"distinct":true}}
4. "aggregation": {{"type":"aggregation","function":"count","field":"Label.property","alias":"name","groupBy":"Label.property"}}
   Functions: count, collect, sum, avg, min, max
5. "sort": {{"type":"sort","field":"Label.property","direction":"ASC"}}
   To sort by an aggregation, use "Label.<alias>" as the field.
6. "limit": {{"type":"limit","value":10}} (1 to 100)
7. "describe": {{"type":"describe","label":"Label","name":"exact node name"}}
   Use alone when the user asks "tell me about X" or "who is X".
8. "path": {{"type":"path","fromLabel":"Label","fromName":"name","toLabel":"Label","toName":"name"}}
   Use alone when the user asks how two entities are related.

RULES:
- Award.name = award type (e.g. "Oscar"), Award.category = specific category (e.g. "Best Picture")
- Always include a projection or aggregation step (unless using describe or path)
- At most one sort and one limit step
- Output ONLY valid JSON. No markdown, no backticks.

EXAMPLES:

"Movies directed by Christopher Nolan":
{{"steps":[
  {{"type":"traversal","from":"Director","rel":"DIRECTED","to":"Movie"}},
  {{"type":"filter","field":"Director.name","op":"=","value":"Christopher Nolan"}},
  {{"type":"projection","fields":["Movie.title","Movie.year"],"distinct":true}}
]}}

"Tell me about Inception":
{{"steps":[{{"type":"describe","label":"Movie","name":"Inception"}}]}}

"How is Leonardo DiCaprio related to Christopher Nolan?":
{{"steps":[{{"type":"path","fromLabel":"Actor","fromName":"Leonardo DiCaprio","toLabel":"Director","toName":"Christopher Nolan"}}]}}

"How many sci-fi movies?":
{{"steps":[
  {{"type":"traversal","from":"Movie","rel":"BELONGS_TO","to":"Genre"}},
  {{"type":"filter","field":"Genre.name","op":"=","value":"Sci-Fi"}},
  {{"type":"aggregation","function":"count","field":"Movie.title","alias":"total_movies"}}
]}}"""

RENDER_SYSTEM_PROMPT = (
    "You are a helpful movie assistant. Respond ONLY in plain English text. "
    "Never respond with JSON or code."
)

RENDER_PROMPT = """Given the question and database results, provide a clear, natural language answer.
Do NOT mention databases, Cypher, JSON, or technical details.
Be informative and thorough: include all relevant details from the results.

Question: {query}

Database Results:
{results}{omitted}"""


def _planner_context(resolution: EntityResolution) -> str:
    lines = [
        f'"{e.search_term}" = {e.label} (exact name in DB: "{e.node_name}")'
        for e in resolution.entities
    ] or ["(none)"]
    if resolution.unresolved:
        lines.append(f"NOT FOUND in database: {', '.join(resolution.unresolved)}")
    return "\n".join(lines)


async def create_query_plan(
    query: str,
    resolution: EntityResolution,
    client: genai.Client,
    configuration: Configuration,
) -> Plan:
    """Ask the model for a JSON plan grounded on the resolved entities.

    Raises:
        PlanningError: If the answer is not a well-formed plan.
        InvalidPlanError: If a step has an unknown type.
    """
    prompt = PLANNER_PROMPT.format(entity_context=_planner_context(resolution))
    text = await asyncio.to_thread(
        gemini_generate,
        client,
        query,
        system_instruction=prompt,
        model=configuration.model,
        temperature=configuration.temperature,
        response_mime_type="application/json",
    )
    try:
        data = parse_json_text(text)
    except json.JSONDecodeError as e:
        logger.error("plan_unparseable", response=str(text)[:300])
        raise PlanningError(REPHRASE_MESSAGE) from e

    try:
        plan = parse_plan(data)
    except PlanningError as e:
        logger.error("plan_malformed", error=str(e), response=str(text)[:300])
        raise PlanningError(REPHRASE_MESSAGE) from e

    logger.info("plan_created", steps=[step.type for step in plan.steps])
    return plan


async def execute_plan(plan: Plan, driver: AsyncDriver) -> list[dict]:
    """Run a plan read-only and return plain result rows.

    A plan opening with a describe or path step runs that template only.
    Empty describe/path results come back as a single ``error`` row.
    """
    validate_plan(plan)
    first = plan.steps[0]

    if isinstance(first, (DescribeStep, PathStep)):
        if len(plan.steps) > 1:
            logger.warning("plan_extra_steps_ignored", ignored=len(plan.steps) - 1)
        if isinstance(first, DescribeStep):
            compiled = describe_query(first.label, first.name)
            not_found = f"No {first.label} named {first.name}"
        else:
            compiled = path_query(first.from_label, first.from_name, first.to_label, first.to_name)
            not_found = f"No connection found between {first.from_name} and {first.to_name}"
        rows = await _run(compiled, driver)
        return rows or [{"error": not_found}]

    return await _run(compile_plan(plan), driver)


async def _run(compiled: CompiledQuery, driver: AsyncDriver) -> list[dict]:
    logger.info("cypher_compiled", cypher=compiled.text, params=list(compiled.params))
    return await query_knowledge_graph(compiled.text, driver=driver, parameters=compiled.params)


async def render_answer(
    query: str,
    rows: list[dict],
    client: genai.Client,
    configuration: Configuration,
) -> str:
    """Have the model phrase result rows as a natural-language answer."""
    shown = rows[: configuration.max_rendered_rows]
    omitted = len(rows) - len(shown)
    prompt = RENDER_PROMPT.format(
        query=query,
        results=json.dumps(shown, indent=2, default=str),
        omitted=f"\n... and {omitted} more results" if omitted > 0 else "",
    )
    return await asyncio.to_thread(
        gemini_generate,
        client,
        prompt,
        system_instruction=RENDER_SYSTEM_PROMPT,
        model=configuration.model,
        temperature=configuration.temperature,
    )


async def handle_graph_query(
    query: str,
    resolution: EntityResolution,
    driver: AsyncDriver,
    client: genai.Client,
    configuration: Configuration | None = None,
) -> str:
    """Answer a query from the knowledge graph.

    Args:
        query: The user's question.
        resolution: Entities resolved for this query.
        driver: Neo4j async driver instance (injected).
        client: Gemini client instance (injected).
        configuration: Runtime configuration.

    Returns:
        str: The answer, or a "couldn't find" message when nothing matched.

    Raises:
        PlanningError: If the model's plan cannot be parsed.
        InvalidPlanError: If the plan leaves the whitelists.
    """
    configuration = configuration or Configuration()
    plan = await create_query_plan(query, resolution, client, configuration)
    rows = await execute_plan(plan, driver)
    logger.info("graph_results", count=len(rows))

    if not rows or rows[0].get("error"):
        reason = rows[0]["error"] if rows else "No results found"
        return f"I couldn't find an answer: {reason}"

    return await render_answer(query, rows, client, configuration)


async def answer_from_graph(state: State, runtime: Runtime[AgentContext]) -> dict[str, Any]:
    """Pipeline node: answer via the graph handler.

    A plan the model could not express becomes a rephrase request;
    whitelist violations propagate.
    """
    services = runtime.context.services
    try:
        answer = await handle_graph_query(
            state.query,
            state.resolution or EntityResolution(query=state.query),
            driver=await services.neo4j.get_driver(),
            client=await services.gemini.get_client(),
            configuration=runtime.context.configuration,
        )
    except PlanningError as e:
        answer = str(e)
    except InvalidPlanError as e:
        logger.error("plan_rejected", error=str(e), query=state.query)
        raise
    return {"messages": [AIMessage(content=answer)]}
