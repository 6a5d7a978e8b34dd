"""Live tests against the movie graph, the vector index, and Gemini.

These tests hit real services using credentials from .env.
Run explicitly: python -m pytest tests/integration_tests -v -m integration
"""

import pytest
from langchain_core.messages import AIMessage, HumanMessage

from cinegraph.context import AgentContext
from cinegraph.graph import graph
from cinegraph.infrastructure.clients import build_services
from cinegraph.settings import get_settings
from cinegraph.tools.gemini import gemini_embed
from cinegraph.tools.knowledge_graph import query_knowledge_graph

pytestmark = [pytest.mark.anyio, pytest.mark.integration]


@pytest.fixture
async def services():
    services = build_services(get_settings())
    yield services
    await services.close()


async def test_neo4j_connectivity(services):
    """Verify the graph answers a read-only ping."""
    driver = await services.neo4j.get_driver()
    rows = await query_knowledge_graph("RETURN 1 AS ping", driver=driver)
    assert rows == [{"ping": 1}]


async def test_movie_index_exists(services):
    """Verify the configured Pinecone index is reachable."""
    pc = await services.pinecone.get_client()
    names = [idx.name for idx in pc.list_indexes()]
    assert services.pinecone.index_name in names


async def test_gemini_embedding_connectivity(services):
    """Verify embeddings come back non-empty."""
    client = await services.gemini.get_client()
    vector = gemini_embed(client, "Inception")
    assert len(vector) > 0


async def test_pipeline_answers_a_graph_question(services):
    """Run one question through every node."""
    result = await graph.ainvoke(
        {"messages": [HumanMessage(content="Which movies did Christopher Nolan direct?")]},
        context=AgentContext(services=services),
    )
    assert isinstance(result["messages"][-1], AIMessage)
    assert result["messages"][-1].content
