"""LangGraph pipeline definition for movie questions.

Resolves entities, classifies the query, then routes to the graph
handler (Neo4j) or the similarity handler (Pinecone cross-checked
against Neo4j).
"""

from langgraph.graph import END, START, StateGraph

from cinegraph.context import AgentContext
from cinegraph.nodes.classifier import classify
from cinegraph.nodes.entity_resolver import resolve_entities
from cinegraph.nodes.graph_handler import answer_from_graph
from cinegraph.nodes.similarity_handler import answer_from_similarity
from cinegraph.state import State


def route_by_classification(state: State) -> str:
    """Route to the handler chosen by the classifier.

    Args:
        state: Current graph state with classification set.

    Returns:
        str: Node name to execute next.
    """
    if state.classification is not None and state.classification.type == "similarity":
        return "answer_from_similarity"
    return "answer_from_graph"


# Build the graph
builder = StateGraph(State, context_schema=AgentContext)

builder.add_node("resolve_entities", resolve_entities)
builder.add_node("classify", classify)
builder.add_node("answer_from_graph", answer_from_graph)
builder.add_node("answer_from_similarity", answer_from_similarity)

# Flow: START -> resolve_entities -> classify -> handler -> END
builder.add_edge(START, "resolve_entities")
builder.add_edge("resolve_entities", "classify")
builder.add_conditional_edges(
    "classify",
    route_by_classification,
    {
        "answer_from_graph": "answer_from_graph",
        "answer_from_similarity": "answer_from_similarity",
    },
)
builder.add_edge("answer_from_graph", END)
builder.add_edge("answer_from_similarity", END)

graph = builder.compile()
