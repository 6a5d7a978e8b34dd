# -----------------------------------------------------------
# GraphRAG system built with Agentic Reasoning
# Chainlit chat UI wired to the movie query pipeline.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

from functools import lru_cache

import chainlit as cl
import structlog
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage

from cinegraph.context import AgentContext
from cinegraph.graph import graph
from cinegraph.infrastructure.clients import build_services
from cinegraph.settings import get_settings
from cinegraph.tools.plan_schema import InvalidPlanError

logger = structlog.get_logger(__name__)

REJECTED_PLAN_REPLY = "I can't answer that safely. Please rephrase your question."


@lru_cache
def get_context() -> AgentContext:
    """Build the process-wide client context on first use."""
    return AgentContext(services=build_services(get_settings()))


def _extract_ai_response(messages: list[BaseMessage]) -> str:
    """Return the content of the last AIMessage in *messages*.

    Args:
        messages: Sequence of LangChain messages returned by the graph.

    Returns:
        str: The text content of the last AIMessage, or a fallback string
            if no AIMessage is found.
    """
    for msg in reversed(messages):
        if isinstance(msg, AIMessage):
            return str(msg.content)
    return "No response generated."


@cl.on_app_shutdown
async def on_app_shutdown() -> None:
    """Close database connections when the server stops."""
    await get_context().services.close()


@cl.on_chat_start
async def on_chat_start() -> None:
    """Initialize an empty message history for the new session."""
    cl.user_session.set("history", [])
    logger.info("chat_session_started")


@cl.on_message
async def on_message(message: cl.Message) -> None:
    """Handle an incoming user message.

    Appends the message to session history, runs the pipeline, sends the
    answer, and stores the updated history. A rejected plan stores the
    refusal as the reply so the history keeps alternating turns.

    Args:
        message: The Chainlit message object from the user.
    """
    history: list[BaseMessage] = cl.user_session.get("history")
    history.append(HumanMessage(content=message.content))

    logger.info("invoking_graph", num_messages=len(history))
    try:
        result = await graph.ainvoke({"messages": history}, context=get_context())
    except InvalidPlanError:
        history.append(AIMessage(content=REJECTED_PLAN_REPLY))
        cl.user_session.set("history", history)
        await cl.Message(content=REJECTED_PLAN_REPLY).send()
        return

    reply = _extract_ai_response(result["messages"])
    cl.user_session.set("history", list(result["messages"]))

    await cl.Message(content=reply).send()
    logger.info("response_sent", reply_length=len(reply))
