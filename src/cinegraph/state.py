"""Graph state definition for the movie query pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated, Sequence

from langchain_core.messages import BaseMessage
from langgraph.graph.message import add_messages

from cinegraph.models import Classification, EntityResolution


@dataclass
class State:
    """Per-request pipeline state; nothing here outlives the request."""

    messages: Annotated[Sequence[BaseMessage], add_messages] = field(
        default_factory=list
    )

    # Text of the latest user message
    query: str = ""

    # Set by resolve_entities, read by every later node
    resolution: EntityResolution | None = None

    # Set by classify; drives routing
    classification: Classification | None = None
