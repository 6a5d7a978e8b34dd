# -----------------------------------------------------------
# GraphRAG system built with Agentic Reasoning
# Runtime context handed to every pipeline node.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""Runtime context handed to every pipeline node."""

from __future__ import annotations

from dataclasses import dataclass, field

from cinegraph.configuration import Configuration
from cinegraph.infrastructure.clients import Services


@dataclass(frozen=True)
class AgentContext:
    """Shared client handles plus runtime configuration for one graph run."""

    services: Services
    configuration: Configuration = field(default_factory=Configuration)
