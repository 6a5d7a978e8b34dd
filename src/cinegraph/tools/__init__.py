# -----------------------------------------------------------
# GraphRAG system built with Agentic Reasoning
# Reusable tool functions with dependency injection.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""Reusable tool functions with dependency injection."""
