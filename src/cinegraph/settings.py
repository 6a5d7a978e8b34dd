# -----------------------------------------------------------
# GraphRAG system built with Agentic Reasoning
# Application settings loaded from environment variables.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""Application settings loaded from environment variables."""

from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global settings for the application.

    Loaded from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Neo4j
    neo4j_uri: str
    neo4j_username: str
    neo4j_password: SecretStr

    # Gemini (generation and embeddings)
    gemini_api_key: SecretStr

    # Pinecone
    pinecone_api_key: SecretStr
    pinecone_index_name: str = "movies"


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings, read once on first use."""
    return Settings()
