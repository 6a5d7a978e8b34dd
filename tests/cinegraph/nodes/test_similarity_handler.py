# -----------------------------------------------------------
# GraphRAG system built with Agentic Reasoning
# Tests for the similarity handler.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

"""Tests for the similarity handler."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from cinegraph.configuration import Configuration
from cinegraph.models import EntityResolution, ResolvedEntity
from cinegraph.nodes.similarity_handler import (
    GENRE_OVERLAP_QUERY,
    MOVIE_GENRES_QUERY,
    MOVIE_THEMES_QUERY,
    answer_from_similarity,
    extract_title,
    handle_similarity_query,
)
from cinegraph.state import State

pytestmark = pytest.mark.anyio

INCEPTION = ResolvedEntity(
    search_term="Inception", label="Movie", node_name="Inception", match_type="exact"
)

# Genres stored in the graph for each candidate title
MOVIE_GENRES = {
    "Inception": ["Sci-Fi", "Thriller"],
    "Interstellar": ["Sci-Fi", "Drama"],
    "Memento": ["Thriller", "Mystery"],
    "The Notebook": ["Romance", "Drama"],
    "Paddington": ["Comedy", "Family"],
}


def _chunk(title, score):
    return {
        "id": f"{title}-0",
        "score": score,
        "metadata": {"text": f"Movie Title: {title}\nPlot: something about {title}."},
    }


def _fake_graph(genres=MOVIE_GENRES, themes=("Dreams",)):
    """Answer the handler's three graph queries from an in-memory map."""

    async def query(cypher, driver, parameters=None):
        if cypher == MOVIE_GENRES_QUERY:
            return [{"genre": g} for g in genres.get(parameters["title"], [])]
        if cypher == MOVIE_THEMES_QUERY:
            return [{"theme": t} for t in themes]
        if cypher == GENRE_OVERLAP_QUERY:
            return [
                {"title": title, "genres": genres[title]}
                for title in parameters["titles"]
                if title in genres and set(genres[title]) & set(parameters["source_genres"])
            ]
        raise AssertionError(f"unexpected query: {cypher}")

    return AsyncMock(side_effect=query)


def _resolution(*entities):
    return EntityResolution(query="q", entities=list(entities))


def test_extract_title_reads_title_line():
    assert extract_title("Movie Title: The Dark Knight\nYear: 2008") == "The Dark Knight"


def test_extract_title_missing_line():
    assert extract_title("Plot: a man dreams") is None
    assert extract_title("") is None


@patch("cinegraph.nodes.similarity_handler.gemini_generate")
@patch("cinegraph.nodes.similarity_handler.vector_search")
@patch("cinegraph.nodes.similarity_handler.gemini_embed")
@patch("cinegraph.nodes.similarity_handler.query_knowledge_graph")
async def test_disjoint_genre_candidates_are_excluded(mock_query, mock_embed, mock_search, mock_generate):
    mock_query.side_effect = _fake_graph().side_effect
    mock_embed.return_value = [0.1, 0.2]
    mock_search.return_value = [
        _chunk("Inception", 0.99),
        _chunk("The Notebook", 0.9),
        _chunk("Interstellar", 0.85),
        _chunk("Interstellar", 0.84),
        _chunk("Paddington", 0.8),
        _chunk("Memento", 0.7),
    ]
    mock_generate.return_value = "1. Interstellar\n2. Memento"

    answer = await handle_similarity_query(
        "Movies like Inception", _resolution(INCEPTION),
        driver=MagicMock(), client=MagicMock(), pinecone=MagicMock(), index_name="movies",
    )

    assert answer == "1. Interstellar\n2. Memento"

    # Embeds the canonical title and fetches the top 50
    assert mock_embed.call_args.args[1] == "Inception"
    assert mock_search.call_args.kwargs["top_k"] == 50

    # Source excluded and repeats collapsed before the genre check
    overlap_call = mock_query.call_args_list[-1]
    assert overlap_call.kwargs["parameters"]["titles"] == [
        "The Notebook", "Interstellar", "Paddington", "Memento",
    ]
    assert overlap_call.kwargs["parameters"]["source_genres"] == ["Sci-Fi", "Thriller"]

    prompt = mock_generate.call_args.args[1]
    assert "Interstellar [Genres: Sci-Fi, Drama]" in prompt
    assert "Memento [Genres: Thriller, Mystery]" in prompt
    assert "The Notebook" not in prompt
    assert "Paddington" not in prompt
    assert "Themes: Dreams" in prompt
    assert prompt.index("Interstellar") < prompt.index("Memento")


@patch("cinegraph.nodes.similarity_handler.gemini_generate")
@patch("cinegraph.nodes.similarity_handler.vector_search")
@patch("cinegraph.nodes.similarity_handler.gemini_embed")
@patch("cinegraph.nodes.similarity_handler.query_knowledge_graph")
async def test_no_survivors_explains_why(mock_query, mock_embed, mock_search, mock_generate):
    mock_query.side_effect = _fake_graph().side_effect
    mock_embed.return_value = [0.1]
    mock_search.return_value = [_chunk("The Notebook", 0.9), _chunk("Paddington", 0.8)]

    answer = await handle_similarity_query(
        "Movies like Inception", _resolution(INCEPTION),
        driver=MagicMock(), client=MagicMock(), pinecone=MagicMock(), index_name="movies",
    )

    assert "none share genres" in answer
    assert '"Inception" (Sci-Fi, Thriller)' in answer
    mock_generate.assert_not_called()


@patch("cinegraph.nodes.similarity_handler.vector_search")
@patch("cinegraph.nodes.similarity_handler.gemini_embed")
@patch("cinegraph.nodes.similarity_handler.query_knowledge_graph")
async def test_no_vector_matches(mock_query, mock_embed, mock_search):
    mock_embed.return_value = [0.1]
    mock_search.return_value = []

    answer = await handle_similarity_query(
        "Movies like Inception", _resolution(INCEPTION),
        driver=MagicMock(), client=MagicMock(), pinecone=MagicMock(), index_name="movies",
    )

    assert answer == "I couldn't find any similar movies."
    mock_query.assert_not_called()


@patch("cinegraph.nodes.similarity_handler.gemini_generate")
@patch("cinegraph.nodes.similarity_handler.vector_search")
@patch("cinegraph.nodes.similarity_handler.gemini_embed")
@patch("cinegraph.nodes.similarity_handler.query_knowledge_graph")
async def test_without_movie_entity_falls_back_to_query_search(mock_query, mock_embed, mock_search, mock_generate):
    mock_embed.return_value = [0.3]
    mock_search.return_value = [_chunk("Memento", 0.8)]
    mock_generate.return_value = "1. Memento"
    director = ResolvedEntity(
        search_term="Nolan", label="Director", node_name="Christopher Nolan", match_type="partial"
    )

    answer = await handle_similarity_query(
        "Something mind-bending like Nolan makes", _resolution(director),
        driver=MagicMock(), client=MagicMock(), pinecone=MagicMock(), index_name="movies",
    )

    assert answer == "1. Memento"
    assert mock_embed.call_args.args[1] == "Something mind-bending like Nolan makes"
    assert mock_search.call_args.kwargs["top_k"] == 20
    mock_query.assert_not_called()


@patch("cinegraph.nodes.similarity_handler.vector_search")
@patch("cinegraph.nodes.similarity_handler.gemini_embed")
async def test_fallback_with_no_matches(mock_embed, mock_search):
    mock_embed.return_value = [0.3]
    mock_search.return_value = []

    answer = await handle_similarity_query(
        "Something cozy", _resolution(),
        driver=MagicMock(), client=MagicMock(), pinecone=MagicMock(), index_name="movies",
    )

    assert answer == "I couldn't find any matching movies."


@patch("cinegraph.nodes.similarity_handler.gemini_generate")
@patch("cinegraph.nodes.similarity_handler.vector_search")
@patch("cinegraph.nodes.similarity_handler.gemini_embed")
@patch("cinegraph.nodes.similarity_handler.query_knowledge_graph")
async def test_source_without_genres_falls_back(mock_query, mock_embed, mock_search, mock_generate):
    mock_query.side_effect = _fake_graph(genres={}).side_effect
    mock_embed.return_value = [0.1]
    mock_search.return_value = [_chunk("Memento", 0.8)]
    mock_generate.return_value = "1. Memento"

    answer = await handle_similarity_query(
        "Movies like Inception", _resolution(INCEPTION),
        driver=MagicMock(), client=MagicMock(), pinecone=MagicMock(), index_name="movies",
        configuration=Configuration(fallback_top_k=7),
    )

    assert answer == "1. Memento"
    assert mock_search.call_args.kwargs["top_k"] == 7
    assert mock_embed.call_args.args[1] == "Movies like Inception"


@patch("cinegraph.nodes.similarity_handler.gemini_generate")
@patch("cinegraph.nodes.similarity_handler.vector_search")
@patch("cinegraph.nodes.similarity_handler.gemini_embed")
async def test_answer_from_similarity_node_uses_services(mock_embed, mock_search, mock_generate):
    mock_embed.return_value = [0.3]
    mock_search.return_value = [_chunk("Memento", 0.8)]
    mock_generate.return_value = "1. Memento"
    pinecone = MagicMock()
    services = SimpleNamespace(
        neo4j=SimpleNamespace(get_driver=AsyncMock(return_value=MagicMock())),
        gemini=SimpleNamespace(get_client=AsyncMock(return_value=MagicMock())),
        pinecone=SimpleNamespace(get_client=AsyncMock(return_value=pinecone), index_name="movies-idx"),
    )
    runtime = SimpleNamespace(context=SimpleNamespace(services=services, configuration=Configuration()))

    result = await answer_from_similarity(State(query="Something tense"), runtime)

    assert result["messages"][0].content == "1. Memento"
    assert mock_search.call_args.args[:2] == (pinecone, "movies-idx")
