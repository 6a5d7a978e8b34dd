# -----------------------------------------------------------
# GraphRAG system built with Agentic Reasoning
# Reusable Google Gemini generation and embedding functions.
# Pure functions with dependency injection; clients are always passed in.
#
# (C) 2025-2026 Juan-Francisco Reyes, Cottbus, Germany
# Released under MIT License
# email pacoreyes@protonmail.com
# -----------------------------------------------------------

import json
import random
import re
import time
from typing import Any

import structlog
from google import genai
from google.genai.errors import ClientError

logger = structlog.get_logger()

MAX_RETRIES = 5
BASE_BACKOFF = 2.0

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*\n?")


def extract_text(content: Any) -> str:
    """Reduce a model response payload to its answer text.

    Accepts a plain string or a sequence of blocks (strings or
    ``{"type": ..., "text": ...}`` dicts). Only ``text`` blocks are kept,
    in order; thinking and other block types are dropped.

    Args:
        content: Response content as returned by the model.

    Returns:
        str: The concatenated answer text, stripped.
    """
    if content is None:
        return ""
    if isinstance(content, str):
        return content.strip()
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text") or "")
        return "\n".join(parts).strip()
    return str(content).strip()


def parse_json_text(text: Any) -> Any:
    """Decode JSON emitted by the model, tolerating markdown code fences.

    Values the SDK already parsed (structured output) pass through as-is.

    Args:
        text: Answer text, possibly wrapped in ```json fences, or an
            already-decoded value.

    Returns:
        Any: The decoded JSON value.

    Raises:
        json.JSONDecodeError: If the text is not valid JSON once unfenced.
    """
    if not isinstance(text, str):
        return text
    cleaned = _FENCE_PATTERN.sub("", text.strip()).replace("```", "").strip()
    return json.loads(cleaned)


def _response_blocks(response: Any) -> list[dict]:
    """Turn a Gemini response into typed blocks, tagging thought parts."""
    candidates = getattr(response, "candidates", None) or []
    content = candidates[0].content if candidates else None
    parts = getattr(content, "parts", None) if content is not None else None
    if not parts:
        return [{"type": "text", "text": response.text or ""}]

    blocks = []
    for part in parts:
        if part.text is None:
            continue
        block_type = "thinking" if getattr(part, "thought", False) else "text"
        blocks.append({"type": block_type, "text": part.text})
    return blocks


def gemini_generate(
    client: genai.Client,
    prompt: str,
    system_instruction: str | None = None,
    model: str = "gemini-2.5-flash",
    temperature: float = 0.0,
    response_mime_type: str = "text/plain",
    response_schema: Any | None = None,
) -> Any:
    """Generate an answer with Google Gemini, retrying on rate limits.

    Uses exponential backoff with jitter on 429 (rate limit) errors.
    This function is synchronous; callers wrap it with
    ``asyncio.to_thread`` to avoid blocking the event loop.

    JSON calls return ``response.parsed`` when the SDK filled it in (a
    ``response_schema`` was given); otherwise the answer text comes back
    and callers decode it with ``parse_json_text``.

    Args:
        client: Gemini client instance (injected).
        prompt: User prompt.
        system_instruction: Optional system instruction/persona.
        model: Gemini generation model name.
        temperature: Sampling temperature.
        response_mime_type: Output MIME type (e.g., "application/json").
        response_schema: Optional Pydantic or JSON schema for structured
            output; implies a JSON response.

    Returns:
        Any: The parsed object for structured calls, else the answer text
        with thinking parts removed.
    """
    if response_schema is not None:
        response_mime_type = "application/json"
    config: dict[str, Any] = {"response_mime_type": response_mime_type}
    if response_schema is not None:
        config["response_schema"] = response_schema

    for attempt in range(MAX_RETRIES):
        try:
            response = client.models.generate_content(
                model=model,
                contents=prompt,
                config=genai.types.GenerateContentConfig(
                    system_instruction=system_instruction,
                    temperature=temperature,
                    **config,
                ),
            )

            if response_mime_type == "application/json":
                parsed = getattr(response, "parsed", None)
                if parsed is not None:
                    return parsed
            return extract_text(_response_blocks(response))

        except ClientError as e:
            if getattr(e, "code", 0) == 429:
                if attempt == MAX_RETRIES - 1:
                    logger.error(
                        "gemini_rate_limit_exhausted",
                        attempts=MAX_RETRIES,
                    )
                    raise

                sleep_time = BASE_BACKOFF * (2 ** attempt)
                jitter = random.uniform(0, sleep_time * 0.25)
                total_sleep = sleep_time + jitter
                logger.warning(
                    "gemini_rate_limit_retry",
                    attempt=attempt + 1,
                    max_retries=MAX_RETRIES,
                    sleep_seconds=round(total_sleep, 1),
                )
                time.sleep(total_sleep)
            else:
                raise
        except Exception as e:
            logger.error("gemini_generate_error", error=str(e))
            raise


def gemini_embed(
    client: genai.Client,
    text: str,
    model: str = "gemini-embedding-001",
) -> list[float]:
    """Embed a single text with the Gemini embedding API.

    Args:
        client: Gemini client instance (injected).
        text: Text to embed.
        model: Embedding model; must match the one used to build the index.

    Returns:
        list[float]: The embedding vector.
    """
    response = client.models.embed_content(model=model, contents=text)
    return list(response.embeddings[0].values)
