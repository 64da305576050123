"""
LLM access shared by semantic validation and report generation.

Replies are expected to be a single JSON object, optionally wrapped in a
markdown code fence.
"""

import json
import logging
import re
from pathlib import Path

from openai import AsyncOpenAI

from leadflow.config import settings

logger = logging.getLogger(__name__)


def build_client() -> AsyncOpenAI | None:
    """Build the AsyncOpenAI client, optionally with a custom base URL."""
    if not settings.openai_api_key:
        return None
    kwargs: dict = {"api_key": settings.openai_api_key}
    if settings.openai_base_url:
        kwargs["base_url"] = settings.openai_base_url
    return AsyncOpenAI(**kwargs)


async def complete_json(
    client: AsyncOpenAI | None,
    *,
    system_prompt: str,
    user_prompt: str,
    temperature: float,
    max_tokens: int,
    model: str | None = None,
) -> dict:
    """
    Run one chat completion and decode the reply as a JSON object.
    Raises on a missing client, an empty reply or non-object JSON.
    """
    if client is None:
        raise RuntimeError("LLM client not configured (OPENAI_API_KEY unset)")

    response = await client.chat.completions.create(
        model=model or settings.openai_model,
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        temperature=temperature,
        max_tokens=max_tokens,
    )

    content = response.choices[0].message.content
    if not content:
        raise ValueError("LLM returned empty response")

    data = json.loads(strip_markdown_json(content))
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def strip_markdown_json(text: str) -> str:
    """Remove ```json ... ``` wrapper if present."""
    text = text.strip()
    if text.startswith("```"):
        text = re.sub(r"^```(?:json)?\s*", "", text)
        text = re.sub(r"\s*```$", "", text)
    return text


def load_product_reference() -> str:
    """Optional product reference document appended to prompts."""
    if not settings.product_reference_path:
        return ""
    try:
        return Path(settings.product_reference_path).read_text(encoding="utf-8")
    except OSError:
        logger.warning("Product reference not readable: %s", settings.product_reference_path)
        return ""
