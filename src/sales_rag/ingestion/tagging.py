"""LLM document tagging — optional enrichment after chunks are stored.

Tags are advisory metadata on the document row; a tagging failure is
logged and never fails the ingestion.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from langchain_core.language_models import BaseChatModel

from sales_rag.agent.prompts import build_tagging_prompt
from sales_rag.ingestion.models import TextChunk

logger = logging.getLogger(__name__)

MAX_TAGS = 5
EXCERPT_CHUNKS = 3
EXCERPT_CHARS = 4000


class DocumentTagger:
    """Ask a chat model for up to :data:`MAX_TAGS` short labels."""

    def __init__(self, llm: BaseChatModel) -> None:
        self._llm = llm

    def tag(self, filename: str, chunks: list[TextChunk]) -> list[str]:
        if not chunks:
            return []
        excerpt = "\n\n".join(chunk.content for chunk in chunks[:EXCERPT_CHUNKS])[:EXCERPT_CHARS]
        response = self._llm.invoke(build_tagging_prompt(filename, excerpt))
        tags = _normalise_tags(_safe_parse_json(str(response.content)).get("tags"))
        logger.info("Tagged %s with %s", filename, tags)
        return tags


def _normalise_tags(raw: Any) -> list[str]:
    if not isinstance(raw, list):
        return []
    tags: list[str] = []
    for item in raw:
        if not isinstance(item, str):
            continue
        tag = item.strip().lower()
        if tag and tag not in tags:
            tags.append(tag)
    return tags[:MAX_TAGS]


def _safe_parse_json(text: str) -> dict[str, Any]:
    """Best-effort JSON parsing with graceful fallback.

    LLMs occasionally return JSON wrapped in markdown fences or with
    trailing commentary.  This helper strips common wrappers before
    parsing.
    """
    cleaned = text.strip()
    # Strip ```json … ``` wrappers
    if cleaned.startswith("```"):
        first_newline = cleaned.index("\n") if "\n" in cleaned else 3
        cleaned = cleaned[first_newline + 1 :]
        if cleaned.endswith("```"):
            cleaned = cleaned[:-3]
        cleaned = cleaned.strip()
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        logger.warning("Could not parse tagging JSON, ignoring: %.200s", text)
        return {}
    return parsed if isinstance(parsed, dict) else {}
