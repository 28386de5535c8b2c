"""Section-aware sliding-window chunking.

Text is first split into titled sections (markdown ``#`` headings or short
ALL-CAPS lines).  Sections that fit the token budget become one chunk;
longer ones are covered by overlapping word windows.  Every chunk is
prefixed with ``[<section title>]`` so the title survives retrieval.
"""

from __future__ import annotations

import logging
import math
import re

from sales_rag.errors import ChunkingError
from sales_rag.ingestion.models import ChunkMetadata, TextChunk

logger = logging.getLogger(__name__)

CHUNK_SIZE = 512  # tokens
CHUNK_OVERLAP = 128  # tokens
CHARS_PER_TOKEN = 4
DEFAULT_SECTION_TITLE = "Introduction"

_HEADING_MARKER = re.compile(r"^#+\s*")
_HAS_LETTER = re.compile(r"[A-Z]")


def estimate_tokens(text: str) -> int:
    """Rough token count: ~4 characters per token, rounded up."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def is_section_heading(line: str) -> bool:
    """Whether a (stripped) line opens a new section."""
    if line.startswith("#"):
        return True
    return 3 < len(line) < 80 and line == line.upper() and bool(_HAS_LETTER.search(line))


def split_into_sections(text: str) -> list[tuple[str, str]]:
    """Split *text* into ``(title, content)`` pairs, dropping empty sections."""
    sections: list[tuple[str, str]] = []
    current_title = DEFAULT_SECTION_TITLE
    current_lines: list[str] = []

    for line in text.split("\n"):
        trimmed = line.strip()
        if is_section_heading(trimmed):
            if current_lines:
                sections.append((current_title, "\n".join(current_lines).strip()))
                current_lines = []
            current_title = _HEADING_MARKER.sub("", trimmed)
        else:
            current_lines.append(line)

    if current_lines:
        sections.append((current_title, "\n".join(current_lines).strip()))

    return [(title, content) for title, content in sections if content]


def window_section(content: str, title: str) -> list[str]:
    """Cover a long section with overlapping word windows.

    Window and overlap sizes are converted from tokens to words using this
    section's own tokens-per-word ratio.
    """
    words = content.split()
    tokens_per_word = estimate_tokens(content) / (len(words) or 1)
    words_per_chunk = max(1, math.floor(CHUNK_SIZE / tokens_per_word))
    overlap_words = math.floor(CHUNK_OVERLAP / tokens_per_word)

    chunks: list[str] = []
    start = 0
    while start < len(words):
        end = min(start + words_per_chunk, len(words))
        window = " ".join(words[start:end])
        if window.strip():
            chunks.append(f"[{title}]\n{window}")
        if end >= len(words):
            break
        start = max(end - overlap_words, 0)
    return chunks


def chunk_text(text: str, filename: str, page_count: int | None = None) -> list[TextChunk]:
    """Split extracted *text* into ordered chunks with metadata.

    Deterministic for identical input.  ``chunk_index`` is assigned in
    emission order across the whole document and ``total_chunks`` is
    patched on every chunk once the final count is known.

    Parameters
    ----------
    text:
        Extracted document text.
    filename:
        Source file name, copied into every chunk's metadata.
    page_count:
        Page count reported by the extractor (logged only; chunks are
        not page-aligned).

    Raises
    ------
    ChunkingError
        If anything unexpected goes wrong while chunking.
    """
    try:
        result: list[TextChunk] = []
        for title, content in split_into_sections(text):
            if estimate_tokens(content) <= CHUNK_SIZE:
                pieces = [f"[{title}]\n{content}"]
            else:
                pieces = window_section(content, title)
            for piece in pieces:
                result.append(
                    TextChunk(
                        content=piece,
                        metadata=ChunkMetadata(
                            filename=filename,
                            section_title=title,
                            chunk_index=len(result),
                        ),
                    )
                )

        total = len(result)
        for chunk in result:
            chunk.metadata.total_chunks = total
    except Exception as exc:
        raise ChunkingError(f"Failed to chunk {filename}: {exc}") from exc

    logger.info(
        "Chunked %s into %d chunk(s) (pages=%s)",
        filename,
        len(result),
        page_count if page_count is not None else "n/a",
    )
    return result
