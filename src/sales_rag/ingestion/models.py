"""Domain models produced by extraction and chunking."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ExtractResult(BaseModel):
    """Plain text pulled out of an uploaded file."""

    text: str
    filename: str
    page_count: int | None = None


class ChunkMetadata(BaseModel):
    """Positional / contextual metadata carried by every chunk.

    Serialised with camelCase keys (``sectionTitle``, ``chunkIndex``,
    ``totalChunks``, ``pageNumber``) because that is the shape stored next
    to each vector and read back by the search formatter.

    Attributes
    ----------
    filename:
        Name of the source file.
    section_title:
        Title of the section the chunk was cut from.
    chunk_index:
        0-based emission order across the whole document.
    total_chunks:
        Final chunk count for the document; ``-1`` until patched.
    page_number:
        Page the chunk starts on, when known.
    """

    model_config = ConfigDict(populate_by_name=True)

    filename: str
    section_title: str = Field(alias="sectionTitle")
    chunk_index: int = Field(alias="chunkIndex")
    total_chunks: int = Field(default=-1, alias="totalChunks")
    page_number: int | None = Field(default=None, alias="pageNumber")

    def to_store(self) -> dict[str, Any]:
        """Camel-cased dict without ``None`` values (vector stores reject nulls)."""
        return self.model_dump(by_alias=True, exclude_none=True)


class TextChunk(BaseModel):
    """One chunk of a document: title-prefixed content plus metadata."""

    content: str
    metadata: ChunkMetadata
