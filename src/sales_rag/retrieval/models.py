"""Domain models for stored chunks and search results."""

from __future__ import annotations

from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


class MetadataFilter(BaseModel):
    """Declarative metadata filter for vector-store queries.

    Attributes
    ----------
    field:
        The metadata key to filter on (e.g. ``"product_id"``).
    operator:
        Comparison operator — one of ``eq``, ``ne``, ``gt``, ``gte``,
        ``lt``, ``lte``, ``in``, ``nin``.
    value:
        The value (or list of values for ``in`` / ``nin``) to compare against.
    """

    field: str
    operator: str = "eq"
    value: Any = None

    # -- helpers for common filters ------------------------------------------

    @classmethod
    def equals(cls, field: str, value: Any) -> MetadataFilter:
        return cls(field=field, operator="eq", value=value)

    @classmethod
    def one_of(cls, field: str, values: list[Any]) -> MetadataFilter:
        return cls(field=field, operator="in", value=values)


class ChunkRecord(BaseModel):
    """One row written to the vector store.

    ``product_id`` is denormalised from the parent document so searches
    can filter on the namespace without a join.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    document_id: str
    product_id: str
    content: str
    embedding: list[float]
    metadata: dict[str, Any] = Field(default_factory=dict)


class SearchResult(BaseModel):
    """A chunk returned by a namespace-filtered similarity search."""

    id: str
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    similarity: float

    def source_label(self) -> str:
        """``"<filename> › <section title>"``, or ``"unknown"``."""
        parts = [self.metadata.get("filename"), self.metadata.get("sectionTitle")]
        label = " › ".join(str(p) for p in parts if p)
        return label or "unknown"
