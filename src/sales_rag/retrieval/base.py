"""Abstract base class for vector-store backends.

Adding a new backend (pgvector, Qdrant …) only requires subclassing
:class:`VectorStoreBase` and implementing the abstract methods.  The rest
of the retrieval stack is backend-agnostic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from sales_rag.retrieval.models import ChunkRecord, MetadataFilter


class VectorStoreBase(ABC):
    """Backend-agnostic vector-store interface.

    Parameters
    ----------
    collection_name:
        Logical name of the collection / index / namespace.
    """

    def __init__(self, collection_name: str) -> None:
        self.collection_name = collection_name

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def insert_chunks(self, rows: list[ChunkRecord]) -> None:
        """Insert *rows* as-is (at-least-once; no de-duplication)."""
        ...

    @abstractmethod
    def similarity_search(
        self,
        query_embedding: list[float],
        *,
        k: int = 5,
        filters: list[MetadataFilter] | None = None,
        score_threshold: float | None = None,
    ) -> list[dict[str, Any]]:
        """Return at most *k* results matching *query_embedding*.

        Each result dict **must** contain at least:

        * ``"id"`` – chunk identifier
        * ``"content"`` – the textual content
        * ``"score"`` – cosine similarity (higher = more similar)
        * ``"metadata"`` – associated metadata dict

        Results scoring below *score_threshold* are excluded before the
        *k* cap is applied, best matches first.
        """
        ...

    @abstractmethod
    def delete_where(self, filters: list[MetadataFilter]) -> None:
        """Delete every chunk matching *filters*."""
        ...

    @abstractmethod
    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...

    # -- conveniences ---------------------------------------------------------

    def delete_document(self, document_id: str) -> None:
        """Delete all chunks belonging to *document_id*."""
        self.delete_where([MetadataFilter.equals("document_id", document_id)])
