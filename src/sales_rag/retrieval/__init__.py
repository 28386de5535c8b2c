"""
Retrieval — product-scoped vector search and context formatting.

This module wraps the vector store behind a clean interface so that
the agent layer never needs to know which DB is backing retrieval.

Public surface
--------------
- :class:`ProductSearcher` — namespace-filtered search with a threshold.
- :func:`format_search_results` — LLM-facing context block.
- :class:`VectorStoreBase` — abstract backend (subclass for pgvector, etc.).
- :class:`ChromaVectorStore` — default Chroma backend.
- :class:`ChunkRecord`, :class:`SearchResult`, :class:`MetadataFilter` — data models.
"""

from sales_rag.retrieval.base import VectorStoreBase
from sales_rag.retrieval.models import ChunkRecord, MetadataFilter, SearchResult
from sales_rag.retrieval.search import ProductSearcher, format_search_results

__all__ = [
    "ChromaVectorStore",
    "ChunkRecord",
    "MetadataFilter",
    "ProductSearcher",
    "SearchResult",
    "VectorStoreBase",
    "format_search_results",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import ChromaVectorStore to avoid pulling in chromadb at import time."""
    if name == "ChromaVectorStore":
        from sales_rag.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
