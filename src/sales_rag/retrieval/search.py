"""Product-scoped semantic search with formatted context for the LLM.

Usage::

    searcher = ProductSearcher(store=ChromaVectorStore(), embeddings=VoyageEmbeddings())
    results = searcher.search(product.id, "refund policy", match_count=3)
    print(format_search_results(results, product.name))
"""

from __future__ import annotations

import logging

from langchain_core.embeddings import Embeddings

from sales_rag.config import settings
from sales_rag.errors import SearchError
from sales_rag.retrieval.base import VectorStoreBase
from sales_rag.retrieval.models import MetadataFilter, SearchResult

logger = logging.getLogger(__name__)


class ProductSearcher:
    """Embed a query in query mode and search one product's chunks.

    Parameters
    ----------
    store:
        Vector-store backend holding every product's chunks.
    embeddings:
        Embedding client; :meth:`Embeddings.embed_query` is used so that
        queries get the asymmetric "query" embedding.
    """

    def __init__(self, store: VectorStoreBase, embeddings: Embeddings) -> None:
        self._store = store
        self._embeddings = embeddings

    def search(
        self,
        product_id: str,
        query: str,
        match_count: int = settings.match_count,
        match_threshold: float = settings.match_threshold,
    ) -> list[SearchResult]:
        """Return up to *match_count* chunks of *product_id*, best first.

        Only chunks with similarity ≥ *match_threshold* are returned; an
        empty list (not an error) means nothing cleared the threshold.

        Raises
        ------
        SearchError
            On any embedding or backend failure.  Not retried here.
        """
        try:
            embedding = self._embeddings.embed_query(query)
            hits = self._store.similarity_search(
                embedding,
                k=match_count,
                filters=[MetadataFilter.equals("product_id", product_id)],
                score_threshold=match_threshold,
            )
        except Exception as exc:
            logger.warning("Search failed for product %s: %s", product_id, exc)
            raise SearchError(product_id, str(exc)) from exc

        results = [
            SearchResult(
                id=str(hit["id"]),
                content=hit.get("content", ""),
                metadata=hit.get("metadata") or {},
                similarity=float(hit["score"]),
            )
            for hit in hits
            if float(hit["score"]) >= match_threshold
        ]
        results.sort(key=lambda r: r.similarity, reverse=True)
        results = results[:match_count]
        logger.info("search(%s, %r) returned %d result(s)", product_id, query, len(results))
        return results


def format_search_results(results: list[SearchResult], product_name: str) -> str:
    """Render *results* as a context block attributed to *product_name*."""
    if not results:
        return f"No relevant information found for {product_name}."

    lines = [f"=== Knowledge from {product_name} ==="]
    for result in results:
        lines.append(f"\n[Source: {result.source_label()}] (similarity: {result.similarity:.2f})")
        lines.append(result.content)
    return "\n".join(lines)
