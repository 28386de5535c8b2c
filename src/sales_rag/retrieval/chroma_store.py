"""Chroma implementation of the vector-store abstraction."""

from __future__ import annotations

import logging
from typing import Any

import chromadb

from sales_rag.config import settings
from sales_rag.retrieval.base import VectorStoreBase
from sales_rag.retrieval.models import ChunkRecord, MetadataFilter

logger = logging.getLogger(__name__)

_OP_MAP = {
    "eq": "$eq",
    "ne": "$ne",
    "gt": "$gt",
    "gte": "$gte",
    "lt": "$lt",
    "lte": "$lte",
    "in": "$in",
    "nin": "$nin",
}


def _build_chroma_where(filters: list[MetadataFilter]) -> dict[str, Any] | None:
    """Convert a list of :class:`MetadataFilter` to Chroma ``where`` syntax."""
    if not filters:
        return None

    clauses: list[dict[str, Any]] = []
    for f in filters:
        chroma_op = _OP_MAP.get(f.operator)
        if chroma_op is None:
            raise ValueError(f"Unsupported filter operator: {f.operator!r}")
        clauses.append({f.field: {chroma_op: f.value}})

    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def _flatten_metadata(row: ChunkRecord) -> dict[str, Any]:
    """Chroma metadata values must be flat str/int/float/bool."""
    meta: dict[str, Any] = {"document_id": row.document_id, "product_id": row.product_id}
    for key, value in row.metadata.items():
        if isinstance(value, (str, int, float, bool)):
            meta[key] = value
    return meta


class ChromaVectorStore(VectorStoreBase):
    """Chroma-backed chunk store using cosine distance.

    Parameters
    ----------
    collection_name:
        Name of the Chroma collection.
    host:
        Chroma server hostname.
    port:
        Chroma server port.
    client:
        Pre-built Chroma client (e.g. ``chromadb.EphemeralClient()`` in
        tests).  When given, *host* and *port* are ignored.
    """

    def __init__(
        self,
        collection_name: str = settings.chroma_collection,
        *,
        host: str = settings.chroma_host,
        port: int = settings.chroma_port,
        client: Any = None,
    ) -> None:
        super().__init__(collection_name)
        self._client = client if client is not None else chromadb.HttpClient(host=host, port=port)
        self._collection = self._client.get_or_create_collection(
            collection_name,
            metadata={"hnsw:space": "cosine"},
        )

    # -- VectorStoreBase overrides --------------------------------------------

    def insert_chunks(self, rows: list[ChunkRecord]) -> None:
        if not rows:
            return
        self._collection.add(
            ids=[r.id for r in rows],
            embeddings=[r.embedding for r in rows],
            documents=[r.content for r in rows],
            metadatas=[_flatten_metadata(r) for r in rows],
        )
        logger.debug("Inserted %d chunk(s) into %s", len(rows), self.collection_name)

    def similarity_search(
        self,
        query_embedding: list[float],
        *,
        k: int = 5,
        filters: list[MetadataFilter] | None = None,
        score_threshold: float | None = None,
    ) -> list[dict[str, Any]]:
        where = _build_chroma_where(filters) if filters else None

        results = self._collection.query(
            query_embeddings=[query_embedding],
            n_results=k,
            where=where,
            include=["documents", "metadatas", "distances"],
        )

        hits: list[dict[str, Any]] = []
        ids = results.get("ids", [[]])[0]
        docs = (results.get("documents") or [[]])[0]
        metas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]

        for chunk_id, content, meta, dist in zip(ids, docs, metas, distances):
            # cosine space: distance = 1 - cosine similarity
            score = 1.0 - dist
            if score_threshold is not None and score < score_threshold:
                continue
            hits.append(
                {
                    "id": chunk_id,
                    "content": content or "",
                    "score": score,
                    "metadata": dict(meta or {}),
                }
            )
        hits.sort(key=lambda h: h["score"], reverse=True)
        return hits[:k]

    def delete_where(self, filters: list[MetadataFilter]) -> None:
        self._collection.delete(where=_build_chroma_where(filters))

    def health_check(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False
