"""Shared pytest configuration and fixtures.

The fakes here replace every external service (Chroma, Voyage, the chat
model) so the unit suite runs offline.
"""

from __future__ import annotations

import hashlib
import math
import re
from typing import Any

import pytest
from langchain_core.embeddings import Embeddings

from sales_rag.db import CatalogRepository, create_db_engine, create_session_factory, init_db
from sales_rag.retrieval.base import VectorStoreBase
from sales_rag.retrieval.models import ChunkRecord, MetadataFilter
from sales_rag.storage import LocalObjectStorage


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fakes ──────────────────────────────────────────────────────────────


class HashEmbeddings(Embeddings):
    """Deterministic bag-of-words embeddings; records which mode was used."""

    dim = 64

    def __init__(self) -> None:
        self.calls: list[tuple[str, int]] = []

    def _vector(self, text: str) -> list[float]:
        vec = [0.0] * self.dim
        for token in re.findall(r"[a-z0-9]+", text.lower()):
            bucket = int(hashlib.md5(token.encode()).hexdigest(), 16) % self.dim
            vec[bucket] += 1.0
        norm = math.sqrt(sum(v * v for v in vec)) or 1.0
        return [v / norm for v in vec]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(("document", len(texts)))
        return [self._vector(t) for t in texts]

    def embed_query(self, text: str) -> list[float]:
        self.calls.append(("query", 1))
        return self._vector(text)


class InMemoryVectorStore(VectorStoreBase):
    """Cosine-similarity store over a plain list; supports ``eq`` / ``in`` filters."""

    def __init__(self) -> None:
        super().__init__("memory")
        self.rows: list[ChunkRecord] = []
        self.insert_batches: list[int] = []

    @staticmethod
    def _matches(row: ChunkRecord, filters: list[MetadataFilter]) -> bool:
        fields = {"document_id": row.document_id, "product_id": row.product_id, **row.metadata}
        for f in filters:
            value = fields.get(f.field)
            if f.operator == "eq" and value != f.value:
                return False
            if f.operator == "in" and value not in f.value:
                return False
        return True

    def insert_chunks(self, rows: list[ChunkRecord]) -> None:
        self.insert_batches.append(len(rows))
        self.rows.extend(rows)

    def similarity_search(
        self,
        query_embedding: list[float],
        *,
        k: int = 5,
        filters: list[MetadataFilter] | None = None,
        score_threshold: float | None = None,
    ) -> list[dict[str, Any]]:
        hits = []
        for row in self.rows:
            if filters and not self._matches(row, filters):
                continue
            score = sum(a * b for a, b in zip(query_embedding, row.embedding))
            if score_threshold is not None and score < score_threshold:
                continue
            hits.append(
                {
                    "id": row.id,
                    "content": row.content,
                    "score": score,
                    "metadata": {"document_id": row.document_id, "product_id": row.product_id, **row.metadata},
                }
            )
        hits.sort(key=lambda h: h["score"], reverse=True)
        return hits[:k]

    def delete_where(self, filters: list[MetadataFilter]) -> None:
        self.rows = [r for r in self.rows if not self._matches(r, filters)]

    def health_check(self) -> bool:
        return True


# ── Fixtures ───────────────────────────────────────────────────────────


@pytest.fixture()
def repository(tmp_path) -> CatalogRepository:  # noqa: ANN001
    """Catalog backed by a throw-away SQLite file."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'catalog.db'}")
    init_db(engine)
    return CatalogRepository(create_session_factory(engine))


@pytest.fixture()
def database_url(tmp_path) -> str:  # noqa: ANN001
    url = f"sqlite:///{tmp_path / 'components.db'}"
    init_db(create_db_engine(url))
    return url


@pytest.fixture()
def object_storage(tmp_path) -> LocalObjectStorage:  # noqa: ANN001
    return LocalObjectStorage(tmp_path / "objects")


@pytest.fixture()
def memory_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture()
def hash_embeddings() -> HashEmbeddings:
    return HashEmbeddings()
