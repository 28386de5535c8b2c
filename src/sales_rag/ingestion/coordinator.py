"""Ingestion coordinator — raw file in object storage to searchable chunks.

Per document the lifecycle is ``pending → processing → completed | failed``.
The work is split into named steps::

    mark-processing → download → extract-and-chunk → embed → store → mark-completed

Two execution modes share those steps:

* :meth:`IngestionCoordinator.ingest` runs them once, in sequence, with
  no step-level retry or resume.
* :meth:`IngestionCoordinator.run_durable` retries each step up to
  ``max_step_attempts`` times and persists every completed step's result
  so :meth:`IngestionCoordinator.resume` can continue after a crash
  without redoing finished work.

Every step is safe to replay: ``store`` removes the document's previous
chunks before inserting, so a retried run recreates them instead of
assuming partial prior state.
"""

from __future__ import annotations

import base64
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from langchain_core.embeddings import Embeddings

from sales_rag.config import settings
from sales_rag.db.models import DocumentStatus
from sales_rag.db.repository import CatalogRepository
from sales_rag.errors import IngestionFailure
from sales_rag.ingestion.chunker import chunk_text
from sales_rag.ingestion.extractor import extract_text
from sales_rag.ingestion.models import TextChunk
from sales_rag.ingestion.tagging import DocumentTagger
from sales_rag.retrieval.base import VectorStoreBase
from sales_rag.retrieval.models import ChunkRecord
from sales_rag.storage import ObjectStorage

logger = logging.getLogger(__name__)

STEP_MARK_PROCESSING = "mark-processing"
STEP_DOWNLOAD = "download"
STEP_EXTRACT_AND_CHUNK = "extract-and-chunk"
STEP_EMBED = "embed"
STEP_STORE = "store"
STEP_MARK_COMPLETED = "mark-completed"

STEPS = (
    STEP_MARK_PROCESSING,
    STEP_DOWNLOAD,
    STEP_EXTRACT_AND_CHUNK,
    STEP_EMBED,
    STEP_STORE,
    STEP_MARK_COMPLETED,
)


@dataclass
class IngestionResult:
    document_id: str
    chunk_count: int
    tags: list[str] = field(default_factory=list)


@dataclass
class _Job:
    """Identifiers of the document being ingested."""

    document_id: str
    product_id: str
    storage_location: str
    filename: str


class IngestionCoordinator:
    """Run the ingestion steps for one document at a time.

    Parameters
    ----------
    repository:
        Catalog access for status updates and durable step results.
    storage:
        Where the raw uploaded file lives.
    embeddings:
        Embedding client; used in document mode.
    store:
        Vector-store backend receiving the chunk rows.
    tagger:
        Optional :class:`DocumentTagger`; tagging failures never fail ingestion.
    insert_batch_size:
        Rows per :meth:`VectorStoreBase.insert_chunks` call.
    max_step_attempts:
        Attempts per step in durable mode.
    """

    def __init__(
        self,
        repository: CatalogRepository,
        storage: ObjectStorage,
        embeddings: Embeddings,
        store: VectorStoreBase,
        tagger: DocumentTagger | None = None,
        *,
        insert_batch_size: int = settings.insert_batch_size,
        max_step_attempts: int = settings.max_step_attempts,
    ) -> None:
        if insert_batch_size < 1:
            raise ValueError("insert_batch_size must be at least 1")
        if max_step_attempts < 1:
            raise ValueError("max_step_attempts must be at least 1")
        self.repository = repository
        self.storage = storage
        self.embeddings = embeddings
        self.store = store
        self.tagger = tagger
        self.insert_batch_size = insert_batch_size
        self.max_step_attempts = max_step_attempts

    # ── Named steps ────────────────────────────────────────────────────

    def mark_processing(self, document_id: str) -> None:
        self.repository.update_document_status(document_id, DocumentStatus.PROCESSING)

    def download(self, storage_location: str) -> bytes:
        data = self.storage.download(storage_location)
        logger.info("Downloaded %d bytes from %s", len(data), storage_location)
        return data

    def extract_and_chunk(self, buffer: bytes, filename: str) -> list[TextChunk]:
        extracted = extract_text(buffer, filename)
        return chunk_text(extracted.text, filename, extracted.page_count)

    def embed(self, chunks: list[TextChunk]) -> list[list[float]]:
        if not chunks:
            return []
        vectors = self.embeddings.embed_documents([chunk.content for chunk in chunks])
        if len(vectors) != len(chunks):
            raise ValueError(f"Expected {len(chunks)} embeddings, got {len(vectors)}")
        return vectors

    def store_chunks(
        self,
        document_id: str,
        product_id: str,
        chunks: list[TextChunk],
        vectors: list[list[float]],
    ) -> int:
        """Replace the document's chunks with *chunks*, in emission order.

        Returns the number of rows written.
        """
        return write_chunks(
            self.store,
            document_id,
            product_id,
            chunks,
            vectors,
            batch_size=self.insert_batch_size,
        )

    def mark_completed(self, document_id: str, filename: str = "", chunks: list[TextChunk] | None = None) -> list[str]:
        """Set ``completed``, recording tags when a tagger is configured."""
        tags = self._tag(filename, chunks or [])
        self.repository.update_document_status(
            document_id,
            DocumentStatus.COMPLETED,
            tags=tags if self.tagger is not None else None,
        )
        return tags

    def mark_failed(self, document_id: str, message: str) -> None:
        try:
            self.repository.update_document_status(document_id, DocumentStatus.FAILED, message)
        except Exception:
            logger.exception("Could not record failure for document %s", document_id)

    # ── Synchronous mode ───────────────────────────────────────────────

    def ingest(self, document_id: str, product_id: str, storage_location: str, filename: str) -> IngestionResult:
        """Run every step once.

        Raises
        ------
        IngestionFailure
            Wrapping the first error, after the document is marked ``failed``.
        """
        step = STEP_MARK_PROCESSING
        try:
            self.mark_processing(document_id)
            step = STEP_DOWNLOAD
            buffer = self.download(storage_location)
            step = STEP_EXTRACT_AND_CHUNK
            chunks = self.extract_and_chunk(buffer, filename)
            step = STEP_EMBED
            vectors = self.embed(chunks)
            step = STEP_STORE
            count = self.store_chunks(document_id, product_id, chunks, vectors)
            step = STEP_MARK_COMPLETED
            tags = self.mark_completed(document_id, filename, chunks)
        except Exception as exc:
            raise self._fail(document_id, step, exc) from exc

        logger.info("Ingested document %s (%s): %d chunk(s)", document_id, filename, count)
        return IngestionResult(document_id=document_id, chunk_count=count, tags=tags)

    # ── Durable mode ───────────────────────────────────────────────────

    def run_durable(
        self,
        document_id: str,
        product_id: str,
        storage_location: str,
        filename: str,
    ) -> IngestionResult:
        """Run the steps with per-step retry and persisted results.

        Steps whose results are already persisted for *document_id* are
        not re-run; their stored output is loaded instead.  Persisted
        results are cleared once the document is ``completed``.
        """
        job = _Job(document_id, product_id, storage_location, filename)
        done = self.repository.load_step_results(document_id)
        if done:
            logger.info("Resuming document %s after step(s) %s", document_id, sorted(done))

        # Status is re-applied on every run so a resumed document leaves ``failed``.
        self._durable_step(job, STEP_MARK_PROCESSING, lambda: self._mark_processing_payload(job), {})

        buffer = _decode_bytes(
            self._durable_step(
                job,
                STEP_DOWNLOAD,
                lambda: {"data": base64.b64encode(self.download(storage_location)).decode("ascii")},
                done,
            )
        )
        chunks = _decode_chunks(
            self._durable_step(
                job,
                STEP_EXTRACT_AND_CHUNK,
                lambda: {"chunks": _encode_chunks(self.extract_and_chunk(buffer, filename))},
                done,
            )
        )
        vectors = self._durable_step(job, STEP_EMBED, lambda: {"embeddings": self.embed(chunks)}, done)["embeddings"]
        count = self._durable_step(
            job,
            STEP_STORE,
            lambda: {"chunk_count": self.store_chunks(document_id, product_id, chunks, vectors)},
            done,
        )["chunk_count"]
        tags = self._durable_step(
            job,
            STEP_MARK_COMPLETED,
            lambda: {"tags": self.mark_completed(document_id, filename, chunks)},
            done,
        )["tags"]

        self.repository.clear_step_results(document_id)
        logger.info("Durably ingested document %s (%s): %d chunk(s)", document_id, filename, count)
        return IngestionResult(document_id=document_id, chunk_count=count, tags=list(tags))

    def resume(self, document_id: str) -> IngestionResult:
        """Continue a durable run for *document_id* from its last completed step."""
        document = self.repository.get_document(document_id)
        return self.run_durable(document.id, document.product_id, document.storage_location, document.filename)

    def delete_document(self, document_id: str) -> None:
        """Remove a document's chunks and then its catalog row."""
        self.store.delete_document(document_id)
        self.repository.delete_document(document_id)
        logger.info("Deleted document %s and its chunks", document_id)

    # ── Internal helpers ───────────────────────────────────────────────

    def _mark_processing_payload(self, job: _Job) -> dict[str, Any]:
        self.mark_processing(job.document_id)
        return {"status": DocumentStatus.PROCESSING.value}

    def _durable_step(
        self,
        job: _Job,
        step: str,
        action: Callable[[], dict[str, Any]],
        done: dict[str, Any],
    ) -> dict[str, Any]:
        if step in done:
            logger.debug("Step %s already completed for %s; loading stored result", step, job.document_id)
            return done[step]

        attempt = 0
        while True:
            attempt += 1
            try:
                payload = action()
            except Exception as exc:
                if attempt >= self.max_step_attempts:
                    raise self._fail(job.document_id, step, exc) from exc
                logger.warning(
                    "Step %s failed for %s (attempt %d/%d): %s",
                    step,
                    job.document_id,
                    attempt,
                    self.max_step_attempts,
                    exc,
                )
                continue

            self.repository.save_step_result(job.document_id, step, payload, attempts=attempt)
            return payload

    def _tag(self, filename: str, chunks: list[TextChunk]) -> list[str]:
        if self.tagger is None or not chunks:
            return []
        try:
            return self.tagger.tag(filename, chunks)
        except Exception:
            logger.exception("Tagging failed for %s; continuing without tags", filename)
            return []

    def _fail(self, document_id: str, step: str, exc: Exception) -> IngestionFailure:
        failure = exc if isinstance(exc, IngestionFailure) else IngestionFailure(document_id, step, exc)
        logger.error("Ingestion of %s failed at %s: %s", document_id, step, exc)
        self.mark_failed(document_id, str(exc))
        return failure


# ---------------------------------------------------------------------------
# Chunk writing (shared with the KFP store component)
# ---------------------------------------------------------------------------


def write_chunks(
    store: VectorStoreBase,
    document_id: str,
    product_id: str,
    chunks: list[TextChunk],
    vectors: list[list[float]],
    *,
    batch_size: int = settings.insert_batch_size,
) -> int:
    """Delete the document's existing chunks, then insert *chunks* in batches."""
    if len(vectors) != len(chunks):
        raise ValueError(f"Got {len(vectors)} embeddings for {len(chunks)} chunks")

    store.delete_document(document_id)
    rows = [
        ChunkRecord(
            document_id=document_id,
            product_id=product_id,
            content=chunk.content,
            embedding=vector,
            metadata=chunk.metadata.to_store(),
        )
        for chunk, vector in zip(chunks, vectors)
    ]
    for start in range(0, len(rows), batch_size):
        store.insert_chunks(rows[start : start + batch_size])
    logger.info("Stored %d chunk(s) for document %s", len(rows), document_id)
    return len(rows)


# ---------------------------------------------------------------------------
# Step-result (de)serialisation
# ---------------------------------------------------------------------------


def _encode_chunks(chunks: list[TextChunk]) -> list[dict[str, Any]]:
    return [chunk.model_dump(by_alias=True) for chunk in chunks]


def _decode_chunks(payload: dict[str, Any]) -> list[TextChunk]:
    return [TextChunk.model_validate(item) for item in payload["chunks"]]


def _decode_bytes(payload: dict[str, Any]) -> bytes:
    return base64.b64decode(payload["data"])
