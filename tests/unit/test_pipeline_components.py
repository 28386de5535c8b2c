"""Unit tests for the KFP ingestion components.

Each test exercises the *Python function* behind the ``@dsl.component``
decorator (``component.python_func``), so no Kubeflow cluster is needed.

Structured JSON contract flowing between components:

  download → raw bytes artifact
  chunk    → {content, metadata: {filename, sectionTitle, chunkIndex, totalChunks}}
  embed    → chunk record + {embedding}
  store    → reads embed output, replaces the document's rows in Chroma
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from sales_rag.db import CatalogRepository, create_db_engine, create_session_factory
from sales_rag.errors import ObjectNotFoundError, UnsupportedFileType


# ──────────────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────────────


class _FakeArtifact:
    """Minimal stand-in for ``dsl.Artifact`` / ``dsl.Dataset`` / ``dsl.Metrics``."""

    def __init__(self, path: str) -> None:
        self.path = path
        self.metadata: dict = {}
        self._metrics: dict = {}

    def log_metric(self, name: str, value) -> None:  # noqa: ANN001
        self._metrics[name] = value


@dataclass
class _FakeFinalStatus:
    state: str
    error_message: str = ""


def _write_jsonl(path: str, records: list[dict]) -> None:
    with open(path, "w") as fh:
        for rec in records:
            fh.write(json.dumps(rec) + "\n")


def _read_jsonl(path: str) -> list[dict]:
    with open(path) as fh:
        return [json.loads(line) for line in fh if line.strip()]


def _chunk_record(index: int, total: int, text: str = "Pro plan $50/mo.") -> dict:
    return {
        "content": f"[PRICING]\n{text}",
        "metadata": {
            "filename": "pricing.md",
            "sectionTitle": "PRICING",
            "chunkIndex": index,
            "totalChunks": total,
        },
    }


@pytest.fixture()
def catalog(database_url: str) -> CatalogRepository:
    return CatalogRepository(create_session_factory(create_db_engine(database_url)))


@pytest.fixture()
def document(catalog: CatalogRepository):  # noqa: ANN201
    product = catalog.create_product("Acme CRM", "CRM")
    return catalog.create_document(product.id, "pricing.md", f"{product.id}/1-pricing.md")


# ──────────────────────────────────────────────────────────────────────
# download_file
# ──────────────────────────────────────────────────────────────────────


class TestDownloadFile:
    def test_copies_object(self, tmp_path: Path, object_storage) -> None:  # noqa: ANN001
        from pipelines.components.download import download_file

        object_storage.upload("p1/1-pricing.md", b"PRICING\nPro plan $50/mo.")
        raw = _FakeArtifact(str(tmp_path / "out" / "raw.bin"))
        metrics = _FakeArtifact(str(tmp_path / "metrics"))

        size = download_file.python_func(
            storage_location="p1/1-pricing.md",
            storage_root=str(object_storage.root),
            raw_file=raw,
            metrics=metrics,
        )

        assert size == 24
        assert Path(raw.path).read_bytes() == b"PRICING\nPro plan $50/mo."
        assert raw.metadata["storage_location"] == "p1/1-pricing.md"
        assert metrics._metrics["bytes_downloaded"] == 24

    def test_missing_object(self, tmp_path: Path) -> None:
        from pipelines.components.download import download_file

        with pytest.raises(ObjectNotFoundError):
            download_file.python_func(
                storage_location="p1/none.md",
                storage_root=str(tmp_path),
                raw_file=_FakeArtifact(str(tmp_path / "raw.bin")),
                metrics=_FakeArtifact(str(tmp_path / "metrics")),
            )


# ──────────────────────────────────────────────────────────────────────
# extract_and_chunk
# ──────────────────────────────────────────────────────────────────────


class TestExtractAndChunk:
    def test_writes_camel_case_records(self, tmp_path: Path) -> None:
        from pipelines.components.chunk import extract_and_chunk

        raw_path = tmp_path / "raw.bin"
        raw_path.write_bytes(b"Welcome.\nPRICING\nBasic plan $10/mo.\nPro plan $50/mo.")
        chunks = _FakeArtifact(str(tmp_path / "chunks.jsonl"))
        metrics = _FakeArtifact(str(tmp_path / "metrics"))

        count = extract_and_chunk.python_func(
            raw_file=_FakeArtifact(str(raw_path)),
            filename="pricing.md",
            chunks=chunks,
            metrics=metrics,
        )

        records = _read_jsonl(chunks.path)
        assert count == len(records) == 2
        assert records[1]["content"] == "[PRICING]\nBasic plan $10/mo.\nPro plan $50/mo."
        assert records[1]["metadata"]["sectionTitle"] == "PRICING"
        assert [r["metadata"]["chunkIndex"] for r in records] == [0, 1]
        assert {r["metadata"]["totalChunks"] for r in records} == {2}
        assert chunks.metadata["num_chunks"] == 2
        assert metrics._metrics["chunks_produced"] == 2

    def test_empty_document(self, tmp_path: Path) -> None:
        from pipelines.components.chunk import extract_and_chunk

        raw_path = tmp_path / "raw.bin"
        raw_path.write_bytes(b"")
        chunks = _FakeArtifact(str(tmp_path / "chunks.jsonl"))

        count = extract_and_chunk.python_func(
            raw_file=_FakeArtifact(str(raw_path)),
            filename="empty.txt",
            chunks=chunks,
            metrics=_FakeArtifact(str(tmp_path / "metrics")),
        )

        assert count == 0
        assert _read_jsonl(chunks.path) == []

    def test_unsupported_type(self, tmp_path: Path) -> None:
        from pipelines.components.chunk import extract_and_chunk

        raw_path = tmp_path / "raw.bin"
        raw_path.write_bytes(b"slides")

        with pytest.raises(UnsupportedFileType):
            extract_and_chunk.python_func(
                raw_file=_FakeArtifact(str(raw_path)),
                filename="deck.pptx",
                chunks=_FakeArtifact(str(tmp_path / "chunks.jsonl")),
                metrics=_FakeArtifact(str(tmp_path / "metrics")),
            )


# ──────────────────────────────────────────────────────────────────────
# embed_chunks
# ──────────────────────────────────────────────────────────────────────


class TestEmbedChunks:
    def test_produces_embeddings(self, tmp_path: Path) -> None:
        from pipelines.components.embed import embed_chunks

        in_path = str(tmp_path / "chunks.jsonl")
        _write_jsonl(in_path, [_chunk_record(0, 2, "Basic"), _chunk_record(1, 2, "Pro")])
        embedded = _FakeArtifact(str(tmp_path / "embedded.jsonl"))
        metrics = _FakeArtifact(str(tmp_path / "metrics"))

        with patch("sales_rag.ingestion.embedder.VoyageEmbeddings") as voyage:
            voyage.return_value.embed_documents.return_value = [[0.1, 0.2], [0.3, 0.4]]
            count = embed_chunks.python_func(
                chunks=_FakeArtifact(in_path),
                embedded_chunks=embedded,
                metrics=metrics,
                embedding_model="voyage-3-lite",
            )

        voyage.assert_called_once_with(model="voyage-3-lite")
        voyage.return_value.embed_documents.assert_called_once_with(["[PRICING]\nBasic", "[PRICING]\nPro"])
        records = _read_jsonl(embedded.path)
        assert count == 2
        assert [r["embedding"] for r in records] == [[0.1, 0.2], [0.3, 0.4]]
        assert records[0]["metadata"]["chunkIndex"] == 0
        assert embedded.metadata["embedding_dim"] == 2
        assert metrics._metrics["vectors_produced"] == 2

    def test_empty_input_makes_no_call(self, tmp_path: Path) -> None:
        from pipelines.components.embed import embed_chunks

        in_path = tmp_path / "chunks.jsonl"
        in_path.write_text("")
        embedded = _FakeArtifact(str(tmp_path / "embedded.jsonl"))

        with patch("sales_rag.ingestion.embedder.VoyageEmbeddings") as voyage:
            count = embed_chunks.python_func(
                chunks=_FakeArtifact(str(in_path)),
                embedded_chunks=embedded,
                metrics=_FakeArtifact(str(tmp_path / "metrics")),
            )

        assert count == 0
        voyage.assert_not_called()
        assert _read_jsonl(embedded.path) == []


# ──────────────────────────────────────────────────────────────────────
# store_chunks
# ──────────────────────────────────────────────────────────────────────


class TestStoreChunks:
    def test_replaces_document_rows_in_batches(self, tmp_path: Path) -> None:
        from pipelines.components.store import store_chunks

        in_path = str(tmp_path / "embedded.jsonl")
        _write_jsonl(in_path, [{**_chunk_record(i, 3), "embedding": [float(i)]} for i in range(3)])
        metrics = _FakeArtifact(str(tmp_path / "metrics"))

        collection = MagicMock()
        client = MagicMock()
        client.get_or_create_collection.return_value = collection

        with patch("sales_rag.retrieval.chroma_store.chromadb.HttpClient", return_value=client) as http_client:
            count = store_chunks.python_func(
                embedded_chunks=_FakeArtifact(in_path),
                document_id="doc-1",
                product_id="prod-1",
                chroma_host="chroma.local",
                chroma_port=8000,
                collection_name="product_chunks",
                metrics=metrics,
                insert_batch_size=2,
            )

        http_client.assert_called_once_with(host="chroma.local", port=8000)
        collection.delete.assert_called_once_with(where={"document_id": {"$eq": "doc-1"}})
        batches = [c.kwargs["metadatas"] for c in collection.add.call_args_list]
        assert [len(b) for b in batches] == [2, 1]
        assert [m["chunkIndex"] for b in batches for m in b] == [0, 1, 2]
        assert {m["product_id"] for b in batches for m in b} == {"prod-1"}
        assert count == 3
        assert metrics._metrics["chunks_stored"] == 3
        assert metrics._metrics["insert_batches"] == 2

    def test_missing_embedding_key_raises(self, tmp_path: Path) -> None:
        from pipelines.components.store import store_chunks

        in_path = str(tmp_path / "embedded.jsonl")
        _write_jsonl(in_path, [_chunk_record(0, 1)])

        with pytest.raises(ValueError, match="no embedding"):
            store_chunks.python_func(
                embedded_chunks=_FakeArtifact(in_path),
                document_id="doc-1",
                product_id="prod-1",
                chroma_host="localhost",
                chroma_port=8000,
                collection_name="product_chunks",
                metrics=_FakeArtifact(str(tmp_path / "metrics")),
            )


# ──────────────────────────────────────────────────────────────────────
# Status components
# ──────────────────────────────────────────────────────────────────────


class TestStatusComponents:
    def test_mark_processing_is_replayable(self, database_url: str, catalog, document) -> None:  # noqa: ANN001
        from pipelines.components.status import mark_processing

        assert mark_processing.python_func(document_id=document.id, database_url=database_url) == "processing"
        assert mark_processing.python_func(document_id=document.id, database_url=database_url) == "processing"
        assert catalog.get_document(document.id).status == "processing"

    def test_mark_completed_without_tagging(self, tmp_path: Path, database_url: str, catalog, document) -> None:  # noqa: ANN001
        from pipelines.components.status import mark_completed

        catalog.update_document_status(document.id, "processing")
        chunks_path = str(tmp_path / "chunks.jsonl")
        _write_jsonl(chunks_path, [_chunk_record(0, 1)])
        metrics = _FakeArtifact(str(tmp_path / "metrics"))

        msg = mark_completed.python_func(
            document_id=document.id,
            database_url=database_url,
            chunks=_FakeArtifact(chunks_path),
            chunk_count=1,
            metrics=metrics,
        )

        assert msg == f"Document {document.id} completed with 1 chunks"
        stored = catalog.get_document(document.id)
        assert stored.status == "completed"
        assert stored.tags is None
        assert metrics._metrics["chunk_count"] == 1

    def test_mark_completed_records_tags(self, tmp_path: Path, database_url: str, catalog, document) -> None:  # noqa: ANN001
        from pipelines.components.status import mark_completed

        catalog.update_document_status(document.id, "processing")
        chunks_path = str(tmp_path / "chunks.jsonl")
        _write_jsonl(chunks_path, [_chunk_record(0, 1)])
        llm = MagicMock()
        llm.invoke.return_value = MagicMock(content='{"tags": ["Pricing", "plans", "pricing"]}')

        with patch("sales_rag.agent.llm.get_llm", return_value=llm):
            mark_completed.python_func(
                document_id=document.id,
                database_url=database_url,
                chunks=_FakeArtifact(chunks_path),
                chunk_count=1,
                metrics=_FakeArtifact(str(tmp_path / "metrics")),
                enable_tagging=True,
            )

        assert catalog.get_document(document.id).tags == ["pricing", "plans"]

    def test_mark_completed_survives_tagging_failure(
        self, tmp_path: Path, database_url: str, catalog, document
    ) -> None:  # noqa: ANN001
        from pipelines.components.status import mark_completed

        catalog.update_document_status(document.id, "processing")
        chunks_path = str(tmp_path / "chunks.jsonl")
        _write_jsonl(chunks_path, [_chunk_record(0, 1)])
        llm = MagicMock()
        llm.invoke.side_effect = RuntimeError("model overloaded")

        with patch("sales_rag.agent.llm.get_llm", return_value=llm):
            mark_completed.python_func(
                document_id=document.id,
                database_url=database_url,
                chunks=_FakeArtifact(chunks_path),
                chunk_count=1,
                metrics=_FakeArtifact(str(tmp_path / "metrics")),
                enable_tagging=True,
            )

        stored = catalog.get_document(document.id)
        assert stored.status == "completed"
        assert stored.tags == []

    def test_finalize_success_leaves_document(self, database_url: str, catalog, document) -> None:  # noqa: ANN001
        from pipelines.components.status import finalize_document

        state = finalize_document.python_func(
            document_id=document.id,
            database_url=database_url,
            status=_FakeFinalStatus("SUCCEEDED"),
        )

        assert state == "SUCCEEDED"
        assert catalog.get_document(document.id).status == "pending"

    def test_finalize_failure_marks_failed(self, database_url: str, catalog, document) -> None:  # noqa: ANN001
        from pipelines.components.status import finalize_document

        catalog.update_document_status(document.id, "processing")

        finalize_document.python_func(
            document_id=document.id,
            database_url=database_url,
            status=_FakeFinalStatus("FAILED", "Voyage API error 503"),
        )

        stored = catalog.get_document(document.id)
        assert stored.status == "failed"
        assert stored.error_message == "Voyage API error 503"

    def test_finalize_without_message(self, database_url: str, catalog, document) -> None:  # noqa: ANN001
        from pipelines.components.status import finalize_document

        catalog.update_document_status(document.id, "processing")

        finalize_document.python_func(
            document_id=document.id,
            database_url=database_url,
            status=_FakeFinalStatus("CANCELED"),
        )

        assert catalog.get_document(document.id).error_message == "Ingestion pipeline ended in state CANCELED"

    def test_finalize_leaves_pending_document(self, database_url: str, catalog, document) -> None:  # noqa: ANN001
        from pipelines.components.status import finalize_document

        # run failed before mark-processing succeeded
        state = finalize_document.python_func(
            document_id=document.id,
            database_url=database_url,
            status=_FakeFinalStatus("FAILED", "catalog unreachable"),
        )

        assert state == "FAILED"
        stored = catalog.get_document(document.id)
        assert stored.status == "pending"
        assert stored.error_message is None


# ──────────────────────────────────────────────────────────────────────
# Pipeline
# ──────────────────────────────────────────────────────────────────────


def test_pipeline_compiles(tmp_path: Path) -> None:
    from kfp import compiler

    from pipelines.ingestion_pipeline import ingestion_pipeline

    out = tmp_path / "ingestion_pipeline.yaml"
    compiler.Compiler().compile(ingestion_pipeline, str(out))

    text = out.read_text()
    assert "sales-rag-document-ingestion" in text
    assert "finalize-document" in text


def test_chunk_count_comes_from_store_step() -> None:
    from pipelines.ingestion_pipeline import ingestion_pipeline

    spec = ingestion_pipeline.pipeline_spec
    [task] = [
        component.dag.tasks["mark-completed"]
        for component in [spec.root, *spec.components.values()]
        if "mark-completed" in component.dag.tasks
    ]

    source = task.inputs.parameters["chunk_count"].task_output_parameter
    assert source.producer_task == "store-chunks"
    assert source.output_parameter_key == "Output"
