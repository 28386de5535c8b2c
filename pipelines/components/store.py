"""KFP v2 component — Write embedded chunks to the vector store.

Step 5 of the document ingestion pipeline.  Reads the embedded JSON-Lines
Dataset, removes any chunks a previous attempt left for the document, and
inserts the new rows in batches (default 100) in emission order.  Each
row carries ``document_id`` and ``product_id`` so searches can be scoped
to one product.

Local testing
-------------
    from pipelines.components.store import store_chunks
    store_chunks.python_func(
        embedded_chunks=_FakeArtifact("/tmp/embedded.jsonl"),
        document_id="doc-1",
        product_id="prod-1",
        chroma_host="localhost",
        chroma_port=8000,
        collection_name="product_chunks",
        metrics=_FakeArtifact("/tmp/metrics"),
    )
"""

from kfp import dsl

from pipelines.components.runtime import COMPONENT_IMAGE


@dsl.component(base_image=COMPONENT_IMAGE)
def store_chunks(
    embedded_chunks: dsl.Input[dsl.Dataset],
    document_id: str,
    product_id: str,
    chroma_host: str,
    chroma_port: int,
    collection_name: str,
    metrics: dsl.Output[dsl.Metrics],
    insert_batch_size: int = 100,
) -> int:
    """Replace the document's chunks in Chroma.

    Parameters
    ----------
    embedded_chunks:
        Input Dataset — JSON-Lines produced by ``embed_chunks``.
    document_id / product_id:
        Owning document and its product namespace.
    chroma_host / chroma_port / collection_name:
        Chroma connection details.
    metrics:
        Output Metrics artifact with indexing statistics.
    insert_batch_size:
        Rows per insert call.

    Returns
    -------
    int
        Number of chunks written.
    """
    import json
    import logging
    import time

    from sales_rag.ingestion.coordinator import write_chunks
    from sales_rag.ingestion.models import TextChunk
    from sales_rag.retrieval.chroma_store import ChromaVectorStore

    logging.basicConfig(level=logging.INFO)
    log = logging.getLogger("store_chunks")

    records: list[dict] = []
    with open(embedded_chunks.path) as fh:
        for lineno, line in enumerate(fh, 1):
            line = line.strip()
            if not line:
                continue
            record = json.loads(line)
            if "embedding" not in record:
                raise ValueError(f"Record {lineno} has no embedding")
            records.append(record)

    chunks = [TextChunk.model_validate({"content": r["content"], "metadata": r["metadata"]}) for r in records]
    vectors = [r["embedding"] for r in records]

    store = ChromaVectorStore(collection_name, host=chroma_host, port=chroma_port)

    t0 = time.monotonic()
    count = write_chunks(store, document_id, product_id, chunks, vectors, batch_size=insert_batch_size)
    elapsed = time.monotonic() - t0

    metrics.log_metric("chunks_stored", count)
    metrics.log_metric("insert_batches", -(-count // insert_batch_size))
    metrics.log_metric("store_elapsed_seconds", round(elapsed, 2))
    metrics.log_metric("collection_name", collection_name)

    log.info("Stored %d chunks for document %s in %.1fs", count, document_id, elapsed)
    return count
