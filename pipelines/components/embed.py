"""KFP v2 component — Embed chunk contents in document mode.

Step 4 of the document ingestion pipeline.  Reads the chunk JSON-Lines
Dataset, embeds every ``content`` with the Voyage client (batches of at
most 128, issued sequentially) and writes the chunks enriched with their
vectors.

Structured output contract (one JSON object per line)::

    {
      "content":   "...",
      "metadata":  {...},
      "embedding": [0.012, -0.034, ...]
    }

The API key is read from ``VOYAGE_API_KEY`` in the component's
environment (mount it from a Kubernetes secret).

Local testing
-------------
    from pipelines.components.embed import embed_chunks
    embed_chunks.python_func(
        chunks=_FakeArtifact("/tmp/chunks.jsonl"),
        embedded_chunks=_FakeArtifact("/tmp/embedded.jsonl"),
        metrics=_FakeArtifact("/tmp/metrics"),
    )
"""

from kfp import dsl

from pipelines.components.runtime import COMPONENT_IMAGE


@dsl.component(base_image=COMPONENT_IMAGE)
def embed_chunks(
    chunks: dsl.Input[dsl.Dataset],
    embedded_chunks: dsl.Output[dsl.Dataset],
    metrics: dsl.Output[dsl.Metrics],
    embedding_model: str = "voyage-3",
) -> int:
    """Embed every chunk and persist vectors alongside content.

    Parameters
    ----------
    chunks:
        Input Dataset — JSON-Lines produced by ``extract_and_chunk``.
    embedded_chunks:
        Output Dataset — JSON-Lines, each record enriched with ``embedding``.
    metrics:
        Output Metrics artifact.
    embedding_model:
        Voyage model identifier.

    Returns
    -------
    int
        Number of vectors produced.

    Raises
    ------
    EmbeddingServiceError
        On any non-success response from the embedding service.
    ConfigurationError
        When ``VOYAGE_API_KEY`` is not set.
    """
    import json
    import logging
    import time
    from pathlib import Path

    from sales_rag.ingestion.embedder import VoyageEmbeddings

    logging.basicConfig(level=logging.INFO)
    log = logging.getLogger("embed_chunks")

    with open(chunks.path) as fh:
        records = [json.loads(line) for line in fh if line.strip()]
    log.info("Read %d chunks", len(records))

    t0 = time.monotonic()
    vectors = VoyageEmbeddings(model=embedding_model).embed_documents([r["content"] for r in records]) if records else []
    elapsed = time.monotonic() - t0

    out_path = Path(embedded_chunks.path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, "w") as fh:
        for record, vector in zip(records, vectors):
            fh.write(json.dumps({**record, "embedding": vector}) + "\n")

    embedded_chunks.metadata["embedding_model"] = embedding_model
    embedded_chunks.metadata["num_vectors"] = len(vectors)
    if vectors:
        embedded_chunks.metadata["embedding_dim"] = len(vectors[0])

    metrics.log_metric("vectors_produced", len(vectors))
    metrics.log_metric("embed_elapsed_seconds", round(elapsed, 2))

    log.info("Embedded %d chunks in %.1fs", len(vectors), elapsed)
    return len(vectors)
