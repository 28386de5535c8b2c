"""KFP v2 component — Extract text and cut it into section-aware chunks.

Step 3 of the document ingestion pipeline.  Reads the raw file artifact
written by ``download_file``, extracts linear text (PDF / DOCX / TXT / MD)
and chunks it.

Structured output contract (one JSON object per line)::

    {
      "content":  "[<section title>]\\n<chunk text>",
      "metadata": {
        "filename":     "pricing.pdf",
        "sectionTitle": "PRICING",
        "chunkIndex":   0,
        "totalChunks":  12,
        "pageNumber":   null
      }
    }

Local testing
-------------
    from pipelines.components.chunk import extract_and_chunk
    extract_and_chunk.python_func(
        raw_file=_FakeArtifact("/tmp/raw.bin"),
        filename="pricing.md",
        chunks=_FakeArtifact("/tmp/chunks.jsonl"),
        metrics=_FakeArtifact("/tmp/metrics"),
    )
"""

from kfp import dsl

from pipelines.components.runtime import COMPONENT_IMAGE


@dsl.component(base_image=COMPONENT_IMAGE)
def extract_and_chunk(
    raw_file: dsl.Input[dsl.Artifact],
    filename: str,
    chunks: dsl.Output[dsl.Dataset],
    metrics: dsl.Output[dsl.Metrics],
) -> int:
    """Extract text from *raw_file* and write its chunks as JSON-Lines.

    Parameters
    ----------
    raw_file:
        Input Artifact — raw bytes of the uploaded file.
    filename:
        Original file name; its extension selects the extractor.
    chunks:
        Output Dataset — JSON-Lines, one record per chunk (see module docstring).
    metrics:
        Output Metrics artifact with chunking statistics.

    Returns
    -------
    int
        Number of chunks produced (``0`` for an empty document).

    Raises
    ------
    UnsupportedFileType
        For extensions other than ``.pdf``, ``.docx``, ``.doc``, ``.txt``, ``.md``.
    """
    import json
    import logging
    from pathlib import Path

    from sales_rag.ingestion.chunker import chunk_text
    from sales_rag.ingestion.extractor import extract_text

    logging.basicConfig(level=logging.INFO)
    log = logging.getLogger("extract_and_chunk")

    extracted = extract_text(Path(raw_file.path).read_bytes(), filename)
    produced = chunk_text(extracted.text, filename, extracted.page_count)

    out_path = Path(chunks.path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, "w") as fh:
        for chunk in produced:
            fh.write(json.dumps(chunk.model_dump(by_alias=True), ensure_ascii=False) + "\n")

    # artifact metadata
    chunks.metadata["num_chunks"] = len(produced)
    chunks.metadata["filename"] = filename
    if extracted.page_count is not None:
        chunks.metadata["page_count"] = extracted.page_count

    # KFP Metrics
    total_chars = sum(len(c.content) for c in produced)
    metrics.log_metric("chunks_produced", len(produced))
    metrics.log_metric("text_chars", len(extracted.text))
    metrics.log_metric("avg_chunk_chars", total_chars / len(produced) if produced else 0)

    log.info("Produced %d chunks from %s", len(produced), filename)
    return len(produced)
