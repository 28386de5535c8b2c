"""KFP v2 components — document status transitions.

``mark_processing`` opens the run, ``mark_completed`` closes it (with
optional LLM tags), and ``finalize_document`` runs as the exit handler:
when any step failed after its retries it records ``failed`` and the
error message on the document row.

Local testing
-------------
    from pipelines.components.status import mark_processing
    mark_processing.python_func(
        document_id="doc-1",
        database_url="sqlite:////tmp/catalog.db",
    )
"""

from kfp import dsl

from pipelines.components.runtime import COMPONENT_IMAGE


@dsl.component(base_image=COMPONENT_IMAGE)
def mark_processing(document_id: str, database_url: str) -> str:
    """Move the document to ``processing`` (safe to replay).

    Returns
    -------
    str
        The new status.
    """
    import logging

    from sales_rag.db import CatalogRepository, DocumentStatus, create_db_engine, create_session_factory

    logging.basicConfig(level=logging.INFO)
    log = logging.getLogger("mark_processing")

    repository = CatalogRepository(create_session_factory(create_db_engine(database_url)))
    document = repository.update_document_status(document_id, DocumentStatus.PROCESSING)
    log.info("Document %s is %s", document_id, document.status)
    return document.status


@dsl.component(base_image=COMPONENT_IMAGE)
def mark_completed(
    document_id: str,
    database_url: str,
    chunks: dsl.Input[dsl.Dataset],
    chunk_count: int,
    metrics: dsl.Output[dsl.Metrics],
    enable_tagging: bool = False,
) -> str:
    """Record ``completed`` and, when enabled, up to five document tags.

    Parameters
    ----------
    document_id:
        Catalog id of the document.
    database_url:
        SQLAlchemy URL of the catalog.
    chunks:
        Input Dataset — JSON-Lines chunks from ``extract_and_chunk``;
        the first few feed the tagger.
    chunk_count:
        Rows written by ``store_chunks``.
    metrics:
        Output Metrics artifact.
    enable_tagging:
        Ask the configured chat model for classification tags.

    Returns
    -------
    str
        Summary, e.g. ``"Document doc-1 completed with 12 chunks"``.
    """
    import json
    import logging

    from sales_rag.db import CatalogRepository, DocumentStatus, create_db_engine, create_session_factory
    from sales_rag.ingestion.models import TextChunk

    logging.basicConfig(level=logging.INFO)
    log = logging.getLogger("mark_completed")

    repository = CatalogRepository(create_session_factory(create_db_engine(database_url)))

    tags = None
    if enable_tagging:
        from sales_rag.agent.llm import get_llm
        from sales_rag.ingestion.tagging import DocumentTagger

        with open(chunks.path) as fh:
            parsed = [TextChunk.model_validate(json.loads(line)) for line in fh if line.strip()]
        document = repository.get_document(document_id)
        try:
            tags = DocumentTagger(get_llm()).tag(document.filename, parsed)
        except Exception:
            log.exception("Tagging failed for %s; completing without tags", document_id)
            tags = []

    repository.update_document_status(document_id, DocumentStatus.COMPLETED, tags=tags)

    metrics.log_metric("chunk_count", chunk_count)
    metrics.log_metric("tag_count", len(tags or []))

    msg = f"Document {document_id} completed with {chunk_count} chunks"
    log.info(msg)
    return msg


@dsl.component(base_image=COMPONENT_IMAGE)
def finalize_document(
    document_id: str,
    database_url: str,
    status: dsl.PipelineTaskFinalStatus,
) -> str:
    """Exit handler: mark a ``processing`` document ``failed`` unless the run succeeded.

    Returns
    -------
    str
        The pipeline's final state as reported by KFP.
    """
    import logging

    from sales_rag.db import CatalogRepository, DocumentStatus, create_db_engine, create_session_factory

    logging.basicConfig(level=logging.INFO)
    log = logging.getLogger("finalize_document")

    if status.state == "SUCCEEDED":
        log.info("Ingestion of %s succeeded", document_id)
        return status.state

    message = status.error_message or f"Ingestion pipeline ended in state {status.state}"
    repository = CatalogRepository(create_session_factory(create_db_engine(database_url)))
    current = DocumentStatus(repository.get_document(document_id).status)
    if current is not DocumentStatus.PROCESSING:
        log.warning("Ingestion of %s ended in %s with document %s; status left unchanged: %s",
                    document_id, status.state, current.value, message)
        return status.state

    repository.update_document_status(document_id, DocumentStatus.FAILED, message)
    log.error("Ingestion of %s failed: %s", document_id, message)
    return status.state
