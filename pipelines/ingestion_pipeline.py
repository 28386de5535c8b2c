"""KFP v2 pipeline — durable per-document ingestion.

One component per named ingestion step, connected by artifacts:

    mark-processing → download → extract-and-chunk → embed → store → mark-completed

KFP supplies the durable-execution contract: each step is retried on
failure, and completed steps' outputs are cached so a re-submitted run
for the same document does not redo them.  The status steps are never
cached.  An exit handler marks the document ``failed`` when any step
gives up.

Compile
-------
    python -m pipelines.ingestion_pipeline --compile

Submit
------
    python -m pipelines.ingestion_pipeline --submit \\
        --document-id <id> --product-id <id> \\
        --storage-location <product_id>/<ts>-<file> --filename <file>
"""

from kfp import compiler, dsl

from pipelines.components.chunk import extract_and_chunk
from pipelines.components.download import download_file
from pipelines.components.embed import embed_chunks
from pipelines.components.status import finalize_document, mark_completed, mark_processing
from pipelines.components.store import store_chunks

# Three attempts per step: the first run plus two retries.
STEP_RETRIES = 2


# ──────────────────────────────────────────────────────────────────────
# Pipeline definition
# ──────────────────────────────────────────────────────────────────────


@dsl.pipeline(
    name="sales-rag-document-ingestion",
    description=(
        "Durable ingestion of one uploaded document: mark processing → "
        "download → extract and chunk → embed → store → mark completed."
    ),
)
def ingestion_pipeline(
    # ── Document ────────────────────────────────────────────────────
    document_id: str,
    product_id: str,
    storage_location: str,
    filename: str,
    # ── Catalog / storage ──────────────────────────────────────────
    database_url: str = "postgresql+psycopg://sales_rag@postgres.kubeflow.svc.cluster.local/sales_rag",
    storage_root: str = "/data/storage",
    # ── Embedding ──────────────────────────────────────────────────
    embedding_model: str = "voyage-3",
    # ── Vector DB ──────────────────────────────────────────────────
    chroma_host: str = "chroma.kubeflow.svc.cluster.local",
    chroma_port: int = 8000,
    collection_name: str = "product_chunks",
    insert_batch_size: int = 100,
    # ── Enrichment ─────────────────────────────────────────────────
    enable_tagging: bool = False,
) -> None:
    """Ingest one document, recording its status in the catalog.

    Parameters
    ----------
    document_id / product_id:
        Catalog ids of the document and its product.
    storage_location:
        Object key of the raw upload.
    filename:
        Original file name (selects the extractor).
    database_url:
        SQLAlchemy URL of the catalog.
    storage_root:
        Mounted root of the object store.
    embedding_model:
        Voyage model identifier.
    chroma_host / chroma_port / collection_name:
        Chroma connection details.
    insert_batch_size:
        Rows per vector-store insert.
    enable_tagging:
        Record LLM classification tags on completion.
    """
    exit_task = finalize_document(document_id=document_id, database_url=database_url)

    with dsl.ExitHandler(exit_task, name="ingest-document"):
        # Step 1: mark-processing
        processing_task = mark_processing(document_id=document_id, database_url=database_url)
        processing_task.set_caching_options(False)

        # Step 2: download
        download_task = download_file(storage_location=storage_location, storage_root=storage_root)
        download_task.after(processing_task)

        # Step 3: extract-and-chunk
        chunk_task = extract_and_chunk(
            raw_file=download_task.outputs["raw_file"],
            filename=filename,
        )

        # Step 4: embed
        embed_task = embed_chunks(
            chunks=chunk_task.outputs["chunks"],
            embedding_model=embedding_model,
        )

        # Step 5: store
        store_task = store_chunks(
            embedded_chunks=embed_task.outputs["embedded_chunks"],
            document_id=document_id,
            product_id=product_id,
            chroma_host=chroma_host,
            chroma_port=chroma_port,
            collection_name=collection_name,
            insert_batch_size=insert_batch_size,
        )

        # Step 6: mark-completed
        completed_task = mark_completed(
            document_id=document_id,
            database_url=database_url,
            chunks=chunk_task.outputs["chunks"],
            chunk_count=store_task.outputs["Output"],
            enable_tagging=enable_tagging,
        )
        completed_task.set_caching_options(False)

        for task in (processing_task, download_task, chunk_task, embed_task, store_task, completed_task):
            task.set_retry(num_retries=STEP_RETRIES)


# ──────────────────────────────────────────────────────────────────────
# CLI
# ──────────────────────────────────────────────────────────────────────


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Sales RAG document ingestion pipeline")
    parser.add_argument("--compile", action="store_true", help="Compile pipeline to YAML")
    parser.add_argument(
        "--output",
        default="pipelines/compiled/ingestion_pipeline.yaml",
        help="Output path for compiled YAML",
    )
    parser.add_argument("--submit", action="store_true", help="Submit a run to the KFP host in settings")
    parser.add_argument("--document-id")
    parser.add_argument("--product-id")
    parser.add_argument("--storage-location")
    parser.add_argument("--filename")
    args = parser.parse_args()

    if args.compile:
        compiler.Compiler().compile(ingestion_pipeline, args.output)
        print(f"Pipeline compiled → {args.output}")

    if args.submit:
        import kfp

        from sales_rag.config import settings

        client = kfp.Client(host=settings.kfp_host, namespace=settings.kfp_namespace)
        run = client.create_run_from_pipeline_func(
            ingestion_pipeline,
            arguments={
                "document_id": args.document_id,
                "product_id": args.product_id,
                "storage_location": args.storage_location,
                "filename": args.filename,
                "database_url": settings.database_url,
                "storage_root": settings.storage_root,
                "embedding_model": settings.embedding_model,
                "chroma_host": settings.chroma_host,
                "chroma_port": settings.chroma_port,
                "collection_name": settings.chroma_collection,
                "insert_batch_size": settings.insert_batch_size,
                "enable_tagging": settings.enable_tagging,
            },
        )
        print(f"Submitted run {run.run_id}")
