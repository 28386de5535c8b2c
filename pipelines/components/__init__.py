"""KFP v2 components — one @dsl.component per ingestion step."""

from pipelines.components.chunk import extract_and_chunk
from pipelines.components.download import download_file
from pipelines.components.embed import embed_chunks
from pipelines.components.status import finalize_document, mark_completed, mark_processing
from pipelines.components.store import store_chunks

__all__ = [
    "download_file",
    "embed_chunks",
    "extract_and_chunk",
    "finalize_document",
    "mark_completed",
    "mark_processing",
    "store_chunks",
]
