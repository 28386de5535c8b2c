"""
Ingestion — text extraction, chunking, embedding and the per-document
coordinator that writes chunks into the vector store.

Public surface
--------------
- :func:`extract_text` — PDF / DOCX / TXT / MD bytes to plain text.
- :func:`chunk_text` — section-aware sliding-window chunker.
- :class:`VoyageEmbeddings` — batched query / document embedding client.
- :class:`IngestionCoordinator` — synchronous and durable ingestion runs.
"""

from sales_rag.ingestion.chunker import chunk_text
from sales_rag.ingestion.coordinator import IngestionCoordinator, IngestionResult
from sales_rag.ingestion.embedder import VoyageEmbeddings
from sales_rag.ingestion.extractor import extract_text
from sales_rag.ingestion.models import ChunkMetadata, ExtractResult, TextChunk

__all__ = [
    "ChunkMetadata",
    "ExtractResult",
    "IngestionCoordinator",
    "IngestionResult",
    "TextChunk",
    "VoyageEmbeddings",
    "chunk_text",
    "extract_text",
]
