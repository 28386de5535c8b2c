"""Exception taxonomy shared by ingestion, retrieval and orchestration.

Every error raised deliberately by this package derives from
:class:`SalesRagError`, so the serving layer can map domain failures to
HTTP responses and let anything else fall through to the generic 500
handler.
"""

from __future__ import annotations


class SalesRagError(Exception):
    """Base class for all domain errors."""


class ConfigurationError(SalesRagError):
    """A required setting or credential is missing or inconsistent."""


# ── Ingestion ─────────────────────────────────────────────────────────


class UnsupportedFileType(SalesRagError):
    """The uploaded file's extension has no extractor."""

    def __init__(self, extension: str) -> None:
        self.extension = extension
        super().__init__(f"Unsupported file type: {extension or '<none>'}")


class ChunkingError(SalesRagError):
    """Chunking failed on input that should always be chunkable."""


class EmbeddingServiceError(SalesRagError):
    """The embedding service was unreachable or returned an unusable response.

    ``status_code`` is 0 when no HTTP response arrived.
    """

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Embedding service error {status_code}: {body}")


class ObjectNotFoundError(SalesRagError):
    """The requested storage object does not exist."""

    def __init__(self, location: str) -> None:
        self.location = location
        super().__init__(f"Failed to download file: object {location!r} not found")


class IngestionFailure(SalesRagError):
    """An ingestion step failed; the cause is recorded on the document."""

    def __init__(self, document_id: str, step: str, cause: BaseException) -> None:
        self.document_id = document_id
        self.step = step
        self.cause = cause
        super().__init__(f"Ingestion of document {document_id} failed at step {step!r}: {cause}")


# ── Retrieval ─────────────────────────────────────────────────────────


class SearchError(SalesRagError):
    """Vector search against a product namespace failed."""

    def __init__(self, product_id: str, reason: str) -> None:
        self.product_id = product_id
        super().__init__(f"Vector search failed for product {product_id}: {reason}")


# ── Catalog ───────────────────────────────────────────────────────────


class NotFoundError(SalesRagError):
    """A product or document id does not exist in the catalog."""


class InvalidStatusTransition(SalesRagError):
    """A document status change would violate the lifecycle."""

    def __init__(self, document_id: str, current: str, target: str) -> None:
        self.document_id = document_id
        self.current = current
        self.target = target
        super().__init__(f"Document {document_id}: cannot move from {current!r} to {target!r}")


class ToolNameCollisionError(ConfigurationError):
    """Two differently-named products derive the same search tool name."""

    def __init__(self, tool_name: str, names: list[str]) -> None:
        self.tool_name = tool_name
        self.names = names
        joined = ", ".join(repr(n) for n in names)
        super().__init__(f"Products {joined} all map to tool name {tool_name!r}")


class ProductExistsError(SalesRagError):
    """A product with this exact name already exists."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Product {name!r} already exists")
