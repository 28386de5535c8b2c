"""FastAPI application exposing the sales assistant and ingestion as a REST API."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Literal

from fastapi import BackgroundTasks, Depends, FastAPI, File, Form, Request, UploadFile, status
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field

from sales_rag.config import settings
from sales_rag.errors import (
    EmbeddingServiceError,
    IngestionFailure,
    InvalidStatusTransition,
    NotFoundError,
    ProductExistsError,
    SalesRagError,
    SearchError,
    ToolNameCollisionError,
    UnsupportedFileType,
)
from sales_rag.ingestion.coordinator import IngestionCoordinator
from sales_rag.ingestion.extractor import SUPPORTED_EXTENSIONS, guess_mime_type
from sales_rag.logging_config import configure_logging
from sales_rag.naming import derive_tool_name
from sales_rag.serving.dependencies import Services, build_services, get_services

logger = logging.getLogger(__name__)


# ── Request / Response schemas ────────────────────────────────────────
class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ChatTurn(BaseModel):
    """One earlier message of the conversation."""

    role: Literal["user", "assistant"]
    content: str


class ChatRequest(_CamelModel):
    """Incoming question plus optional prior turns."""

    message: str = Field(min_length=1)
    history: list[ChatTurn] = Field(default_factory=list)
    org_name: str | None = Field(default=None, alias="orgName")


class ChatResponse(_CamelModel):
    """Answer returned by the orchestrator."""

    response: str
    tool_call_count: int = Field(alias="toolCallCount")
    finish_reason: str = Field(alias="finishReason")


class ProductCreate(_CamelModel):
    name: str = Field(min_length=1)
    description: str = ""
    system_prompt: str = Field(default="", alias="systemPrompt")
    created_by: str | None = Field(default=None, alias="createdBy")


class ProductOut(_CamelModel):
    id: str
    name: str
    description: str
    tool_name: str = Field(alias="toolName")


class DocumentOut(_CamelModel):
    id: str
    product_id: str = Field(alias="productId")
    filename: str
    status: str
    error_message: str | None = Field(default=None, alias="errorMessage")
    tags: list[str] | None = None


class IngestResponse(_CamelModel):
    document_id: str = Field(alias="documentId")
    chunk_count: int = Field(alias="chunkCount")
    tags: list[str] = Field(default_factory=list)


def _product_out(product) -> ProductOut:  # noqa: ANN001
    return ProductOut(
        id=product.id,
        name=product.name,
        description=product.description or "",
        tool_name=derive_tool_name(product.name),
    )


def _document_out(document) -> DocumentOut:  # noqa: ANN001
    return DocumentOut(
        id=document.id,
        product_id=document.product_id,
        filename=document.filename,
        status=document.status,
        error_message=document.error_message,
        tags=document.tags,
    )


def _ingest_in_background(
    coordinator: IngestionCoordinator,
    document_id: str,
    product_id: str,
    storage_location: str,
    filename: str,
) -> None:
    try:
        coordinator.run_durable(document_id, product_id, storage_location, filename)
    except IngestionFailure as exc:
        # Already recorded on the document row; resumable via /documents/{id}/ingest.
        logger.error("Background ingestion failed: %s", exc)


# ── Error mapping ─────────────────────────────────────────────────────
_STATUS_BY_ERROR: list[tuple[type[SalesRagError], int]] = [
    (UnsupportedFileType, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ProductExistsError, status.HTTP_409_CONFLICT),
    (ToolNameCollisionError, status.HTTP_409_CONFLICT),
    (InvalidStatusTransition, status.HTTP_409_CONFLICT),
    (SearchError, status.HTTP_502_BAD_GATEWAY),
    (EmbeddingServiceError, status.HTTP_502_BAD_GATEWAY),
    (IngestionFailure, status.HTTP_502_BAD_GATEWAY),
]


def _register_error_handlers(app: FastAPI) -> None:
    for error_type, status_code in _STATUS_BY_ERROR:

        async def handler(request: Request, exc: Exception, _code: int = status_code) -> JSONResponse:
            logger.warning("%s %s -> %d: %s", request.method, request.url.path, _code, exc)
            return JSONResponse(status_code=_code, content={"detail": str(exc)})

        app.add_exception_handler(error_type, handler)

    async def value_error(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})

    async def unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": "Internal server error"})

    app.add_exception_handler(ValueError, value_error)
    app.add_exception_handler(Exception, unhandled)


# ── Application factory ───────────────────────────────────────────────
def create_app(services: Services | None = None) -> FastAPI:
    """Build the API.

    When *services* is omitted they are constructed from ``settings`` at
    startup; tests pass prebuilt services backed by fakes.
    """
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if getattr(app.state, "services", None) is None:
            app.state.services = build_services()
        yield

    app = FastAPI(
        title="Sales RAG API",
        version="0.1.0",
        description="Per-product documentation search and sales assistant.",
        lifespan=lifespan,
    )
    app.state.services = services
    _register_error_handlers(app)

    # ── Routes ────────────────────────────────────────────────────────
    @app.get("/health")
    def health(services: Services = Depends(get_services)) -> dict[str, str]:
        """Liveness probe with a vector-store check."""
        return {
            "status": "ok",
            "vector_store": "ok" if services.store.health_check() else "unavailable",
        }

    @app.get("/products", response_model=list[ProductOut])
    def list_products(services: Services = Depends(get_services)) -> list[ProductOut]:
        return [_product_out(p) for p in services.repository.list_products()]

    @app.post("/products", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
    def create_product(body: ProductCreate, services: Services = Depends(get_services)) -> ProductOut:
        product = services.repository.create_product(
            body.name.strip(),
            body.description,
            system_prompt=body.system_prompt,
            created_by=body.created_by,
        )
        return _product_out(product)

    @app.get("/products/{product_id}/documents", response_model=list[DocumentOut])
    def list_documents(product_id: str, services: Services = Depends(get_services)) -> list[DocumentOut]:
        services.repository.get_product(product_id)
        return [_document_out(d) for d in services.repository.list_documents(product_id)]

    @app.post("/chat", response_model=ChatResponse)
    def chat(body: ChatRequest, services: Services = Depends(get_services)) -> ChatResponse:
        """Answer a question with the current catalog's search tools."""
        conversation = [turn.model_dump() for turn in body.history]
        conversation.append({"role": "user", "content": body.message})
        result = services.orchestrator.run(
            conversation,
            max_steps=settings.max_steps,
            org_name=body.org_name or settings.org_name or None,
        )
        return ChatResponse(
            response=result.text,
            tool_call_count=result.tool_call_count,
            finish_reason=result.finish_reason,
        )

    @app.post("/documents", response_model=DocumentOut, status_code=status.HTTP_202_ACCEPTED)
    def upload_document(
        background_tasks: BackgroundTasks,
        file: UploadFile = File(...),
        product_name: str = Form(..., alias="productName"),
        product_description: str = Form("", alias="productDescription"),
        services: Services = Depends(get_services),
    ) -> DocumentOut:
        """Store an uploaded file under its product and ingest it in the background.

        The product is created on first upload when *productName* is new.
        """
        filename = Path(file.filename or "").name
        extension = Path(filename).suffix.lower()
        if extension not in SUPPORTED_EXTENSIONS:
            raise UnsupportedFileType(extension or filename)

        data = file.file.read()
        product = services.repository.get_or_create_product(product_name.strip(), product_description)
        location = services.storage.build_location(product.id, filename)
        services.storage.upload(location, data)
        document = services.repository.create_document(
            product.id,
            filename,
            location,
            file.content_type or guess_mime_type(filename),
        )
        logger.info("Accepted %s (%d bytes) for product %r", filename, len(data), product.name)

        background_tasks.add_task(
            _ingest_in_background,
            services.coordinator,
            document.id,
            product.id,
            location,
            filename,
        )
        return _document_out(document)

    @app.post("/documents/{document_id}/ingest", response_model=IngestResponse)
    def ingest_document(document_id: str, services: Services = Depends(get_services)) -> IngestResponse:
        """(Re-)ingest a document, resuming from its last completed step."""
        result = services.coordinator.resume(document_id)
        return IngestResponse(document_id=result.document_id, chunk_count=result.chunk_count, tags=result.tags)

    @app.delete("/documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_document(document_id: str, services: Services = Depends(get_services)) -> Response:
        services.coordinator.delete_document(document_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app


app = create_app()
