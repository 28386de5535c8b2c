"""Catalog repository: products, documents and durable step results.

All writes are whole-row overwrites (last writer wins per document).
Concurrent re-ingestion of the same document id is not guarded against.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from sales_rag.db.models import Document, DocumentStatus, Product, StepResult
from sales_rag.errors import InvalidStatusTransition, NotFoundError, ProductExistsError
from sales_rag.naming import check_new_name

logger = logging.getLogger(__name__)

# Any state may restart as ``processing`` (retries / re-ingestion);
# ``failed`` is only reachable from ``processing``.
_ALLOWED_TRANSITIONS: dict[DocumentStatus, set[DocumentStatus]] = {
    DocumentStatus.PENDING: {DocumentStatus.PROCESSING},
    DocumentStatus.PROCESSING: {DocumentStatus.COMPLETED, DocumentStatus.FAILED},
    DocumentStatus.COMPLETED: {DocumentStatus.PROCESSING},
    DocumentStatus.FAILED: {DocumentStatus.PROCESSING},
}


class CatalogRepository:
    """Thin transactional wrapper around the catalog tables.

    Parameters
    ----------
    session_factory:
        A :class:`sessionmaker` from :func:`sales_rag.db.session.create_session_factory`.
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    # -- products -------------------------------------------------------------

    def list_products(self) -> list[Product]:
        """All products, oldest first."""
        with self._session_factory() as session:
            rows = session.scalars(select(Product).order_by(Product.created_at, Product.name))
            return list(rows)

    def get_product(self, product_id: str) -> Product:
        with self._session_factory() as session:
            product = session.get(Product, product_id)
            if product is None:
                raise NotFoundError(f"Product {product_id} not found")
            return product

    def get_product_by_name(self, name: str) -> Product | None:
        with self._session_factory() as session:
            return session.scalars(select(Product).where(Product.name == name)).first()

    def create_product(
        self,
        name: str,
        description: str = "",
        *,
        system_prompt: str = "",
        created_by: str | None = None,
    ) -> Product:
        """Insert a product after checking its tool name is free.

        Raises
        ------
        ProductExistsError
            A product with exactly this name exists.
        ToolNameCollisionError
            A differently-named product derives the same tool name.
        """
        with self._session_factory() as session, session.begin():
            existing = list(session.scalars(select(Product.name)))
            if name in existing:
                raise ProductExistsError(name)
            check_new_name(name, existing)
            product = Product(
                name=name,
                description=description,
                system_prompt=system_prompt,
                created_by=created_by,
            )
            session.add(product)
        logger.info("Created product %r (%s)", name, product.id)
        return product

    def get_or_create_product(self, name: str, description: str = "", **kwargs: Any) -> Product:
        existing = self.get_product_by_name(name)
        if existing is not None:
            return existing
        return self.create_product(name, description, **kwargs)

    # -- documents ------------------------------------------------------------

    def create_document(
        self,
        product_id: str,
        filename: str,
        storage_location: str,
        mime_type: str = "application/octet-stream",
    ) -> Document:
        with self._session_factory() as session, session.begin():
            if session.get(Product, product_id) is None:
                raise NotFoundError(f"Product {product_id} not found")
            document = Document(
                product_id=product_id,
                filename=filename,
                storage_location=storage_location,
                mime_type=mime_type,
                status=DocumentStatus.PENDING.value,
            )
            session.add(document)
        return document

    def get_document(self, document_id: str) -> Document:
        with self._session_factory() as session:
            return self._load_document(session, document_id)

    def list_documents(self, product_id: str) -> list[Document]:
        with self._session_factory() as session:
            rows = session.scalars(
                select(Document).where(Document.product_id == product_id).order_by(Document.created_at)
            )
            return list(rows)

    def update_document_status(
        self,
        document_id: str,
        status: DocumentStatus | str,
        error_message: str | None = None,
        *,
        tags: list[str] | None = None,
    ) -> Document:
        """Move a document to *status*.

        Re-applying the current status is a no-op transition so that
        idempotent steps can be replayed.  Entering ``processing`` clears
        any previous error message.
        """
        target = DocumentStatus(status)
        with self._session_factory() as session, session.begin():
            document = self._load_document(session, document_id)
            current = DocumentStatus(document.status)
            if target != current and target not in _ALLOWED_TRANSITIONS[current]:
                raise InvalidStatusTransition(document_id, current.value, target.value)

            document.status = target.value
            if target is DocumentStatus.PROCESSING:
                document.error_message = None
            elif error_message is not None:
                document.error_message = error_message
            if tags is not None:
                document.tags = list(tags)
        logger.info("Document %s: %s → %s", document_id, current.value, target.value)
        return document

    def delete_document(self, document_id: str) -> None:
        """Delete the document row (step results cascade)."""
        with self._session_factory() as session, session.begin():
            document = self._load_document(session, document_id)
            session.delete(document)

    # -- durable step results -------------------------------------------------

    def save_step_result(self, document_id: str, step: str, payload: Any, *, attempts: int = 1) -> None:
        """Persist *step*'s output and advance the document's cursor to it."""
        with self._session_factory() as session, session.begin():
            document = self._load_document(session, document_id)
            row = session.scalars(
                select(StepResult).where(StepResult.document_id == document_id, StepResult.step == step)
            ).first()
            if row is None:
                row = StepResult(document_id=document_id, step=step)
                session.add(row)
            row.payload = payload
            row.attempts = attempts
            document.last_completed_step = step

    def load_step_results(self, document_id: str) -> dict[str, Any]:
        """Persisted step outputs keyed by step name."""
        with self._session_factory() as session:
            rows = session.scalars(select(StepResult).where(StepResult.document_id == document_id))
            return {row.step: row.payload for row in rows}

    def clear_step_results(self, document_id: str) -> None:
        """Forget every persisted step and reset the cursor."""
        with self._session_factory() as session, session.begin():
            document = self._load_document(session, document_id)
            session.execute(delete(StepResult).where(StepResult.document_id == document_id))
            document.last_completed_step = None

    # -- internals ------------------------------------------------------------

    @staticmethod
    def _load_document(session: Session, document_id: str) -> Document:
        document = session.get(Document, document_id)
        if document is None:
            raise NotFoundError(f"Document {document_id} not found")
        return document
