"""
Catalog — products (search namespaces), documents and ingestion step state.

Public surface
--------------
- :class:`CatalogRepository` — all reads / writes the pipeline needs.
- :func:`create_db_engine`, :func:`create_session_factory`, :func:`init_db`.
- ORM models :class:`Product`, :class:`Document`, :class:`StepResult`
  and the :class:`DocumentStatus` enum.
"""

from sales_rag.db.models import Document, DocumentStatus, Product, StepResult
from sales_rag.db.repository import CatalogRepository
from sales_rag.db.session import create_db_engine, create_session_factory, init_db

__all__ = [
    "CatalogRepository",
    "Document",
    "DocumentStatus",
    "Product",
    "StepResult",
    "create_db_engine",
    "create_session_factory",
    "init_db",
]
