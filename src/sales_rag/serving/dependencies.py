"""Service construction for the HTTP entry point.

Every client (catalog engine, vector store, embeddings, chat model) is
built here once at startup and handed to the routes through
``app.state.services``.  Tests build a :class:`Services` from fakes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Request

from sales_rag.agent.llm import get_llm
from sales_rag.agent.orchestrator import Orchestrator
from sales_rag.config import settings
from sales_rag.db import CatalogRepository, create_db_engine, create_session_factory, init_db
from sales_rag.ingestion.coordinator import IngestionCoordinator
from sales_rag.ingestion.embedder import get_embedding_function
from sales_rag.ingestion.tagging import DocumentTagger
from sales_rag.retrieval.base import VectorStoreBase
from sales_rag.retrieval.search import ProductSearcher
from sales_rag.storage import LocalObjectStorage, ObjectStorage

logger = logging.getLogger(__name__)


@dataclass
class Services:
    repository: CatalogRepository
    storage: ObjectStorage
    store: VectorStoreBase
    coordinator: IngestionCoordinator
    orchestrator: Orchestrator


def build_services() -> Services:
    """Wire the production services from ``settings``."""
    from sales_rag.retrieval.chroma_store import ChromaVectorStore

    engine = create_db_engine(settings.database_url)
    init_db(engine)
    repository = CatalogRepository(create_session_factory(engine))

    storage = LocalObjectStorage(settings.storage_root)
    store = ChromaVectorStore(settings.chroma_collection, host=settings.chroma_host, port=settings.chroma_port)
    embeddings = get_embedding_function()
    llm = get_llm()

    coordinator = IngestionCoordinator(
        repository,
        storage,
        embeddings,
        store,
        tagger=DocumentTagger(llm) if settings.enable_tagging else None,
    )
    orchestrator = Orchestrator(repository, ProductSearcher(store, embeddings), llm)
    logger.info(
        "Services ready (catalog=%s, chroma=%s:%s/%s)",
        engine.url.render_as_string(hide_password=True),
        settings.chroma_host,
        settings.chroma_port,
        settings.chroma_collection,
    )
    return Services(
        repository=repository,
        storage=storage,
        store=store,
        coordinator=coordinator,
        orchestrator=orchestrator,
    )


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the services attached at startup."""
    return request.app.state.services
