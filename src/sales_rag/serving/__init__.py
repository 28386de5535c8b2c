"""
Serving — FastAPI application for chat, catalog management and ingestion.

Run with ``uvicorn sales_rag.serving.app:app``; services are built from
``settings`` at startup (see :mod:`sales_rag.serving.dependencies`).
"""
