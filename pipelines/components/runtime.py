"""Container image shared by every ingestion component.

The components import :mod:`sales_rag` inside their bodies, so they run
on an image with the project installed (``pip install .`` on top of
``python:3.11-slim``).  Override with ``SALES_RAG_COMPONENT_IMAGE`` when
compiling.
"""

import os

COMPONENT_IMAGE = os.environ.get("SALES_RAG_COMPONENT_IMAGE", "sales-rag:0.1.0")
