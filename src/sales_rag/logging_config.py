"""Process-wide logging setup, applied once by each entry point."""

from __future__ import annotations

import logging

from sales_rag.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure the root logger from ``settings.log_level``.

    Safe to call more than once; later calls only adjust the level.
    """
    resolved = (level or settings.log_level).upper()
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logging.getLogger().setLevel(resolved)
    # chromadb and httpx are chatty at INFO
    for noisy in ("chromadb", "httpx", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
