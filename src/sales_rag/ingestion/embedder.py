"""Voyage AI embeddings behind the LangChain ``Embeddings`` interface.

Queries and passages are embedded asymmetrically: ``embed_query`` sends
``input_type="query"`` and ``embed_documents`` sends
``input_type="document"``.  Retrieval quality depends on keeping the two
modes apart.

No retry or backoff happens here; the ingestion coordinator owns retries.
"""

from __future__ import annotations

import logging
from typing import Any

import requests
from langchain_core.embeddings import Embeddings

from sales_rag.config import settings
from sales_rag.errors import ConfigurationError, EmbeddingServiceError

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 128


class VoyageEmbeddings(Embeddings):
    """HTTP client for a Voyage-compatible ``/v1/embeddings`` endpoint.

    Parameters
    ----------
    api_key:
        Bearer credential.  Checked lazily so the client can be built
        before the key is configured; any call without one raises
        :class:`ConfigurationError`.
    model:
        Embedding model identifier.
    api_url:
        Full endpoint URL.
    batch_size:
        Inputs per request, capped at :data:`MAX_BATCH_SIZE`.
    timeout:
        Per-request timeout in seconds.
    session:
        Optional pre-built ``requests.Session`` (tests inject a fake).
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        model: str | None = None,
        api_url: str | None = None,
        batch_size: int = MAX_BATCH_SIZE,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.voyage_api_key
        self.model = model or settings.embedding_model
        self.api_url = api_url or settings.embedding_api_url
        self.batch_size = max(1, min(batch_size, MAX_BATCH_SIZE))
        self.timeout = timeout if timeout is not None else settings.embedding_timeout
        self._session = session or requests.Session()

    # -- Embeddings interface -------------------------------------------------

    def embed_query(self, text: str) -> list[float]:
        """Embed a single search query."""
        [embedding] = self._call([text], input_type="query")
        return embedding

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Embed passages in sequential batches, preserving input order."""
        results: list[list[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start : start + self.batch_size]
            results.extend(self._call(batch, input_type="document"))
            logger.debug("embedded %d / %d", len(results), len(texts))
        return results

    # -- internals ------------------------------------------------------------

    def _call(self, inputs: list[str], *, input_type: str) -> list[list[float]]:
        if not self.api_key:
            raise ConfigurationError("Missing VOYAGE_API_KEY: no embedding credential configured")

        try:
            response = self._session.post(
                self.api_url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json={"input": inputs, "model": self.model, "input_type": input_type},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise EmbeddingServiceError(0, f"request failed: {exc}") from exc
        if not response.ok:
            raise EmbeddingServiceError(response.status_code, response.text)

        try:
            payload: dict[str, Any] = response.json()
        except ValueError as exc:
            raise EmbeddingServiceError(response.status_code, f"invalid JSON response: {response.text[:200]}") from exc
        data = sorted(payload.get("data", []), key=lambda item: item["index"])
        if len(data) != len(inputs):
            raise EmbeddingServiceError(
                response.status_code,
                f"expected {len(inputs)} embeddings, got {len(data)}",
            )
        return [item["embedding"] for item in data]


def get_embedding_function() -> VoyageEmbeddings:
    """Return the configured embedding client."""
    return VoyageEmbeddings()
