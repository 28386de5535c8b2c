"""Chat-model construction for the orchestrator and the document tagger.

Two deployments are supported:

* **OpenAI cloud**: set ``OPENAI_API_KEY``.
* **OpenAI-compatible endpoint**: set ``LLM_BASE_URL`` (vLLM, a gateway in
  front of another provider).  The served model must support tool calling.

The model is built once by each entry point and injected into the
:class:`~sales_rag.agent.orchestrator.Orchestrator`; nothing here caches a
client.
"""

from __future__ import annotations

import logging

from langchain_openai import ChatOpenAI

from sales_rag.config import settings
from sales_rag.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Placeholder key for self-hosted endpoints; the client rejects an empty one.
_UNAUTHENTICATED_KEY = "EMPTY"


def get_llm(temperature: float | None = None) -> ChatOpenAI:
    """Return the configured tool-calling chat model.

    Parameters
    ----------
    temperature:
        Overrides ``settings.llm_temperature`` when given.

    Raises
    ------
    ConfigurationError
        When neither an API key nor a custom base URL is configured.
    """
    if not settings.openai_api_key and not settings.llm_base_url:
        raise ConfigurationError("Set OPENAI_API_KEY or LLM_BASE_URL to configure the chat model")

    endpoint = settings.llm_base_url or None
    model = ChatOpenAI(
        model=settings.llm_model_name,
        temperature=settings.llm_temperature if temperature is None else temperature,
        api_key=settings.openai_api_key or _UNAUTHENTICATED_KEY,
        base_url=endpoint,
        timeout=settings.llm_timeout,
        max_retries=settings.llm_max_retries,
    )
    logger.info("Chat model %s via %s", settings.llm_model_name, endpoint or "OpenAI cloud")
    return model
