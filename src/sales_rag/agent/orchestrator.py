"""Answer a sales conversation using the current product catalog as tools.

The orchestrator is the single entry point callers use (HTTP route,
chat bots, CLI).  Per call it:

1. lists the catalog and builds one search tool per product,
2. renders the persona system prompt (plus any per-product guidance),
3. runs the LangGraph tool-calling loop bounded by ``max_steps``,
4. reports the final text, how many tools were invoked and why it stopped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from langchain_core.messages import AIMessage

from sales_rag.agent.graph import build_graph, create_initial_state, recursion_limit_for
from sales_rag.agent.prompts import build_conversation
from sales_rag.agent.state import ToolCall
from sales_rag.agent.tools import build_product_tools
from sales_rag.config import settings

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

    from sales_rag.db.repository import CatalogRepository
    from sales_rag.retrieval.search import ProductSearcher

logger = logging.getLogger(__name__)


@dataclass
class OrchestratorResult:
    text: str
    tool_call_count: int
    finish_reason: str
    tool_calls: list[ToolCall] = field(default_factory=list)


class Orchestrator:
    """Drive one tool-calling conversation per :meth:`run`.

    Parameters
    ----------
    repository:
        Catalog source; products are re-listed on every call so new
        products become searchable without a restart.
    searcher:
        Product-scoped vector search used by every tool.
    llm:
        Tool-calling chat model (see :func:`sales_rag.agent.llm.get_llm`).
    """

    def __init__(
        self,
        repository: CatalogRepository,
        searcher: ProductSearcher,
        llm: BaseChatModel,
        *,
        match_count: int = settings.match_count,
        match_threshold: float = settings.match_threshold,
    ) -> None:
        self._repository = repository
        self._searcher = searcher
        self._llm = llm
        self._match_count = match_count
        self._match_threshold = match_threshold

    def run(
        self,
        conversation: list[dict[str, Any]],
        max_steps: int = settings.max_steps,
        org_name: str | None = None,
    ) -> OrchestratorResult:
        """Answer the last user turn of *conversation*.

        Raises
        ------
        ValueError
            On an empty conversation, an unknown role or ``max_steps < 1``.
        ToolNameCollisionError
            When two catalog products derive the same tool name.
        """
        products = self._repository.list_products()
        tools = build_product_tools(
            products,
            self._searcher,
            match_count=self._match_count,
            match_threshold=self._match_threshold,
        )
        guidance = {p.name: p.system_prompt for p in products if getattr(p, "system_prompt", None)}

        messages = build_conversation(
            conversation,
            org_name=org_name,
            has_tools=bool(tools),
            product_guidance=guidance,
        )
        graph = build_graph(self._llm, tools)
        final = graph.invoke(
            create_initial_state(messages, max_steps=max_steps),
            config={"recursion_limit": recursion_limit_for(max_steps)},
        )

        result = OrchestratorResult(
            text=_final_text(final["messages"]),
            tool_call_count=final.get("tool_call_count", 0),
            finish_reason=final.get("finish_reason") or "stop",
            tool_calls=list(final.get("tool_calls_made", [])),
        )
        logger.info(
            "Orchestration finished: %d round(s), %d tool call(s), finish_reason=%s",
            final.get("step", 0),
            result.tool_call_count,
            result.finish_reason,
        )
        return result

    def ask(self, message: str, **kwargs: Any) -> OrchestratorResult:
        """Single-question convenience wrapper around :meth:`run`."""
        return self.run([{"role": "user", "content": message}], **kwargs)


def _final_text(messages: list[Any]) -> str:
    """Content of the most recent model reply that carried text."""
    for message in reversed(messages):
        if isinstance(message, AIMessage):
            text = _content_text(message.content)
            if text:
                return text
    return ""


def _content_text(content: Any) -> str:
    if isinstance(content, str):
        return content.strip()
    # Content-block lists (e.g. [{"type": "text", "text": ...}])
    parts = [block.get("text", "") for block in content if isinstance(block, dict) and block.get("type") == "text"]
    return "".join(parts).strip()
