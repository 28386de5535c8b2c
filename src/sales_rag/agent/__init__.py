"""
Agent — tool-calling sales assistant built with LangGraph.

This module contains **zero** infrastructure dependencies.  It wires
per-product search tools into a LangGraph loop that can be tested
locally with a fake chat model and a fake searcher.

Public API
----------
- :class:`Orchestrator` — answer a conversation against the catalog.
- :func:`build_product_tools` — one ``search_<product>`` tool per product.
- :func:`build_graph` — compile the tool-calling loop.
- :func:`create_initial_state` — bootstrap the state dict for ``graph.invoke()``.
- :class:`OrchestratorState` — the TypedDict flowing through every node.
"""

from sales_rag.agent.graph import build_graph, create_initial_state
from sales_rag.agent.orchestrator import Orchestrator, OrchestratorResult
from sales_rag.agent.state import OrchestratorState, ToolCall
from sales_rag.agent.tools import build_product_tools

__all__ = [
    "Orchestrator",
    "OrchestratorResult",
    "OrchestratorState",
    "ToolCall",
    "build_graph",
    "build_product_tools",
    "create_initial_state",
]
