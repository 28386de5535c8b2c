"""LangGraph graph definition — the sales-enablement tool-calling loop.

This module wires the nodes defined in :mod:`sales_rag.agent.nodes`
into a compiled :class:`StateGraph`:

1. **Call** the chat model with the conversation so far.
2. **Execute** any product-search tools it requested, concurrently.
3. **Loop** — feed the tool results back to the model until it answers
   without tools or ``max_steps`` model calls have been made.

The graph can be tested locally without any external infrastructure by
injecting fake tools / LLM stubs (see tests).
"""

from __future__ import annotations

from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage
from langchain_core.tools import BaseTool
from langgraph.graph import END, StateGraph

from sales_rag.agent.nodes import (
    make_call_model,
    make_execute_tools,
    route_after_model,
    route_after_tools,
)
from sales_rag.agent.state import OrchestratorState


def build_graph(llm: BaseChatModel, tools: dict[str, BaseTool] | None = None):
    """Construct and return the compiled LangGraph loop.

    Graph topology::

        ┌─────────┐
        │  START   │
        └────┬─────┘
             ▼
      ┌──────────────┐
      │  call_model   │◄──────────────────┐
      └──────┬───────┘                    │
             │ tool calls                 │ rounds left
             ▼                            │
      ┌──────────────┐                    │
      │ execute_tools ├───────────────────┘
      └──────┬───────┘
             │ step cap hit
             ▼
          [ END ]   (also reached from call_model on a plain answer)

    Parameters
    ----------
    llm:
        Chat model supporting tool calling.
    tools:
        Tool name → tool.  When empty the model is called without tools.

    Returns
    -------
    CompiledGraph
        A compiled LangGraph workflow ready for ``.invoke()``.
    """
    tools = tools or {}
    model = llm.bind_tools(list(tools.values())) if tools else llm

    workflow = StateGraph(OrchestratorState)

    # -- Nodes ---------------------------------------------------------------
    workflow.add_node("call_model", make_call_model(model))
    workflow.add_node("execute_tools", make_execute_tools(tools))

    # -- Edges ---------------------------------------------------------------
    workflow.set_entry_point("call_model")
    workflow.add_conditional_edges(
        "call_model",
        route_after_model,
        {"execute_tools": "execute_tools", "end": END},
    )
    workflow.add_conditional_edges(
        "execute_tools",
        route_after_tools,
        {"call_model": "call_model", "end": END},
    )

    return workflow.compile()


# ---------------------------------------------------------------------------
# Convenience helpers
# ---------------------------------------------------------------------------


def create_initial_state(messages: list[BaseMessage], *, max_steps: int = 5) -> dict[str, Any]:
    """Build the initial state dict for ``graph.invoke()``.

    Usage::

        graph = build_graph(get_llm(), tools)
        state = create_initial_state(build_conversation(history), max_steps=5)
        result = graph.invoke(state)
        print(result["messages"][-1].content)
    """
    if max_steps < 1:
        raise ValueError("max_steps must be at least 1")
    return {
        "messages": list(messages),
        "tool_calls_made": [],
        "tool_call_count": 0,
        "step": 0,
        "max_steps": max_steps,
        "finish_reason": "",
    }


def recursion_limit_for(max_steps: int) -> int:
    """LangGraph recursion limit that never cuts the loop short of *max_steps*."""
    return 2 * max_steps + 5
