"""Graph nodes — each factory returns one step of the tool-calling loop.

Node contract
-------------
* Accepts the full :class:`OrchestratorState` dict.
* Returns a *partial* dict with **only the keys that changed**.
* The chat model and tool registry are closed over by the factories; no
  hidden global state so that every node is independently testable.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, ToolMessage
from langchain_core.runnables import Runnable
from langchain_core.tools import BaseTool

from sales_rag.agent.state import OrchestratorState, ToolCall

logger = logging.getLogger(__name__)

MAX_TOOL_WORKERS = 8

Node = Callable[[OrchestratorState], dict[str, Any]]


# ── 1. CALL MODEL ─────────────────────────────────────────────────────


def make_call_model(model: BaseChatModel | Runnable) -> Node:
    """Node that sends the running conversation to *model*.

    *model* is expected to already have the product tools bound (or none
    at all when the catalog is empty).
    """

    def call_model(state: OrchestratorState) -> dict[str, Any]:
        step = state.get("step", 0) + 1
        response = model.invoke(state["messages"])
        logger.debug("Model round %d requested %d tool call(s)", step, len(_tool_calls(response)))

        update: dict[str, Any] = {"messages": [response], "step": step}
        if not _tool_calls(response):
            update["finish_reason"] = _model_finish_reason(response)
        return update

    return call_model


# ── 2. EXECUTE TOOLS ──────────────────────────────────────────────────


def make_execute_tools(tools: dict[str, BaseTool], *, max_workers: int = MAX_TOOL_WORKERS) -> Node:
    """Node that runs every tool call of the last model reply.

    Calls within one round are independent and run on a thread pool; the
    resulting :class:`ToolMessage` objects keep the order of the calls.
    """

    def execute_tools(state: OrchestratorState) -> dict[str, Any]:
        calls = _tool_calls(state["messages"][-1])
        step = state.get("step", 0)
        if not calls:
            return {}

        with ThreadPoolExecutor(max_workers=min(max_workers, len(calls))) as pool:
            outcomes = list(pool.map(lambda call: _run_tool(tools, call), calls))

        messages = [message for message, _ in outcomes]
        log = [
            ToolCall(tool_name=call["name"], tool_input=dict(call.get("args") or {}), step=step, ok=ok)
            for call, (_, ok) in zip(calls, outcomes)
        ]
        update: dict[str, Any] = {
            "messages": messages,
            "tool_calls_made": log,
            "tool_call_count": state.get("tool_call_count", 0) + len(calls),
        }
        if step >= state.get("max_steps", 1):
            update["finish_reason"] = "max_steps"
        return update

    return execute_tools


# ── 3. ROUTING (conditional edges) ────────────────────────────────────


def route_after_model(state: OrchestratorState) -> str:
    """``"execute_tools"`` when the last reply requested tools, else ``"end"``."""
    if _tool_calls(state["messages"][-1]):
        return "execute_tools"
    return "end"


def route_after_tools(state: OrchestratorState) -> str:
    """``"call_model"`` while rounds remain, ``"end"`` once the cap is hit."""
    if state.get("step", 0) >= state.get("max_steps", 1):
        logger.info("Step cap of %d reached with tool results pending", state.get("max_steps"))
        return "end"
    return "call_model"


# ── Internal helpers ───────────────────────────────────────────────────


def _tool_calls(message: Any) -> list[dict[str, Any]]:
    if isinstance(message, AIMessage):
        return list(message.tool_calls or [])
    return []


def _model_finish_reason(message: Any) -> str:
    metadata = getattr(message, "response_metadata", None) or {}
    return str(metadata.get("finish_reason") or "stop")


def _run_tool(tools: dict[str, BaseTool], call: dict[str, Any]) -> tuple[ToolMessage, bool]:
    """Execute one tool call; failures become error text for the model."""
    name = call["name"]
    call_id = call.get("id") or ""
    tool = tools.get(name)
    if tool is None:
        logger.warning("Model requested unknown tool %r", name)
        return ToolMessage(content=f"Error: tool {name!r} does not exist.", tool_call_id=call_id, name=name), False

    try:
        output = tool.invoke(call.get("args") or {})
    except Exception as exc:
        logger.exception("Tool %s failed", name)
        return ToolMessage(content=f"Error: {name} failed: {exc}", tool_call_id=call_id, name=name), False
    return ToolMessage(content=str(output), tool_call_id=call_id, name=name), True
