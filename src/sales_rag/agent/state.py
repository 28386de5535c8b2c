"""Orchestrator state definition — shared across all graph nodes.

The state is the *single source of truth* that flows through the
tool-calling loop.  Each field is documented so that new nodes can be
added without guessing what data is available.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated, Any, TypedDict

from langchain_core.messages import BaseMessage
from langgraph.graph.message import add_messages


# ---------------------------------------------------------------------------
# Structured sub-models (plain dataclasses, no Pydantic in state)
# ---------------------------------------------------------------------------


@dataclass
class ToolCall:
    """Record of a single tool invocation.

    Attributes
    ----------
    tool_name:
        Which tool was called (e.g. ``"search_acme_crm"``).
    tool_input:
        The arguments the model passed to the tool.
    step:
        The model round (1-based) that requested the call.
    ok:
        ``False`` when the tool raised or was unknown.
    """

    tool_name: str
    tool_input: dict[str, Any] = field(default_factory=dict)
    step: int = 0
    ok: bool = True


# ---------------------------------------------------------------------------
# Reducers
# ---------------------------------------------------------------------------


def _append_list(existing: list[Any], new: list[Any]) -> list[Any]:
    """Reducer that appends *new* items to the *existing* list."""
    return existing + new


# ---------------------------------------------------------------------------
# Orchestrator state
# ---------------------------------------------------------------------------


class OrchestratorState(TypedDict):
    """Typed state that flows through the LangGraph tool-calling loop.

    Attributes
    ----------
    messages:
        System prompt, conversation, model replies and tool results,
        managed by LangGraph's ``add_messages`` reducer.
    tool_calls_made:
        Chronological log of every tool invocation.
    tool_call_count:
        Total tool invocations summed across all rounds.
    step:
        Number of model calls made so far.
    max_steps:
        Cap on model calls for one orchestration.
    finish_reason:
        Why the loop stopped; empty while running.
    """

    messages: Annotated[list[BaseMessage], add_messages]
    tool_calls_made: Annotated[list[ToolCall], _append_list]
    tool_call_count: int
    step: int
    max_steps: int
    finish_reason: str
