"""Prompt templates for orchestration and document tagging.

Keeping prompts in one place makes them easy to audit, version, and A/B
test.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage

# ── 1. Sales enablement persona ───────────────────────────────────────

SALES_ENABLEMENT_SYSTEM_PROMPT = """\
You are the VP of Product Marketing at {company}. You have deep, authoritative \
knowledge of every product and feature in the portfolio.

Your role is to help sales representatives understand our products so they can \
close deals confidently.

Guidelines:
- Answer in a direct, confident, business-oriented tone, like a seasoned VP talking to their sales team
- When comparing products or features, be clear about differentiation and competitive advantages
- Always ground your answers in the actual product documentation retrieved by your tools
- If information spans multiple products, synthesize it into a cohesive narrative
- Flag gaps if a topic isn't covered in the available documentation
- Keep answers concise but complete; sales reps need to act fast

You have access to the full product knowledge base through specialized search \
tools. Use them to retrieve the most relevant information before answering.
"""

NO_TOOLS_ADDENDUM = """
No product knowledge bases are available right now. Answer from general \
knowledge and say clearly that the answer is not backed by product documentation.
"""


def build_system_prompt(
    org_name: str | None = None,
    *,
    has_tools: bool = True,
    product_guidance: dict[str, str] | None = None,
) -> str:
    """Persona prompt, personalised with the organisation name when known.

    *product_guidance* maps product names to their system-prompt overrides;
    non-empty entries are appended as per-product instructions.
    """
    prompt = SALES_ENABLEMENT_SYSTEM_PROMPT.format(company=org_name or "this company")
    if not has_tools:
        prompt += NO_TOOLS_ADDENDUM
    guidance = {name: text.strip() for name, text in (product_guidance or {}).items() if text.strip()}
    if guidance:
        prompt += "\nProduct-specific instructions:\n"
        prompt += "\n".join(f"- {name}: {text}" for name, text in guidance.items())
        prompt += "\n"
    return prompt


def build_conversation(
    conversation: list[dict[str, Any]],
    *,
    org_name: str | None = None,
    has_tools: bool = True,
    product_guidance: dict[str, str] | None = None,
) -> list[BaseMessage]:
    """Turn ``[{"role": ..., "content": ...}]`` dicts into LangChain messages.

    Raises
    ------
    ValueError
        On an unknown role or an empty conversation.
    """
    if not conversation:
        raise ValueError("conversation must contain at least one message")

    system = build_system_prompt(org_name, has_tools=has_tools, product_guidance=product_guidance)
    messages: list[BaseMessage] = [SystemMessage(content=system)]
    for turn in conversation:
        role = turn.get("role")
        content = turn.get("content", "")
        if role == "user":
            messages.append(HumanMessage(content=content))
        elif role == "assistant":
            messages.append(AIMessage(content=content))
        else:
            raise ValueError(f"Unsupported message role: {role!r}")
    return messages


# ── 2. Tool descriptions ──────────────────────────────────────────────

TOOL_DESCRIPTION = (
    "Search the knowledge base for information about {name}. {description}. "
    "Use this tool when the user asks about {name} features, pricing, use cases, "
    "or competitive positioning."
)

QUERY_ARG_DESCRIPTION = "The specific question or topic to search for within {name} documentation"

SEARCH_UNAVAILABLE = (
    "The {name} knowledge base is temporarily unavailable. "
    "Tell the user you could not check the {name} documentation right now."
)


def build_tool_description(name: str, description: str) -> str:
    return TOOL_DESCRIPTION.format(name=name, description=description.strip().rstrip(".") or name)


# ── 3. Document tagging ───────────────────────────────────────────────

TAGGING_SYSTEM = """\
You classify sales documentation.

Given an excerpt of a document, return a JSON object with one key:

  "tags" – a list of 1-5 short lower-case labels describing the document
           (e.g. "pricing", "security", "onboarding", "competitive",
           "release-notes", "integration")

Respond with **only** valid JSON — no markdown fences, no commentary.
"""


def build_tagging_prompt(filename: str, excerpt: str) -> list[BaseMessage]:
    """Prompt for :class:`sales_rag.ingestion.tagging.DocumentTagger`."""
    return [
        SystemMessage(content=TAGGING_SYSTEM),
        HumanMessage(content=f"Document: {filename}\n\nExcerpt:\n{excerpt}"),
    ]
