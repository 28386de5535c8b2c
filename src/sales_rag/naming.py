"""Deterministic product name → tool name derivation."""

from __future__ import annotations

import re
from collections.abc import Iterable

from sales_rag.errors import ToolNameCollisionError

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def derive_tool_name(product_name: str) -> str:
    """``"Acme CRM+"`` → ``"search_acme_crm_"``.

    Every character outside ``[a-zA-Z0-9]`` becomes ``_`` and the result
    is lower-cased.
    """
    return f"search_{_NON_ALNUM.sub('_', product_name).lower()}"


def check_new_name(product_name: str, existing_names: Iterable[str]) -> None:
    """Reject *product_name* if its tool name is taken by another product."""
    tool_name = derive_tool_name(product_name)
    clashes = [n for n in existing_names if n != product_name and derive_tool_name(n) == tool_name]
    if clashes:
        raise ToolNameCollisionError(tool_name, [*clashes, product_name])
