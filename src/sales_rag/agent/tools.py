"""Per-product search tools exposed to the orchestrating LLM.

The tool set is rebuilt from the product catalog on every orchestration
call, so a newly created product is searchable on the next question with
no code change.  Each tool is scoped to one product's chunk namespace.

Dependency-injection note
-------------------------
:func:`build_product_tools` receives the product list and the
:class:`~sales_rag.retrieval.search.ProductSearcher` explicitly; tests pass
plain objects and a fake searcher.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Protocol

from langchain_core.tools import StructuredTool
from pydantic import BaseModel, Field, create_model

from sales_rag.agent.prompts import QUERY_ARG_DESCRIPTION, SEARCH_UNAVAILABLE, build_tool_description
from sales_rag.config import settings
from sales_rag.errors import SearchError, ToolNameCollisionError
from sales_rag.naming import derive_tool_name
from sales_rag.retrieval.search import ProductSearcher, format_search_results

logger = logging.getLogger(__name__)


class ProductLike(Protocol):
    id: str
    name: str
    description: str


def _args_schema(tool_name: str, product_name: str) -> type[BaseModel]:
    """``{"query": str}`` input schema whose description names the product."""
    return create_model(
        f"{tool_name}_input",
        query=(str, Field(description=QUERY_ARG_DESCRIPTION.format(name=product_name))),
    )


def _make_executor(
    searcher: ProductSearcher,
    product_id: str,
    product_name: str,
    *,
    match_count: int,
    match_threshold: float,
) -> Callable[[str], str]:
    def search_product(query: str) -> str:
        try:
            results = searcher.search(
                product_id,
                query,
                match_count=match_count,
                match_threshold=match_threshold,
            )
        except SearchError:
            logger.exception("Knowledge base for %s unavailable", product_name)
            return SEARCH_UNAVAILABLE.format(name=product_name)
        return format_search_results(results, product_name)

    return search_product


def build_product_tools(
    products: Iterable[ProductLike],
    searcher: ProductSearcher,
    *,
    match_count: int = settings.match_count,
    match_threshold: float = settings.match_threshold,
) -> dict[str, StructuredTool]:
    """Build one ``search_<product>`` tool per product.

    Parameters
    ----------
    products:
        Current catalog, in listing order.
    searcher:
        Search backend every tool delegates to.
    match_count / match_threshold:
        Forwarded to :meth:`ProductSearcher.search`.

    Returns
    -------
    dict[str, StructuredTool]
        Tool name → tool.  Empty when the catalog is empty.

    Raises
    ------
    ToolNameCollisionError
        When two products derive the same tool name.
    """
    tools: dict[str, StructuredTool] = {}
    for product in products:
        tool_name = derive_tool_name(product.name)
        if tool_name in tools:
            raise ToolNameCollisionError(tool_name, [tools[tool_name].metadata["product_name"], product.name])

        tools[tool_name] = StructuredTool.from_function(
            func=_make_executor(
                searcher,
                product.id,
                product.name,
                match_count=match_count,
                match_threshold=match_threshold,
            ),
            name=tool_name,
            description=build_tool_description(product.name, product.description or ""),
            args_schema=_args_schema(tool_name, product.name),
            metadata={"product_id": product.id, "product_name": product.name},
        )

    if not tools:
        logger.warning("No products found in catalog; tool set is empty")
    else:
        logger.debug("Built %d product tool(s): %s", len(tools), sorted(tools))
    return tools

