"""Cursor pagination over Admin API connections."""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Protocol, Sequence

from storeops.catalog.errors import UserErrors

logger = logging.getLogger(__name__)


class CatalogClient(Protocol):
    async def request(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]: ...

    async def execute(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]: ...


def dig(data: Any, path: Sequence[str]) -> Any:
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def edge_nodes(connection: dict[str, Any] | None) -> list[dict[str, Any]]:
    edges = (connection or {}).get("edges") or []
    return [edge["node"] for edge in edges if edge and edge.get("node")]


def next_cursor(connection: dict[str, Any] | None) -> str | None:
    """End cursor of the page, or None when there are no more pages."""
    info = (connection or {}).get("pageInfo") or {}
    if not info.get("hasNextPage"):
        return None
    return info.get("endCursor")


async def paginate(
    client: CatalogClient,
    query: str,
    variables: dict[str, Any],
    path: Sequence[str],
) -> AsyncIterator[list[dict[str, Any]]]:
    """Yield the nodes of each page of the connection at ``path``, in order.

    Each request needs the previous page's end cursor, so pages are strictly
    sequential.
    """
    after: str | None = None
    page = 0
    while True:
        data = await client.execute(query, {**variables, "after": after})
        connection = dig(data, path)
        page += 1
        nodes = edge_nodes(connection)
        logger.debug("Fetched page %s of %s (%s nodes)", page, ".".join(path), len(nodes))
        yield nodes
        after = next_cursor(connection)
        if after is None:
            break


async def order_line_items(
    client: CatalogClient,
    order: dict[str, Any],
    follow_query: str,
) -> AsyncIterator[dict[str, Any]]:
    """Yield every line item of ``order``.

    The first page comes embedded in the order node; when it overflows the
    remaining pages are fetched through ``follow_query`` before returning.
    """
    connection = order.get("lineItems")
    while True:
        for node in edge_nodes(connection):
            yield node
        after = next_cursor(connection)
        if after is None:
            return
        data = await client.execute(follow_query, {"id": order["id"], "after": after})
        connection = dig(data, ("order", "lineItems"))


def check_user_errors(payload: dict[str, Any] | None) -> None:
    errors = (payload or {}).get("userErrors") or []
    if errors:
        raise UserErrors([err.get("message") or "User error" for err in errors])
