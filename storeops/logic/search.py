"""Variant picker search."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from storeops.catalog.pagination import CatalogClient, edge_nodes
from storeops.catalog.queries import VARIANT_SEARCH

DEFAULT_FIRST = 10
MAX_FIRST = 25


@dataclass(slots=True)
class VariantItem:
    variant_id: str
    product_id: str
    product_title: str
    vendor: str
    variant_title: str
    sku: str
    label: str
    options: list[dict[str, Any]] = field(default_factory=list)


def search_query(q: str) -> str:
    return f"title:*{q}* OR sku:*{q}* OR vendor:*{q}*"


def variant_label(product_title: str, variant_title: str, sku: str) -> str:
    label = f"{product_title} - {variant_title}"
    return f"{label} [{sku}]" if sku else label


async def search_variants(client: CatalogClient, q: str | None, first: int | None = DEFAULT_FIRST) -> list[VariantItem]:
    """Products matching ``q`` by title, sku or vendor, flattened to one item per variant."""
    q = (q or "").strip()
    if not q:
        return []
    first = min(max(first or DEFAULT_FIRST, 1), MAX_FIRST)
    data = await client.execute(VARIANT_SEARCH, {"query": search_query(q), "first": first})
    items = []
    for product in edge_nodes(data.get("products")):
        product_title = product.get("title") or ""
        for variant in edge_nodes(product.get("variants")):
            variant_title = variant.get("title") or ""
            sku = variant.get("sku") or ""
            items.append(
                VariantItem(
                    variant_id=variant["id"],
                    product_id=product["id"],
                    product_title=product_title,
                    vendor=product.get("vendor") or "",
                    variant_title=variant_title,
                    sku=sku,
                    label=variant_label(product_title, variant_title, sku),
                    options=variant.get("selectedOptions") or [],
                )
            )
    return items
