"""Turn Admin API nodes into ingestion records and write their catalog rows."""

from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable

from sqlalchemy.engine import Connection

from storeops.catalog.pagination import dig
from storeops.db import store
from storeops.ingest.models import OrderLineRecord, ProductRecord, SnapshotRecord, VariantRecord
from storeops.logic.signals import to_int, to_money
from storeops.utils.dates import parse_timestamp

SIZE_RE = re.compile(r"size", re.IGNORECASE)
COLOR_RE = re.compile(r"colou?r", re.IGNORECASE)
DEFAULT_CURRENCY = "AUD"


def option_value(options: Iterable[dict[str, Any]] | None, pattern: re.Pattern[str]) -> str | None:
    for option in options or []:
        if pattern.search(option.get("name") or ""):
            return option.get("value")
    return None


def parse_product(node: dict[str, Any] | None) -> ProductRecord | None:
    if not node or not node.get("id"):
        return None
    return ProductRecord(
        id=node["id"],
        title=node.get("title") or "",
        vendor=node.get("vendor"),
        created_at=parse_timestamp(node.get("createdAt")),
    )


def parse_variant(node: dict[str, Any] | None, product: ProductRecord | None) -> VariantRecord | None:
    if not node or not node.get("id"):
        return None
    product_id = dig(node, ("product", "id")) or (product.id if product else None)
    if not product_id:
        return None
    options = node.get("selectedOptions")
    return VariantRecord(
        id=node["id"],
        product_id=product_id,
        title=node.get("title"),
        sku=node.get("sku"),
        size=option_value(options, SIZE_RE),
        color=option_value(options, COLOR_RE),
    )


def parse_line_item(order: dict[str, Any], node: dict[str, Any]) -> OrderLineRecord:
    product = parse_product(node.get("product"))
    variant = parse_variant(node.get("variant"), product)
    return OrderLineRecord(
        id=node["id"],
        order_id=order["id"],
        created_at=parse_timestamp(order["createdAt"]),
        product_id=product.id if product else None,
        variant_id=dig(node, ("variant", "id")),
        qty=max(0, to_int(node.get("quantity"))),
        currency=order.get("currencyCode") or DEFAULT_CURRENCY,
        net_amount=to_money(dig(node, ("discountedTotalSet", "shopMoney", "amount"))),
        product=product,
        variant=variant,
    )


def parse_snapshot(node: dict[str, Any]) -> SnapshotRecord | None:
    if dig(node, ("inventoryItem", "tracked")) is False:
        return None
    product = parse_product(node.get("product"))
    variant = parse_variant(node, product)
    if product is None or variant is None:
        return None
    cost = dig(node, ("inventoryItem", "unitCost", "amount"))
    return SnapshotRecord(
        product=product,
        variant=variant,
        on_hand=to_int(node.get("inventoryQuantity")),
        price=_optional_money(node.get("price")),
        cost=_optional_money(cost),
    )


def _optional_money(value: Any) -> Decimal | None:
    if value in (None, ""):
        return None
    return to_money(value)


def write_catalog_refs(
    conn: Connection,
    product: ProductRecord | None,
    variant: VariantRecord | None,
    *,
    now: datetime,
) -> None:
    """Upsert the product and variant a fact refers to."""
    if product is not None:
        store.upsert_product(
            conn, product.id, title=product.title, vendor=product.vendor, created_at=product.created_at
        )
    if variant is None:
        return
    if product is None or product.id != variant.product_id:
        store.ensure_product(conn, variant.product_id)
    store.upsert_variant(
        conn,
        variant.id,
        product_id=variant.product_id,
        title=variant.title,
        sku=variant.sku,
        size=variant.size,
        color=variant.color,
        updated_at=now,
    )
