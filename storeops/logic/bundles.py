"""Bundle capacity and bundle product creation."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Sequence

from sqlalchemy.engine import Engine

from storeops.catalog.errors import CatalogError
from storeops.catalog.pagination import CatalogClient, check_user_errors, dig, edge_nodes
from storeops.catalog.queries import INVENTORY_AGGREGATE, INVENTORY_BY_LOCATION, METAFIELDS_SET, PRODUCT_CREATE, VARIANTS_BULK_CREATE
from storeops.db import store
from storeops.logic.signals import to_int
from storeops.logic.validation import ValidationError, require_gid, require_positive, require_title

logger = logging.getLogger(__name__)

DISCOUNT_TYPES = ("PERCENT", "FIXED")


@dataclass(slots=True)
class BundleComponent:
    variant_id: str
    qty: int = 1


@dataclass(slots=True)
class Discount:
    type: str
    value: Decimal


@dataclass(slots=True)
class BundleCreated:
    bundle_id: str
    product_id: str
    variant_id: str
    capacity: int


def parse_components(raw: Iterable[Any] | None) -> list[BundleComponent]:
    """Validate ``{"variantId", "qty"}`` items from a request body."""
    components: list[BundleComponent] = []
    for index, item in enumerate(raw or []):
        if isinstance(item, BundleComponent):
            item = {"variantId": item.variant_id, "qty": item.qty}
        if not isinstance(item, dict):
            raise ValidationError(f"components[{index}] must be an object")
        variant_id = require_gid(item.get("variantId"), "ProductVariant", field=f"components[{index}].variantId")
        qty = require_positive(item.get("qty", 1), field=f"components[{index}].qty")
        components.append(BundleComponent(variant_id=variant_id, qty=qty))
    return components


def parse_discount(discount_type: str | None, value: Any) -> Discount | None:
    if discount_type is None:
        return None
    discount_type = str(discount_type).upper()
    if discount_type not in DISCOUNT_TYPES:
        raise ValidationError(f"discountType must be one of {', '.join(DISCOUNT_TYPES)}")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError("discountValue must be a number") from exc
    if not amount.is_finite() or amount < 0 or (discount_type == "PERCENT" and amount > 100):
        raise ValidationError("discountValue is out of range")
    return Discount(type=discount_type, value=amount)


def _available_by_location(nodes: Sequence[dict[str, Any] | None]) -> dict[str, int]:
    available: dict[str, int] = {}
    for node in nodes:
        if not node or not node.get("id"):
            continue
        total = 0
        for level in edge_nodes(dig(node, ("inventoryItem", "inventoryLevels"))):
            for quantity in level.get("quantities") or []:
                if quantity.get("name") == "available":
                    total += to_int(quantity.get("quantity"))
        available[node["id"]] = total
    return available


def _available_aggregate(nodes: Sequence[dict[str, Any] | None]) -> dict[str, int]:
    return {node["id"]: to_int(node.get("inventoryQuantity")) for node in nodes if node and node.get("id")}


async def fetch_available(client: CatalogClient, variant_ids: Sequence[str]) -> dict[str, int]:
    """Available quantity per variant, summed over locations.

    Shops whose API rejects the per-location ``quantities`` field are read
    through the older ``inventoryQuantity`` aggregate instead.
    """
    body = await client.request(INVENTORY_BY_LOCATION, {"ids": list(variant_ids), "names": ["available"]})
    primary_errors = body.get("errors") or []
    if not primary_errors:
        return _available_by_location(dig(body, ("data", "nodes")) or [])

    logger.info("Per-location inventory rejected, falling back to inventoryQuantity")
    body = await client.request(INVENTORY_AGGREGATE, {"ids": list(variant_ids)})
    fallback_errors = body.get("errors") or []
    if fallback_errors:
        raise CatalogError.from_errors(list(fallback_errors) + list(primary_errors))
    return _available_aggregate(dig(body, ("data", "nodes")) or [])


def capacity_from_available(components: Sequence[BundleComponent], available: dict[str, int]) -> int:
    if not components:
        return 0
    return max(0, min(available.get(c.variant_id, 0) // max(1, c.qty) for c in components))


async def compute_bundle_capacity(client: CatalogClient, components: Sequence[BundleComponent]) -> int:
    """How many bundles the current component stock can fill."""
    if not components:
        return 0
    available = await fetch_available(client, [c.variant_id for c in components])
    return capacity_from_available(components, available)


def components_metafield(components: Sequence[BundleComponent]) -> str:
    return json.dumps(
        {
            "kind": "bundle",
            "version": 1,
            "components": [{"variantId": c.variant_id, "qty": max(1, c.qty)} for c in components],
        }
    )


async def create_bundle(
    engine: Engine,
    client: CatalogClient,
    shop: str,
    title: Any,
    components: Iterable[Any],
    discount: Discount | None = None,
) -> BundleCreated:
    """Create a draft bundle product for the components and record it locally.

    The product, its variant and its metafields are created in sequence; a
    failure part way leaves the earlier objects in the shop and nothing in the
    local store.
    """
    title = require_title(title)
    components = parse_components(components)
    if not components:
        raise ValidationError("At least one component is required")

    capacity = await compute_bundle_capacity(client, components)

    data = await client.execute(PRODUCT_CREATE, {"input": {"title": title, "productType": "Bundle", "status": "DRAFT"}})
    check_user_errors(data.get("productCreate"))
    product_id = dig(data, ("productCreate", "product", "id"))
    if not product_id:
        raise CatalogError("No product id returned by productCreate")

    data = await client.execute(VARIANTS_BULK_CREATE, {"productId": product_id, "variants": [{"options": ["Default Title"]}]})
    check_user_errors(data.get("productVariantsBulkCreate"))
    created = dig(data, ("productVariantsBulkCreate", "productVariants")) or []
    variant_id = created[0].get("id") if created else None
    if not variant_id:
        raise CatalogError("No variant id returned by productVariantsBulkCreate")

    metafields = [
        {
            "ownerId": product_id,
            "namespace": "custom",
            "key": "bundle_components",
            "type": "json",
            "value": components_metafield(components),
        },
        {
            "ownerId": product_id,
            "namespace": "custom",
            "key": "bundle_capacity",
            "type": "number_integer",
            "value": str(capacity),
        },
    ]
    data = await client.execute(METAFIELDS_SET, {"metafields": metafields})
    check_user_errors(data.get("metafieldsSet"))

    loop = asyncio.get_running_loop()
    bundle_id = await loop.run_in_executor(None, _persist_bundle, engine, shop, title, product_id, components, discount)
    logger.info("Created bundle %s (%s components, capacity %s) for %s", product_id, len(components), capacity, shop)
    return BundleCreated(bundle_id=bundle_id, product_id=product_id, variant_id=variant_id, capacity=capacity)


def _persist_bundle(
    engine: Engine,
    shop: str,
    title: str,
    product_id: str,
    components: Sequence[BundleComponent],
    discount: Discount | None,
) -> str:
    with engine.begin() as conn:
        return store.insert_bundle(
            conn,
            shop=shop,
            title=title,
            bundle_product_id=product_id,
            components=[(c.variant_id, c.qty) for c in components],
            discount_type=discount.type if discount else None,
            discount_value=discount.value if discount else None,
        )
