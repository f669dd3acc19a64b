"""Combined listings: one parent product grouping independent child products."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from sqlalchemy.engine import Engine

from storeops.catalog.errors import CatalogError
from storeops.catalog.pagination import CatalogClient, check_user_errors, dig
from storeops.catalog.queries import COMBINED_LISTING_UPDATE, PRODUCT_CREATE
from storeops.db import store
from storeops.logic.validation import ValidationError, require_gid, require_title

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ListingOption:
    name: str
    values: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ListingChild:
    product_id: str
    selected_options: list[dict[str, Any]] | None = None


@dataclass(slots=True)
class CombinedCreated:
    record_id: str
    parent_product_id: str
    children: int


def parse_options(raw: Iterable[Any] | None) -> list[ListingOption]:
    options = []
    for index, item in enumerate(raw or []):
        if not isinstance(item, dict):
            raise ValidationError(f"options[{index}] must be an object")
        name = require_title(item.get("name"), field=f"options[{index}].name")
        values = item.get("values") or []
        if not isinstance(values, list) or not all(isinstance(v, str) and v.strip() for v in values):
            raise ValidationError(f"options[{index}].values must be a list of names")
        options.append(ListingOption(name=name, values=[v.strip() for v in values]))
    return options


def parse_children(raw: Iterable[Any] | None) -> list[ListingChild]:
    children = []
    for index, item in enumerate(raw or []):
        if not isinstance(item, dict):
            raise ValidationError(f"children[{index}] must be an object")
        product_id = require_gid(item.get("childProductId"), "Product", field=f"children[{index}].childProductId")
        selected = item.get("selectedParentOptionValues")
        if selected is not None and not isinstance(selected, list):
            raise ValidationError(f"children[{index}].selectedParentOptionValues must be a list")
        children.append(ListingChild(product_id=product_id, selected_options=selected))
    return children


async def create_combined_listing(
    engine: Engine,
    client: CatalogClient,
    shop: str,
    parent_title: Any,
    options: Iterable[Any],
    children: Iterable[Any],
) -> CombinedCreated:
    parent_title = require_title(parent_title, field="parentTitle")
    options = parse_options(options)
    children = parse_children(children)
    if not children:
        raise ValidationError("At least one child product is required")

    product_input = {
        "title": parent_title,
        "status": "ACTIVE",
        "combinedListingRole": "PARENT",
        "options": [option.name for option in options],
    }
    data = await client.execute(PRODUCT_CREATE, {"input": product_input})
    check_user_errors(data.get("productCreate"))
    parent_product_id = dig(data, ("productCreate", "product", "id"))
    if not parent_product_id:
        raise CatalogError("No product id returned by productCreate")

    variables = {
        "parentProductId": parent_product_id,
        "optionsAndValues": [{"name": option.name, "values": option.values} for option in options],
        "productsAdded": [
            {"childProductId": child.product_id, "selectedParentOptionValues": child.selected_options}
            for child in children
        ],
    }
    data = await client.execute(COMBINED_LISTING_UPDATE, variables)
    check_user_errors(data.get("combinedListingUpdate"))

    loop = asyncio.get_running_loop()
    record_id = await loop.run_in_executor(None, _persist_parent, engine, shop, parent_title, parent_product_id, children)
    logger.info("Created combined listing %s with %s children for %s", parent_product_id, len(children), shop)
    return CombinedCreated(record_id=record_id, parent_product_id=parent_product_id, children=len(children))


def _persist_parent(
    engine: Engine,
    shop: str,
    title: str,
    parent_product_id: str,
    children: list[ListingChild],
) -> str:
    with engine.begin() as conn:
        return store.insert_combined_parent(
            conn,
            shop=shop,
            parent_product_id=parent_product_id,
            title=title,
            children=[(child.product_id, child.selected_options) for child in children],
        )
