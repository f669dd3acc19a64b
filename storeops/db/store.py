"""Write helpers for the local store.

Every helper takes an open connection so callers control the transaction
boundary (``with engine.begin() as conn``).
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, Mapping, Sequence

from sqlalchemy import func, insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection

from storeops.db.tables import (
    bundle_defs,
    bundle_items,
    combined_children,
    combined_parents,
    ingest_cursors,
    inventory_snapshots,
    order_lines,
    products,
    variants,
)
from storeops.utils.dates import utc_now


def new_id() -> str:
    return uuid.uuid4().hex


def _upsert_stmt(conn: Connection, table):
    if conn.dialect.name == "postgresql":
        return postgresql.insert(table)
    if conn.dialect.name == "sqlite":
        return sqlite.insert(table)
    raise NotImplementedError(f"Upserts are not supported on {conn.dialect.name}")


def upsert_product(
    conn: Connection,
    product_id: str,
    *,
    title: str,
    vendor: str | None,
    created_at: datetime | None,
) -> None:
    stmt = _upsert_stmt(conn, products).values(
        id=product_id, title=title, vendor=vendor, created_at=created_at
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[products.c.id],
        set_={
            "title": stmt.excluded.title,
            "vendor": stmt.excluded.vendor,
            # an absent creation date never erases a known one
            "created_at": func.coalesce(stmt.excluded.created_at, products.c.created_at),
        },
    )
    conn.execute(stmt)


def ensure_product(conn: Connection, product_id: str) -> None:
    """Insert a placeholder row for a product known only by id; existing rows are kept."""
    stmt = _upsert_stmt(conn, products).values(id=product_id, title="")
    conn.execute(stmt.on_conflict_do_nothing(index_elements=[products.c.id]))


def upsert_variant(
    conn: Connection,
    variant_id: str,
    *,
    product_id: str,
    title: str | None,
    sku: str | None,
    size: str | None,
    color: str | None,
    updated_at: datetime,
) -> None:
    stmt = _upsert_stmt(conn, variants).values(
        id=variant_id,
        product_id=product_id,
        title=title,
        sku=sku,
        size=size,
        color=color,
        updated_at=updated_at,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[variants.c.id],
        set_={
            "product_id": stmt.excluded.product_id,
            "title": stmt.excluded.title,
            "sku": stmt.excluded.sku,
            "size": stmt.excluded.size,
            "color": stmt.excluded.color,
            "updated_at": stmt.excluded.updated_at,
        },
    )
    conn.execute(stmt)


def insert_order_line(
    conn: Connection,
    line_id: str,
    *,
    order_id: str,
    created_at: datetime,
    product_id: str | None,
    variant_id: str | None,
    qty: int,
    currency: str,
    net_amount: Decimal,
) -> bool:
    """Insert the fact unless the line id is already stored. Returns True on insert."""
    stmt = _upsert_stmt(conn, order_lines).values(
        id=line_id,
        order_id=order_id,
        created_at=created_at,
        product_id=product_id,
        variant_id=variant_id,
        qty=qty,
        currency=currency,
        net_amount=net_amount,
    )
    result = conn.execute(stmt.on_conflict_do_nothing(index_elements=[order_lines.c.id]))
    return result.rowcount == 1


def get_cursor(conn: Connection, shop: str) -> str | None:
    return conn.execute(
        select(ingest_cursors.c.since_iso).where(ingest_cursors.c.shop == shop)
    ).scalar_one_or_none()


def advance_cursor(conn: Connection, shop: str, since_iso: str, *, now: datetime) -> str:
    """Store ``since_iso`` for the shop unless a later date is already stored.

    ISO dates compare correctly as strings. Returns the value left in place.
    """
    current = get_cursor(conn, shop)
    stored = max(current, since_iso) if current else since_iso
    stmt = _upsert_stmt(conn, ingest_cursors).values(shop=shop, since_iso=stored, updated_at=now)
    stmt = stmt.on_conflict_do_update(
        index_elements=[ingest_cursors.c.shop],
        set_={"since_iso": stmt.excluded.since_iso, "updated_at": stmt.excluded.updated_at},
    )
    conn.execute(stmt)
    return stored


def append_snapshots(conn: Connection, rows: Sequence[Mapping[str, Any]]) -> int:
    if not rows:
        return 0
    conn.execute(
        insert(inventory_snapshots),
        [{"id": new_id(), **row} for row in rows],
    )
    return len(rows)


def insert_bundle(
    conn: Connection,
    *,
    shop: str,
    title: str,
    bundle_product_id: str | None,
    components: Iterable[tuple[str, int]],
    discount_type: str | None = None,
    discount_value: Decimal | None = None,
) -> str:
    bundle_id = new_id()
    conn.execute(
        insert(bundle_defs).values(
            id=bundle_id,
            shop=shop,
            title=title,
            bundle_product_id=bundle_product_id,
            discount_type=discount_type,
            discount_value=discount_value,
            created_at=utc_now(),
        )
    )
    items = [
        {"id": new_id(), "bundle_id": bundle_id, "variant_id": variant_id, "quantity": qty}
        for variant_id, qty in components
    ]
    if items:
        conn.execute(insert(bundle_items), items)
    return bundle_id


def insert_combined_parent(
    conn: Connection,
    *,
    shop: str,
    parent_product_id: str,
    title: str,
    children: Iterable[tuple[str, Any]],
) -> str:
    parent_id = new_id()
    conn.execute(
        insert(combined_parents).values(
            id=parent_id,
            shop=shop,
            parent_product_id=parent_product_id,
            title=title,
            created_at=utc_now(),
        )
    )
    rows = [
        {"id": new_id(), "parent_id": parent_id, "product_id": product_id, "parent_option_map": option_map}
        for product_id, option_map in children
    ]
    if rows:
        conn.execute(insert(combined_children), rows)
    return parent_id
