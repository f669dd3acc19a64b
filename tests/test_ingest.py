from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from conftest import connection, ok
from storeops.catalog.errors import CatalogError
from storeops.db import store
from storeops.db.tables import ingest_cursors, inventory_snapshots, order_lines, products, variants
from storeops.ingest.inventory import InventorySnapshotIngestor
from storeops.ingest.orders import OrderIngestor, resolve_since
from storeops.logic.validation import ValidationError
from storeops.utils.dates import days_ago, format_date

SHOP = "demo.myshopify.com"


def line_item(line_id, qty=1, amount="10.00", product=1, variant=11, size="M", color="Black"):
    node = {
        "id": f"gid://shopify/LineItem/{line_id}",
        "quantity": qty,
        "discountedTotalSet": {"shopMoney": {"amount": amount}},
        "product": None,
        "variant": None,
    }
    if product is not None:
        node["product"] = {
            "id": f"gid://shopify/Product/{product}",
            "title": f"Product {product}",
            "vendor": "Acme",
            "createdAt": "2024-01-15T10:00:00Z",
        }
    if variant is not None:
        node["variant"] = {
            "id": f"gid://shopify/ProductVariant/{variant}",
            "title": f"{size} / {color}",
            "sku": f"SKU-{variant}",
            "selectedOptions": [{"name": "Size", "value": size}, {"name": "Colour", "value": color}],
            "product": {"id": f"gid://shopify/Product/{product}"} if product is not None else None,
        }
    return node


def order(order_id, lines, created="2024-05-02T03:04:05Z", has_next=False, end_cursor=None):
    return {
        "id": f"gid://shopify/Order/{order_id}",
        "createdAt": created,
        "currencyCode": "USD",
        "lineItems": connection(lines, has_next, end_cursor),
    }


def orders_page(orders, has_next=False, end_cursor=None):
    return ok(orders=connection(orders, has_next, end_cursor))


def count(engine, table):
    with engine.connect() as conn:
        return conn.execute(select(func.count()).select_from(table)).scalar_one()


def stored_cursor(engine):
    with engine.connect() as conn:
        return store.get_cursor(conn, SHOP)


@pytest.mark.asyncio
async def test_ingest_writes_facts_and_catalog(engine, catalog):
    catalog.on("OrdersPage", orders_page([order(1, [line_item(1, qty=2, amount="39.90")])]))

    result = await OrderIngestor(engine, catalog).ingest(SHOP, since="2024-05-01")

    assert result.since_iso == "2024-05-01"
    assert (result.orders_processed, result.lines_processed, result.lines_inserted) == (1, 1, 1)
    assert "created_at:>=2024-05-01" in catalog.called("OrdersPage")[0]["query"]
    with engine.connect() as conn:
        line = conn.execute(select(order_lines)).one()
        variant = conn.execute(select(variants)).one()
        product = conn.execute(select(products)).one()
    assert line.qty == 2
    assert line.net_amount == Decimal("39.90")
    assert line.currency == "USD"
    assert line.created_at == datetime(2024, 5, 2, 3, 4, 5)
    assert (variant.size, variant.color) == ("M", "Black")
    assert product.vendor == "Acme"
    assert stored_cursor(engine) == "2024-05-01"


@pytest.mark.asyncio
async def test_ingest_twice_keeps_one_row_per_line(engine, catalog):
    page = orders_page([order(1, [line_item(1), line_item(2, qty=3)])])
    catalog.on("OrdersPage", page)
    ingestor = OrderIngestor(engine, catalog)

    first = await ingestor.ingest(SHOP, since="2024-05-01")
    with engine.connect() as conn:
        before = conn.execute(select(order_lines).order_by(order_lines.c.id)).all()
    second = await ingestor.ingest(SHOP, since="2024-05-01")

    assert first.lines_inserted == 2
    assert second.lines_processed == 2
    assert second.lines_inserted == 0
    with engine.connect() as conn:
        after = conn.execute(select(order_lines).order_by(order_lines.c.id)).all()
    assert after == before


@pytest.mark.asyncio
async def test_ingest_follows_overflowing_line_items(engine, catalog):
    first_lines = [line_item(i) for i in range(1, 4)]
    catalog.on(
        "OrdersPage",
        orders_page([order(1, first_lines, has_next=True, end_cursor="li-3")], has_next=True, end_cursor="o-1"),
        orders_page([order(2, [line_item(9)])]),
    )
    catalog.on(
        "OrderLineItems",
        ok(order={"lineItems": connection([line_item(4)], True, "li-4")}),
        ok(order={"lineItems": connection([line_item(5)])}),
    )

    result = await OrderIngestor(engine, catalog).ingest(SHOP, days=7)

    assert result.orders_processed == 2
    assert result.lines_processed == 6
    assert catalog.called("OrderLineItems") == [
        {"id": "gid://shopify/Order/1", "after": "li-3"},
        {"id": "gid://shopify/Order/1", "after": "li-4"},
    ]
    assert [call["after"] for call in catalog.called("OrdersPage")] == [None, "o-1"]
    assert count(engine, order_lines) == 6


@pytest.mark.asyncio
async def test_failed_run_leaves_cursor_untouched(engine, catalog):
    catalog.on(
        "OrdersPage",
        orders_page([order(1, [line_item(1)])], has_next=True, end_cursor="o-1"),
        CatalogError("Throttled"),
    )

    with pytest.raises(CatalogError):
        await OrderIngestor(engine, catalog).ingest(SHOP, since="2024-05-01")

    assert stored_cursor(engine) is None
    assert count(engine, order_lines) == 1


@pytest.mark.asyncio
async def test_cursor_never_moves_backwards(engine, catalog):
    catalog.on("OrdersPage", orders_page([]))
    ingestor = OrderIngestor(engine, catalog)

    await ingestor.ingest(SHOP, since="2024-05-10")
    await ingestor.ingest(SHOP, since="2024-05-01")

    assert stored_cursor(engine) == "2024-05-10"
    assert count(engine, ingest_cursors) == 1


@pytest.mark.asyncio
async def test_incremental_resumes_from_cursor(engine, catalog):
    with engine.begin() as conn:
        store.advance_cursor(conn, SHOP, "2024-05-01", now=datetime(2024, 5, 1))
    catalog.on("OrdersPage", orders_page([]))

    result = await OrderIngestor(engine, catalog).ingest_incremental(SHOP)

    assert result.since_iso == "2024-05-01"
    assert stored_cursor(engine) == max("2024-05-01", format_date(days_ago(2)))


@pytest.mark.asyncio
async def test_incremental_first_run_uses_default_window(engine, catalog):
    catalog.on("OrdersPage", orders_page([]))

    result = await OrderIngestor(engine, catalog).ingest_incremental(SHOP)

    assert result.since_iso == format_date(days_ago(90))
    assert stored_cursor(engine) == format_date(days_ago(2))


@pytest.mark.asyncio
async def test_unusable_amounts_and_missing_refs(engine, catalog):
    lines = [
        line_item(1, amount="NaN"),
        line_item(2, amount="-5"),
        line_item(3, product=None, variant=None),
    ]
    catalog.on("OrdersPage", orders_page([order(1, lines)]))

    await OrderIngestor(engine, catalog).ingest(SHOP, since="2024-05-01")

    with engine.connect() as conn:
        rows = {row.id: row for row in conn.execute(select(order_lines))}
    assert rows["gid://shopify/LineItem/1"].net_amount == Decimal("0.00")
    assert rows["gid://shopify/LineItem/2"].net_amount == Decimal("0.00")
    orphan = rows["gid://shopify/LineItem/3"]
    assert orphan.product_id is None
    assert orphan.variant_id is None


@pytest.mark.asyncio
async def test_variant_without_line_product_gets_placeholder(engine, catalog):
    node = line_item(1, product=7)
    node["product"] = None
    catalog.on("OrdersPage", orders_page([order(1, [node])]))

    await OrderIngestor(engine, catalog).ingest(SHOP, since="2024-05-01")

    with engine.connect() as conn:
        product = conn.execute(select(products)).one()
        variant = conn.execute(select(variants)).one()
    assert product.id == "gid://shopify/Product/7"
    assert variant.product_id == product.id


def test_resolve_since_rejects_bad_input():
    with pytest.raises(ValidationError):
        resolve_since("not-a-date")
    with pytest.raises(ValidationError):
        resolve_since(days=-1)
    assert resolve_since(days=0) == days_ago(0)


@pytest.mark.parametrize("since", ["10:00", "P3D"])
def test_resolve_since_requires_a_calendar_day(since):
    with pytest.raises(ValidationError):
        resolve_since(since)


def test_resolve_since_bounds_the_window():
    assert resolve_since(days=3650) == days_ago(3650)
    with pytest.raises(ValidationError):
        resolve_since(days=10**7)


def variant_node(variant, on_hand, tracked=True, product=1):
    return {
        "id": f"gid://shopify/ProductVariant/{variant}",
        "title": "Default",
        "sku": f"SKU-{variant}",
        "price": "49.00",
        "inventoryQuantity": on_hand,
        "selectedOptions": [{"name": "Size", "value": "L"}],
        "inventoryItem": {"tracked": tracked, "unitCost": {"amount": "20.50"}},
        "product": {"id": f"gid://shopify/Product/{product}", "title": "Tee", "vendor": "Acme", "createdAt": None},
    }


@pytest.mark.asyncio
async def test_snapshot_appends_rows_on_every_call(engine, catalog):
    catalog.on(
        "VariantInventory",
        ok(productVariants=connection([variant_node(11, 5), variant_node(12, 0, tracked=False), variant_node(13, 7)])),
    )
    ingestor = InventorySnapshotIngestor(engine, catalog)
    first_at = datetime(2024, 6, 1, 2, 0)

    first = await ingestor.snapshot(SHOP, at=first_at)
    second = await ingestor.snapshot(SHOP, at=first_at + timedelta(hours=1))

    assert (first.variants, first.snapshots) == (3, 2)
    assert second.snapshots == 2
    assert count(engine, inventory_snapshots) == 4
    with engine.connect() as conn:
        row = conn.execute(
            select(inventory_snapshots).where(inventory_snapshots.c.variant_id == "gid://shopify/ProductVariant/11")
        ).first()
    assert row.on_hand == 5
    assert row.price == Decimal("49.00")
    assert row.cost == Decimal("20.50")
