import json

import pytest

from conftest import connection, ok
from storeops.catalog.errors import CatalogError, ReauthRequired, ReorderJobTimeout, UserErrors
from storeops.logic.sorting import CollectionSorter
from storeops.logic.strategy import save_collection_rules
from storeops.logic.validation import ValidationError

COLLECTION = "gid://shopify/Collection/1"


def pid(n):
    return f"gid://shopify/Product/{n}"


def product_node(n, title, available=(True,)):
    return {
        "id": pid(n),
        "title": title,
        "variants": {"edges": [{"node": {"availableForSale": flag}} for flag in available]},
    }


def sales_page(*items):
    lines = [{"quantity": qty, "product": {"id": pid(n)}} for n, qty in items]
    return ok(orders=connection([{"id": "gid://shopify/Order/1", "lineItems": connection(lines)}]))


def rules_body(rules=None):
    value = json.dumps({"rules": rules}) if rules is not None else None
    return ok(collection={"id": COLLECTION, "metafield": {"value": value} if value else None})


def sorter(catalog, **kwargs):
    kwargs.setdefault("poll_interval", 0)
    kwargs.setdefault("collection_delay", 0)
    kwargs.setdefault("failure_delay", 0)
    return CollectionSorter(catalog, **kwargs)


def script_collection(catalog, products, sales=()):
    catalog.on("CollectionProducts", ok(collection={"products": connection(products)}))
    catalog.on("CollectionRules", rules_body())
    catalog.on("OrderSales", sales_page(*sales))
    catalog.on("CollectionManualSort", ok(collectionUpdate={"userErrors": []}))


@pytest.mark.asyncio
async def test_sort_collection_applies_order_and_waits_for_job(catalog):
    script_collection(
        catalog,
        [product_node(1, "Zeta"), product_node(2, "Alpha", available=(False,)), product_node(3, "Beta")],
        sales=[(3, 4), (2, 50)],
    )
    catalog.on("CollectionReorder", ok(collectionReorderProducts={"job": {"id": "gid://shopify/Job/1", "done": False}, "userErrors": []}))
    catalog.on("JobStatus", ok(job={"id": "gid://shopify/Job/1", "done": False}), ok(job={"id": "gid://shopify/Job/1", "done": True}))

    result = await sorter(catalog).sort_collection(COLLECTION)

    assert result.considered == 3
    assert result.moved == 3
    assert result.applied_top_n == 3
    moves = catalog.called("CollectionReorder")[0]["moves"]
    assert moves == [
        {"id": pid(3), "newPosition": "0"},
        {"id": pid(1), "newPosition": "1"},
        {"id": pid(2), "newPosition": "2"},
    ]
    assert len(catalog.called("JobStatus")) == 2
    assert catalog.called("CollectionManualSort") == [{"id": COLLECTION}]


@pytest.mark.asyncio
async def test_job_already_done_is_not_polled(catalog):
    script_collection(catalog, [product_node(1, "Only")])
    catalog.on("CollectionReorder", ok(collectionReorderProducts={"job": {"id": "gid://shopify/Job/1", "done": True}, "userErrors": []}))

    await sorter(catalog).sort_collection(COLLECTION)

    assert catalog.called("JobStatus") == []


@pytest.mark.asyncio
async def test_reorder_job_that_never_finishes_times_out(catalog):
    script_collection(catalog, [product_node(1, "Only")])
    catalog.on("CollectionReorder", ok(collectionReorderProducts={"job": {"id": "gid://shopify/Job/9", "done": False}, "userErrors": []}))
    catalog.on("JobStatus", ok(job={"id": "gid://shopify/Job/9", "done": False}))

    with pytest.raises(ReorderJobTimeout):
        await sorter(catalog, max_polls=3).sort_collection(COLLECTION)

    assert len(catalog.called("JobStatus")) == 3


@pytest.mark.asyncio
async def test_dry_run_previews_without_writing(catalog):
    products = [product_node(n, f"Product {n:03d}") for n in range(40)]
    script_collection(catalog, products)

    result = await sorter(catalog).sort_collection(COLLECTION, dry_run=True)

    assert result.dry_run
    assert result.considered == 40
    assert result.preview == [pid(n) for n in range(25)]
    assert catalog.called("CollectionManualSort") == []
    assert catalog.called("CollectionReorder") == []


@pytest.mark.asyncio
async def test_top_n_limits_moves_to_two_chunks(catalog):
    products = [product_node(n, f"P{n:04d}") for n in range(600)]
    script_collection(catalog, products)
    catalog.on("CollectionReorder", ok(collectionReorderProducts={"job": None, "userErrors": []}))

    result = await sorter(catalog).sort_collection(COLLECTION, top_n=500)

    calls = catalog.called("CollectionReorder")
    assert [len(call["moves"]) for call in calls] == [250, 250]
    assert calls[-1]["moves"][-1]["newPosition"] == "499"
    assert result.moved == 500
    assert result.considered == 600


@pytest.mark.asyncio
async def test_stored_rules_drive_the_order(catalog):
    script_collection(catalog, [product_node(1, "Zulu"), product_node(2, "Alpha")], sales=[(1, 30)])
    catalog.responses["CollectionRules"].clear()
    catalog.on("CollectionRules", rules_body(["alpha"]))

    result = await sorter(catalog).sort_collection(COLLECTION, dry_run=True)

    assert result.rules == ("alpha",)
    assert result.preview == [pid(2), pid(1)]


@pytest.mark.asyncio
async def test_reorder_user_errors_are_raised(catalog):
    script_collection(catalog, [product_node(1, "Only")])
    catalog.on("CollectionReorder", ok(collectionReorderProducts={"job": None, "userErrors": [{"field": ["moves"], "message": "Invalid move"}]}))

    with pytest.raises(UserErrors, match="Invalid move"):
        await sorter(catalog).sort_collection(COLLECTION)


@pytest.mark.asyncio
async def test_malformed_collection_id_is_rejected_before_any_call(catalog):
    with pytest.raises(ValidationError):
        await sorter(catalog).sort_collection("123")
    assert catalog.calls == []


def collections_page(count):
    return ok(collections=connection([{"id": f"gid://shopify/Collection/{n}", "title": f"C{n}"} for n in range(1, count + 1)]))


@pytest.mark.asyncio
async def test_sort_all_isolates_a_failing_collection(catalog):
    def products_for(variables):
        if variables["id"] == "gid://shopify/Collection/2":
            raise CatalogError("Collection unavailable")
        return ok(collection={"products": connection([product_node(1, "A"), product_node(2, "B")])})

    catalog.on("Collections", collections_page(3))
    catalog.on("CollectionProducts", products_for)
    catalog.on("CollectionRules", rules_body())
    catalog.on("OrderSales", sales_page())
    catalog.on("CollectionManualSort", ok(collectionUpdate={"userErrors": []}))
    catalog.on("CollectionReorder", ok(collectionReorderProducts={"job": None, "userErrors": []}))

    batch = await sorter(catalog).sort_all()

    assert batch.processed == 3
    assert [r.status for r in batch.results] == ["sorted", "error", "sorted"]
    assert batch.results[1].error == "Collection unavailable"
    assert batch.results[0].moved == 2
    assert batch.results[2].moved == 2


@pytest.mark.asyncio
async def test_sort_all_skips_empty_and_previews(catalog):
    def products_for(variables):
        if variables["id"] == "gid://shopify/Collection/1":
            return ok(collection={"products": connection([])})
        return ok(collection={"products": connection([product_node(n, f"T{n:02d}") for n in range(15)])})

    catalog.on("Collections", collections_page(2))
    catalog.on("CollectionProducts", products_for)
    catalog.on("CollectionRules", rules_body())
    catalog.on("OrderSales", sales_page())

    batch = await sorter(catalog).sort_all(dry_run=True)

    skipped, preview = batch.results
    assert (skipped.status, skipped.reason) == ("skipped", "empty")
    assert preview.status == "preview"
    assert preview.considered == 15
    assert len(preview.preview) == 10


@pytest.mark.asyncio
async def test_sort_all_respects_limit(catalog):
    catalog.on("Collections", collections_page(5))
    catalog.on("CollectionProducts", ok(collection={"products": connection([])}))

    batch = await sorter(catalog).sort_all(limit=2)

    assert [r.id for r in batch.results] == ["gid://shopify/Collection/1", "gid://shopify/Collection/2"]


@pytest.mark.asyncio
async def test_sort_all_stops_on_reauth(catalog):
    catalog.on("Collections", collections_page(2))
    catalog.on("CollectionProducts", ReauthRequired("/auth?shop=demo.myshopify.com"))

    with pytest.raises(ReauthRequired):
        await sorter(catalog).sort_all()


@pytest.mark.asyncio
async def test_save_rules_validates_and_writes_metafield(catalog):
    catalog.on("CollectionRulesSave", ok(collectionUpdate={"userErrors": []}))

    saved = await save_collection_rules(catalog, COLLECTION, ["alpha", "in_stock"])

    assert saved == ["alpha", "in_stock"]
    assert json.loads(catalog.called("CollectionRulesSave")[0]["value"]) == {"rules": ["alpha", "in_stock"]}
    with pytest.raises(ValidationError):
        await save_collection_rules(catalog, COLLECTION, ["alpha", "price"])
