"""FastAPI application for the store operations dashboard."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, AsyncIterator

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.engine import Engine

from storeops.catalog.client import ShopifyAdminClient
from storeops.catalog.errors import CatalogError, ReauthRequired, UserErrors, reauth_url_for
from storeops.catalog.pagination import CatalogClient
from storeops.db.session import shared_engine
from storeops.ingest.inventory import InventorySnapshotIngestor
from storeops.ingest.orders import OrderIngestor
from storeops.logic import analytics
from storeops.logic.bundles import compute_bundle_capacity, create_bundle, parse_components, parse_discount
from storeops.logic.combined import create_combined_listing
from storeops.logic.search import search_variants
from storeops.logic.sorting import CollectionSorter
from storeops.logic.strategy import load_collection_rules, save_collection_rules
from storeops.logic.validation import ValidationError, require_gid
from storeops.utils.rate_limit import RateLimiter

logger = logging.getLogger(__name__)

app = FastAPI(title="Storeops API")

RATE_LIMITER = RateLimiter()


@dataclass(slots=True)
class ShopSession:
    shop: str
    client: CatalogClient


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class IngestRequest(CamelModel):
    days: int | None = None
    since: str | None = None


class SortRequest(CamelModel):
    collection_id: str = Field(alias="collectionId")
    top_n: int | None = Field(default=None, alias="topN")
    dry_run: bool = Field(default=False, alias="dryRun")


class SortAllRequest(CamelModel):
    limit: int = 25
    top_n: int | None = Field(default=None, alias="topN")
    dry_run: bool = Field(default=False, alias="dryRun")


class StrategyRequest(CamelModel):
    collection_id: str = Field(alias="collectionId")
    rules: list[Any]


class CapacityRequest(CamelModel):
    components: list[Any] = Field(default_factory=list)


class BundleRequest(CamelModel):
    title: str | None = None
    components: list[Any] = Field(default_factory=list)
    discount_type: str | None = Field(default=None, alias="discountType")
    discount_value: Any = Field(default=None, alias="discountValue")


class CombinedRequest(CamelModel):
    parent_title: str | None = Field(default=None, alias="parentTitle")
    options: list[Any] = Field(default_factory=list)
    children: list[Any] = Field(default_factory=list)


@app.exception_handler(ReauthRequired)
async def reauth_handler(request: Request, exc: ReauthRequired) -> JSONResponse:
    return JSONResponse({"ok": False, "error": "reauth", "reauthUrl": exc.reauth_url}, status_code=401)


@app.exception_handler(ValidationError)
async def validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse({"ok": False, "error": str(exc)}, status_code=400)


@app.exception_handler(UserErrors)
async def user_errors_handler(request: Request, exc: UserErrors) -> JSONResponse:
    return JSONResponse({"ok": False, "error": ", ".join(exc.messages)}, status_code=400)


@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
    logger.warning("Admin API error on %s: %s", request.url.path, exc)
    return JSONResponse({"ok": False, "error": str(exc)}, status_code=500)


def get_engine() -> Engine:
    return shared_engine()


async def get_session(
    request: Request,
    shop: str | None = Header(default=None, alias="X-Shopify-Shop-Domain"),
    access_token: str | None = Header(default=None, alias="X-Shopify-Access-Token"),
) -> AsyncIterator[ShopSession]:
    """Admin session forwarded by the auth layer in front of this service."""
    if not shop or not access_token:
        raise ReauthRequired(reauth_url_for(request.query_params.get("shop") or shop, request.query_params.get("host")))
    client = ShopifyAdminClient(shop, access_token, rate_limiter=RATE_LIMITER)
    try:
        yield ShopSession(shop=shop, client=client)
    finally:
        await client.close()


def finite(value: float) -> float | None:
    """JSON has no infinity; unbounded values go out as null."""
    return value if math.isfinite(value) else None


def money(value: Decimal) -> float:
    return float(value)


@app.post("/analytics/ingest")
async def run_ingest(
    payload: IngestRequest,
    session: ShopSession = Depends(get_session),
    engine: Engine = Depends(get_engine),
) -> JSONResponse:
    result = await OrderIngestor(engine, session.client).ingest(session.shop, since=payload.since, days=payload.days)
    return JSONResponse(
        {
            "ok": True,
            "sinceISO": result.since_iso,
            "ordersProcessed": result.orders_processed,
            "linesProcessed": result.lines_processed,
            "linesInserted": result.lines_inserted,
        }
    )


@app.post("/analytics/ingest/inventory")
async def run_inventory_snapshot(
    session: ShopSession = Depends(get_session),
    engine: Engine = Depends(get_engine),
) -> JSONResponse:
    result = await InventorySnapshotIngestor(engine, session.client).snapshot(session.shop)
    return JSONResponse({"ok": True, "snapshots": result.snapshots, "variants": result.variants})


@app.get("/analytics/overview")
def get_overview(
    start: date | None = Query(default=None, alias="from"),
    end: date | None = Query(default=None, alias="to"),
    session: ShopSession = Depends(get_session),
    engine: Engine = Depends(get_engine),
) -> JSONResponse:
    report = analytics.overview(engine, start, end)
    return JSONResponse(
        {
            "ok": True,
            "from": report.start.isoformat(),
            "to": report.end.isoformat(),
            "totals": {"units": report.units, "revenue": money(report.revenue)},
            "series": [
                {"day": point.day.isoformat(), "units": point.units, "revenue": money(point.revenue)}
                for point in report.series
            ],
            "topProducts": [
                {"productId": row.product_id, "title": row.title, "units": row.units, "revenue": money(row.revenue)}
                for row in report.top
            ],
        }
    )


def _curve_response(buckets: list[analytics.CurveBucket]) -> JSONResponse:
    return JSONResponse(
        {"ok": True, "rows": [{"label": b.label, "units": b.units, "pct": b.pct} for b in buckets]}
    )


@app.get("/analytics/size-curve")
def get_size_curve(
    start: date | None = Query(default=None, alias="from"),
    end: date | None = Query(default=None, alias="to"),
    session: ShopSession = Depends(get_session),
    engine: Engine = Depends(get_engine),
) -> JSONResponse:
    return _curve_response(analytics.size_curve(engine, start, end))


@app.get("/analytics/color-curve")
def get_color_curve(
    start: date | None = Query(default=None, alias="from"),
    end: date | None = Query(default=None, alias="to"),
    session: ShopSession = Depends(get_session),
    engine: Engine = Depends(get_engine),
) -> JSONResponse:
    return _curve_response(analytics.color_curve(engine, start, end))


@app.get("/analytics/kpis")
def get_kpis(
    days: int = analytics.DEFAULT_KPI_DAYS,
    session: ShopSession = Depends(get_session),
    engine: Engine = Depends(get_engine),
) -> JSONResponse:
    report = analytics.kpis(engine, days)
    totals = report.totals
    return JSONResponse(
        {
            "ok": True,
            "totals": {
                "weeks": totals.weeks,
                "onHand": totals.on_hand,
                "units": totals.units,
                "avgWeekly": totals.avg_weekly,
                "weightedWOS": finite(totals.weighted_wos),
                "sellThroughAll": totals.sell_through,
            },
            "risks": [
                {
                    "variantId": row.variant_id,
                    "onHand": row.on_hand,
                    "units": row.units,
                    "weekly": row.weekly,
                    "wos": finite(row.wos),
                    "sellThrough": row.sell_through,
                }
                for row in report.risks
            ],
        }
    )


@app.get("/analytics/aging-stock")
def get_aging_stock(
    session: ShopSession = Depends(get_session),
    engine: Engine = Depends(get_engine),
) -> JSONResponse:
    bands = analytics.aging_stock(engine)
    return JSONResponse({"ok": True, "rows": [{"band": b.band, "onHand": b.on_hand} for b in bands]})


@app.post("/sort")
async def sort_collection(payload: SortRequest, session: ShopSession = Depends(get_session)) -> JSONResponse:
    result = await CollectionSorter(session.client).sort_collection(
        payload.collection_id, dry_run=payload.dry_run, top_n=payload.top_n
    )
    body: dict[str, Any] = {"ok": True, "considered": result.considered, "rules": list(result.rules)}
    if result.dry_run:
        body.update(dryRun=True, preview=result.preview)
    else:
        body.update(moved=result.moved, appliedTopN=result.applied_top_n)
    return JSONResponse(body)


@app.post("/sort-all")
async def sort_all(payload: SortAllRequest, session: ShopSession = Depends(get_session)) -> JSONResponse:
    batch = await CollectionSorter(session.client).sort_all(
        limit=payload.limit, top_n=payload.top_n, dry_run=payload.dry_run
    )
    results = []
    for outcome in batch.results:
        item: dict[str, Any] = {"id": outcome.id, "title": outcome.title, "status": outcome.status}
        if outcome.status == "sorted":
            item.update(considered=outcome.considered, moved=outcome.moved)
        elif outcome.status == "preview":
            item.update(considered=outcome.considered, preview=outcome.preview)
        elif outcome.status == "skipped":
            item["reason"] = outcome.reason
        else:
            item["error"] = outcome.error
        results.append(item)
    return JSONResponse({"ok": True, "processed": batch.processed, "results": results})


@app.get("/strategy")
async def get_strategy(
    collection_id: str = Query(alias="collectionId"),
    session: ShopSession = Depends(get_session),
) -> JSONResponse:
    collection_id = require_gid(collection_id, "Collection", field="collectionId")
    rules = await load_collection_rules(session.client, collection_id)
    return JSONResponse({"ok": True, "collectionId": collection_id, "rules": list(rules)})


@app.post("/strategy")
async def post_strategy(payload: StrategyRequest, session: ShopSession = Depends(get_session)) -> JSONResponse:
    rules = await save_collection_rules(session.client, payload.collection_id, payload.rules)
    return JSONResponse({"ok": True, "collectionId": payload.collection_id, "rules": rules})


@app.post("/bundles/capacity")
async def bundle_capacity(payload: CapacityRequest, session: ShopSession = Depends(get_session)) -> JSONResponse:
    capacity = await compute_bundle_capacity(session.client, parse_components(payload.components))
    return JSONResponse({"ok": True, "capacity": capacity})


@app.post("/bundles")
async def post_bundle(
    payload: BundleRequest,
    session: ShopSession = Depends(get_session),
    engine: Engine = Depends(get_engine),
) -> JSONResponse:
    discount = parse_discount(payload.discount_type, payload.discount_value)
    created = await create_bundle(engine, session.client, session.shop, payload.title, payload.components, discount)
    return JSONResponse(
        {
            "ok": True,
            "bundleId": created.bundle_id,
            "productId": created.product_id,
            "variantId": created.variant_id,
            "capacity": created.capacity,
        }
    )


@app.post("/combined")
async def post_combined(
    payload: CombinedRequest,
    session: ShopSession = Depends(get_session),
    engine: Engine = Depends(get_engine),
) -> JSONResponse:
    created = await create_combined_listing(
        engine, session.client, session.shop, payload.parent_title, payload.options, payload.children
    )
    return JSONResponse(
        {
            "ok": True,
            "parentProductId": created.parent_product_id,
            "recordId": created.record_id,
            "children": created.children,
        }
    )


@app.get("/products/search")
async def product_search(
    q: str = "",
    first: int = 10,
    session: ShopSession = Depends(get_session),
) -> JSONResponse:
    items = await search_variants(session.client, q, first)
    return JSONResponse(
        {
            "ok": True,
            "items": [
                {
                    "id": item.variant_id,
                    "productId": item.product_id,
                    "productTitle": item.product_title,
                    "vendor": item.vendor,
                    "variantId": item.variant_id,
                    "variantTitle": item.variant_title,
                    "sku": item.sku,
                    "options": item.options,
                    "label": item.label,
                }
                for item in items
            ],
        }
    )


@app.get("/features")
async def features(session: ShopSession = Depends(get_session)) -> JSONResponse:
    return JSONResponse(
        {"ok": True, "features": {"bundles": True, "combinedListings": True}},
        headers={"Cache-Control": "no-store"},
    )
