"""Nightly ingestion: new paid orders and an inventory snapshot per shop."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Sequence

from dotenv import load_dotenv
from sqlalchemy.engine import Engine

from storeops.catalog.client import ShopifyAdminClient
from storeops.catalog.pagination import CatalogClient
from storeops.db.session import create_engine_from_env
from storeops.ingest import load_shops
from storeops.ingest.inventory import InventorySnapshotIngestor
from storeops.ingest.models import Shop
from storeops.ingest.orders import OrderIngestor
from storeops.utils.rate_limit import RateLimiter

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ShopRun:
    shop: str
    ok: bool
    lines_inserted: int = 0
    snapshots: int = 0
    error: str | None = None


def _default_client_factory(rate_limiter: RateLimiter) -> Callable[[Shop], ShopifyAdminClient]:
    return lambda shop: ShopifyAdminClient(shop.shop, shop.access_token, rate_limiter=rate_limiter)


async def ingest_shop(engine: Engine, client: CatalogClient, shop: str) -> ShopRun:
    orders = await OrderIngestor(engine, client).ingest_incremental(shop)
    snapshot = await InventorySnapshotIngestor(engine, client).snapshot(shop)
    return ShopRun(shop=shop, ok=True, lines_inserted=orders.lines_inserted, snapshots=snapshot.snapshots)


async def run_nightly(
    shops: Sequence[Shop] | None = None,
    *,
    engine: Engine | None = None,
    client_factory: Callable[[Shop], CatalogClient] | None = None,
) -> list[ShopRun]:
    load_dotenv()
    engine = engine or create_engine_from_env()
    shops = load_shops() if shops is None else shops
    client_factory = client_factory or _default_client_factory(RateLimiter())

    runs: list[ShopRun] = []
    for shop in shops:
        client = client_factory(shop)
        try:
            runs.append(await ingest_shop(engine, client, shop.shop))
        except Exception as exc:
            logger.warning("Nightly ingest failed for %s: %s", shop.shop, exc)
            runs.append(ShopRun(shop=shop.shop, ok=False, error=str(exc) or type(exc).__name__))
        finally:
            close = getattr(client, "close", None)
            if close is not None:
                await close()
    logger.info("Nightly ingest finished: %s/%s shops ok", sum(run.ok for run in runs), len(runs))
    return runs


if __name__ == "__main__":
    asyncio.run(run_nightly())
