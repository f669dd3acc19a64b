"""Point-in-time inventory snapshots."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from sqlalchemy.engine import Engine

from storeops.catalog.pagination import CatalogClient, paginate
from storeops.catalog.queries import VARIANT_INVENTORY_PAGE
from storeops.db import store
from storeops.ingest.models import SnapshotRecord, SnapshotResult
from storeops.ingest.records import parse_snapshot, write_catalog_refs
from storeops.utils.dates import utc_now

logger = logging.getLogger(__name__)

VARIANTS_PAGE_SIZE = 250


class InventorySnapshotIngestor:
    """Appends one ``inventory_snapshots`` row per variant per call.

    Calls are never deduplicated: running twice on the same day stores two
    snapshots, and the latest ``snapshot_date`` per variant wins downstream.
    """

    def __init__(self, engine: Engine, client: CatalogClient) -> None:
        self.engine = engine
        self.client = client

    async def snapshot(self, shop: str, *, at: datetime | None = None) -> SnapshotResult:
        snapshot_date = at or utc_now()
        logger.info("Capturing inventory snapshot for %s at %s", shop, snapshot_date.isoformat())
        loop = asyncio.get_running_loop()
        variants = written = 0
        variables = {"first": VARIANTS_PAGE_SIZE}
        async for page in paginate(self.client, VARIANT_INVENTORY_PAGE, variables, ("productVariants",)):
            variants += len(page)
            records = [record for record in map(parse_snapshot, page) if record is not None]
            if len(records) < len(page):
                logger.info("Skipped %s untracked or orphaned variants", len(page) - len(records))
            written += await loop.run_in_executor(None, self._persist, records, snapshot_date)
        logger.info("Stored %s snapshot rows for %s", written, shop)
        return SnapshotResult(shop=shop, snapshot_date=snapshot_date, variants=variants, snapshots=written)

    def _persist(self, records: list[SnapshotRecord], snapshot_date: datetime) -> int:
        with self.engine.begin() as conn:
            for record in records:
                write_catalog_refs(conn, record.product, record.variant, now=snapshot_date)
            return store.append_snapshots(
                conn,
                [
                    {
                        "snapshot_date": snapshot_date,
                        "product_id": record.product.id,
                        "variant_id": record.variant.id,
                        "on_hand": record.on_hand,
                        "price": record.price,
                        "cost": record.cost,
                    }
                    for record in records
                ],
            )
