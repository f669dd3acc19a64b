"""Collection reordering against the live catalog."""

from __future__ import annotations

import asyncio
import logging
import os
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

from storeops.catalog.errors import ReauthRequired, ReorderJobTimeout
from storeops.catalog.pagination import CatalogClient, check_user_errors, dig, order_line_items, paginate
from storeops.catalog.queries import (
    COLLECTION_PRODUCTS_PAGE,
    COLLECTION_REORDER,
    COLLECTION_SET_MANUAL,
    COLLECTIONS_PAGE,
    JOB_STATUS,
    ORDER_SALES_LINE_ITEMS,
    ORDER_SALES_PAGE,
    PAID_ORDERS_SEARCH,
)
from storeops.logic.ranking import ProductRank, build_moves, chunk_moves, decorate, rank_products
from storeops.logic.signals import to_int
from storeops.logic.strategy import load_collection_rules
from storeops.logic.validation import require_gid
from storeops.utils.dates import days_ago, format_date

logger = logging.getLogger(__name__)

DEFAULT_TOP_N = int(os.environ.get("SORT_DEFAULT_TOP_N", 500))
CHUNK_SIZE = int(os.environ.get("SORT_CHUNK_SIZE", 250))
JOB_POLL_INTERVAL = float(os.environ.get("JOB_POLL_INTERVAL", 1.0))
JOB_POLL_MAX_ATTEMPTS = int(os.environ.get("JOB_POLL_MAX_ATTEMPTS", 300))
SALES_WINDOW_DAYS = 90
PREVIEW_SIZE = 25
BATCH_PREVIEW_SIZE = 10
BATCH_LIMIT = 25
COLLECTION_DELAY = 0.4
FAILURE_DELAY = 0.8


@dataclass(slots=True)
class SortResult:
    collection_id: str
    considered: int
    rules: tuple[str, ...]
    dry_run: bool = False
    moved: int = 0
    applied_top_n: int | None = None
    preview: list[str] = field(default_factory=list)


@dataclass(slots=True)
class CollectionOutcome:
    id: str
    title: str
    status: str
    considered: int = 0
    moved: int = 0
    preview: list[str] | None = None
    reason: str | None = None
    error: str | None = None


@dataclass(slots=True)
class BatchResult:
    processed: int
    results: list[CollectionOutcome]


class CollectionSorter:
    """Ranks a collection's products and applies the order through reorder jobs.

    Stock is read live from the Admin API rather than from the local store so
    the order reflects current availability.
    """

    def __init__(
        self,
        client: CatalogClient,
        *,
        chunk_size: int = CHUNK_SIZE,
        poll_interval: float = JOB_POLL_INTERVAL,
        max_polls: int = JOB_POLL_MAX_ATTEMPTS,
        collection_delay: float = COLLECTION_DELAY,
        failure_delay: float = FAILURE_DELAY,
    ) -> None:
        self.client = client
        self.chunk_size = chunk_size
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self.collection_delay = collection_delay
        self.failure_delay = failure_delay

    async def fetch_collections(self, limit: int | None = None) -> list[dict[str, Any]]:
        collections: list[dict[str, Any]] = []
        async for page in paginate(self.client, COLLECTIONS_PAGE, {"first": 50}, ("collections",)):
            collections.extend(page)
            if limit is not None and len(collections) >= limit:
                break
        return collections if limit is None else collections[:limit]

    async def fetch_collection_products(self, collection_id: str) -> list[dict[str, Any]]:
        products: list[dict[str, Any]] = []
        variables = {"id": collection_id, "first": 250}
        async for page in paginate(self.client, COLLECTION_PRODUCTS_PAGE, variables, ("collection", "products")):
            products.extend(page)
        return products

    async def fetch_sales_counts(self, product_ids: Iterable[str], days: int = SALES_WINDOW_DAYS) -> dict[str, int]:
        """Units sold per wanted product over the trailing ``days`` of paid orders."""
        wanted = set(product_ids)
        if not wanted:
            return {}
        counts: dict[str, int] = defaultdict(int)
        search = PAID_ORDERS_SEARCH.format(since=format_date(days_ago(days)))
        async for page in paginate(self.client, ORDER_SALES_PAGE, {"first": 50, "query": search}, ("orders",)):
            for order in page:
                async for item in order_line_items(self.client, order, ORDER_SALES_LINE_ITEMS):
                    product_id = dig(item, ("product", "id"))
                    if product_id in wanted:
                        counts[product_id] += to_int(item.get("quantity"))
        return dict(counts)

    async def rank(
        self,
        collection_id: str,
        products: Sequence[dict[str, Any]],
        rules: Iterable[str] | None = None,
    ) -> tuple[list[ProductRank], tuple[str, ...]]:
        if rules is None:
            rules = await load_collection_rules(self.client, collection_id)
        rules = tuple(rules)
        sold90 = await self.fetch_sales_counts(p["id"] for p in products)
        ranked = rank_products([decorate(p, sold90) for p in products], rules)
        return ranked, rules

    async def sort_collection(
        self,
        collection_id: str,
        *,
        dry_run: bool = False,
        top_n: int | None = None,
        rules: Iterable[str] | None = None,
    ) -> SortResult:
        require_gid(collection_id, "Collection", field="collectionId")
        products = await self.fetch_collection_products(collection_id)
        ranked, used_rules = await self.rank(collection_id, products, rules)
        desired = [p.id for p in ranked]
        if dry_run:
            return SortResult(
                collection_id=collection_id,
                considered=len(desired),
                rules=used_rules,
                dry_run=True,
                preview=desired[:PREVIEW_SIZE],
            )
        cap = max(0, min(len(desired), DEFAULT_TOP_N if top_n is None else top_n))
        moved = await self.apply_order(collection_id, desired[:cap])
        return SortResult(
            collection_id=collection_id,
            considered=len(desired),
            rules=used_rules,
            moved=moved,
            applied_top_n=cap,
        )

    async def apply_order(self, collection_id: str, desired: Sequence[str]) -> int:
        """Submit moves chunk by chunk, waiting for each reorder job to finish.

        Positions are resolved against the collection as it stands when a chunk
        is submitted, so a chunk is only sent once the previous job is done.
        """
        data = await self.client.execute(COLLECTION_SET_MANUAL, {"id": collection_id})
        check_user_errors(data.get("collectionUpdate"))
        moves = build_moves(desired)
        chunks = chunk_moves(moves, self.chunk_size)
        for index, chunk in enumerate(chunks, start=1):
            data = await self.client.execute(COLLECTION_REORDER, {"id": collection_id, "moves": chunk})
            payload = data.get("collectionReorderProducts")
            check_user_errors(payload)
            job_id = dig(payload, ("job", "id"))
            logger.info("Submitted chunk %s/%s (%s moves) for %s", index, len(chunks), len(chunk), collection_id)
            if job_id and not dig(payload, ("job", "done")):
                await self.wait_for_job(job_id)
        return len(moves)

    async def wait_for_job(self, job_id: str) -> int:
        for attempt in range(1, self.max_polls + 1):
            data = await self.client.execute(JOB_STATUS, {"id": job_id})
            if dig(data, ("job", "done")):
                return attempt
            await asyncio.sleep(self.poll_interval)
        raise ReorderJobTimeout(f"Reorder job {job_id} not done after {self.max_polls} polls")

    async def sort_all(
        self,
        *,
        limit: int = BATCH_LIMIT,
        top_n: int | None = None,
        dry_run: bool = False,
    ) -> BatchResult:
        """Sort collections one at a time, recording an outcome for each.

        A failing collection is recorded and the loop moves on; a collection
        that failed mid-apply is left partially reordered.
        """
        collections = await self.fetch_collections(limit=max(0, limit))
        results: list[CollectionOutcome] = []
        for collection in collections:
            try:
                outcome = await self._sort_one(collection, top_n=top_n, dry_run=dry_run)
            except ReauthRequired:
                raise
            except Exception as exc:
                logger.warning("Sorting %s failed: %s", collection["id"], exc)
                results.append(
                    CollectionOutcome(
                        id=collection["id"],
                        title=collection.get("title") or "",
                        status="error",
                        error=str(exc) or type(exc).__name__,
                    )
                )
                await asyncio.sleep(self.failure_delay)
                continue
            results.append(outcome)
            if outcome.status != "skipped":
                await asyncio.sleep(self.collection_delay)
        return BatchResult(processed=len(results), results=results)

    async def _sort_one(self, collection: dict[str, Any], *, top_n: int | None, dry_run: bool) -> CollectionOutcome:
        collection_id = collection["id"]
        title = collection.get("title") or ""
        products = await self.fetch_collection_products(collection_id)
        if not products:
            return CollectionOutcome(id=collection_id, title=title, status="skipped", reason="empty")
        ranked, _ = await self.rank(collection_id, products)
        desired = [p.id for p in ranked]
        if dry_run:
            return CollectionOutcome(
                id=collection_id,
                title=title,
                status="preview",
                considered=len(desired),
                preview=desired[:BATCH_PREVIEW_SIZE],
            )
        cap = max(0, min(len(desired), DEFAULT_TOP_N if top_n is None else top_n))
        moved = await self.apply_order(collection_id, desired[:cap])
        return CollectionOutcome(id=collection_id, title=title, status="sorted", considered=len(desired), moved=moved)
