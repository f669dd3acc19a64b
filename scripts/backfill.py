"""Ingest a window of paid orders for one shop.

Usage: python scripts/backfill.py <shop> [days|YYYY-MM-DD]
The access token is read from SHOPIFY_ACCESS_TOKEN.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys

from dotenv import load_dotenv

from storeops.catalog.client import ShopifyAdminClient
from storeops.db.migrate import run_migrations
from storeops.db.session import create_engine_from_env
from storeops.ingest.orders import OrderIngestor


async def main(argv: list[str]) -> int:
    load_dotenv()
    logging.basicConfig(level=logging.INFO)
    if not argv:
        print(__doc__, file=sys.stderr)
        return 2
    shop = argv[0]
    window = argv[1] if len(argv) > 1 else None
    token = os.environ.get("SHOPIFY_ACCESS_TOKEN")
    if not token:
        print("SHOPIFY_ACCESS_TOKEN is not set", file=sys.stderr)
        return 2

    engine = create_engine_from_env()
    run_migrations(engine)
    async with ShopifyAdminClient(shop, token) as client:
        ingestor = OrderIngestor(engine, client)
        if window and window.isdigit():
            result = await ingestor.ingest(shop, days=int(window))
        else:
            result = await ingestor.ingest(shop, since=window)
    print(
        f"{shop}: {result.orders_processed} orders, {result.lines_processed} lines "
        f"({result.lines_inserted} new) since {result.since_iso}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main(sys.argv[1:])))
