"""Ingestion helpers."""

from __future__ import annotations

import logging
import os
import pathlib

import yaml

from storeops.ingest.models import Shop

logger = logging.getLogger(__name__)

SHOPS_PATH = pathlib.Path(os.environ.get("SHOPS_CONFIG", pathlib.Path(__file__).with_name("shops.yml")))


def load_shops(path: pathlib.Path | None = None, limit: int | None = None) -> list[Shop]:
    """Read the shop roster; each entry names the env var holding its Admin token."""
    data = yaml.safe_load((path or SHOPS_PATH).read_text()) or []
    shops: list[Shop] = []
    for item in data:
        token = os.environ.get(item["token_env"], "")
        if not token:
            logger.warning("Skipping %s: %s is not set", item["shop"], item["token_env"])
            continue
        shops.append(Shop(shop=item["shop"], access_token=token))
    if limit:
        return shops[:limit]
    return shops
