"""Shopify Admin GraphQL client."""

from __future__ import annotations

import json
import logging
import os
from typing import Any

import httpx

from storeops.catalog.errors import CatalogError, ReauthRequired, reauth_url_for
from storeops.utils.rate_limit import RateLimiter
from storeops.utils.retry import retry_async

logger = logging.getLogger(__name__)

API_VERSION = os.environ.get("SHOPIFY_API_VERSION", "2024-10")


class ShopifyAdminClient:
    """Issues queries and mutations against one shop's Admin API.

    ``request`` returns the decoded body as-is so callers can inspect the
    top-level ``errors`` list; ``execute`` raises on it and returns ``data``.
    Pages are never fetched concurrently, the caller drives pagination.
    """

    def __init__(
        self,
        shop: str,
        access_token: str,
        *,
        api_version: str = API_VERSION,
        session: httpx.AsyncClient | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        self.shop = shop
        self.endpoint = f"https://{shop}/admin/api/{api_version}/graphql.json"
        self._session = session or httpx.AsyncClient(timeout=30.0)
        self._headers = {
            "X-Shopify-Access-Token": access_token,
            "Content-Type": "application/json",
        }
        self._rate_limiter = rate_limiter or RateLimiter()

    async def close(self) -> None:
        await self._session.aclose()

    async def __aenter__(self) -> "ShopifyAdminClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def request(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        await self._rate_limiter.wait_for_shop(self.shop)
        payload = {"query": query, "variables": variables or {}}
        response = await retry_async(self._session.post)(self.endpoint, json=payload, headers=self._headers)
        if response.status_code in {401, 403}:
            logger.warning("Admin API rejected the session for %s (%s)", self.shop, response.status_code)
            raise ReauthRequired(reauth_url_for(self.shop))
        if response.status_code >= 400:
            raise CatalogError(f"Admin API HTTP {response.status_code}: {response.text[:200]}")
        try:
            body = response.json()
        except json.JSONDecodeError as exc:
            raise CatalogError(response.text or "Non-JSON response") from exc
        if not isinstance(body, dict):
            raise CatalogError("Unexpected Admin API response shape")
        return body

    async def execute(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        body = await self.request(query, variables)
        errors = body.get("errors")
        if errors:
            raise CatalogError.from_errors(errors)
        return body.get("data") or {}
