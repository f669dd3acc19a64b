"""Errors raised while talking to the Shopify Admin API."""

from __future__ import annotations

from typing import Any, Iterable
from urllib.parse import urlencode


class CatalogError(RuntimeError):
    """The Admin API rejected a query or returned something unusable."""

    def __init__(self, messages: Iterable[str] | str) -> None:
        if isinstance(messages, str):
            messages = [messages]
        self.messages = [m for m in messages if m] or ["Unknown Admin API error"]
        super().__init__("; ".join(self.messages))

    @classmethod
    def from_errors(cls, errors: Iterable[dict[str, Any]] | str) -> "CatalogError":
        if isinstance(errors, str):
            return cls(errors)
        return cls([(err or {}).get("message") or "GraphQL error" for err in errors])


class UserErrors(CatalogError):
    """A mutation completed but reported ``userErrors``."""


class ReorderJobTimeout(CatalogError):
    """A collection reorder job did not finish within the poll budget."""


class ReauthRequired(Exception):
    """The session is missing or was rejected; the caller must re-authenticate."""

    def __init__(self, reauth_url: str = "/auth") -> None:
        self.reauth_url = reauth_url
        super().__init__(f"Re-authentication required: {reauth_url}")


def reauth_url_for(shop: str | None, host: str | None = None) -> str:
    params = {key: value for key, value in (("shop", shop), ("host", host)) if value}
    return f"/auth?{urlencode(params)}" if params else "/auth"
