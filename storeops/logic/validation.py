"""Client-input validation, applied before any Admin API call."""

from __future__ import annotations

import re
from datetime import date

from storeops.utils.dates import parse_iso_date

GID_RE = re.compile(r"^gid://shopify/(?P<kind>[A-Za-z]+)/\d+$")


class ValidationError(ValueError):
    """Rejected client input."""


def require_gid(value: object, kind: str, *, field: str = "id") -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a {kind} id")
    match = GID_RE.match(value.strip())
    if not match or match.group("kind") != kind:
        raise ValidationError(f"Malformed {kind} id: {value!r}")
    return value.strip()


def require_title(value: object, *, field: str = "title") -> str:
    title = value.strip() if isinstance(value, str) else ""
    if not title:
        raise ValidationError(f"{field} is required")
    return title


def require_positive(value: object, *, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(f"{field} must be a positive integer")
    return value


MAX_WINDOW_DAYS = 3650


def require_days(value: object, *, field: str = "days") -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= MAX_WINDOW_DAYS:
        raise ValidationError(f"{field} must be an integer between 0 and {MAX_WINDOW_DAYS}")
    return value


def parse_since(value: str | date) -> date:
    if isinstance(value, date):
        return value
    try:
        return parse_iso_date(value)
    except (ValueError, TypeError) as exc:
        raise ValidationError(f"Invalid date: {value!r}") from exc
