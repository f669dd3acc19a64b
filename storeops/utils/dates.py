"""Datetime helpers."""

from __future__ import annotations

import os
from datetime import date, datetime, timedelta

import pendulum

DEFAULT_TZ = "UTC"


def timezone_name() -> str:
    return os.environ.get("TIMEZONE", DEFAULT_TZ)


def now_in_tz() -> pendulum.DateTime:
    tz = pendulum.timezone(timezone_name())
    return pendulum.now(tz)


def today_in_tz() -> date:
    return now_in_tz().date()


def utc_now() -> datetime:
    """Naive UTC timestamp, the form stored in the database."""
    return pendulum.now("UTC").naive()


def parse_iso_date(value: str) -> date:
    parsed = pendulum.parse(value, exact=True)
    if isinstance(parsed, datetime):
        return parsed.date()
    if isinstance(parsed, date):
        return parsed
    raise ValueError(f"Not a calendar date: {value!r}")


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp from the Admin API into naive UTC."""
    if not value:
        return None
    return pendulum.parse(value).in_timezone("UTC").naive()


def format_date(value: date) -> str:
    return value.strftime("%Y-%m-%d")


def days_ago(days: int, *, today: date | None = None) -> date:
    return (today or today_in_tz()) - timedelta(days=days)


def day_bounds(start: date, end: date) -> tuple[datetime, datetime]:
    """Half-open datetime range covering ``start`` through the whole ``end`` day."""
    lower = datetime(start.year, start.month, start.day)
    upper = datetime(end.year, end.month, end.day) + timedelta(days=1)
    return lower, upper
