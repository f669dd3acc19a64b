"""Sales and inventory rollups over the local store."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal

import numpy as np
from sqlalchemy import Date, DateTime, Integer, Numeric, Text, bindparam
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.sql import text

from storeops.logic.signals import AGE_BANDS, age_band, kpi_arrays, sell_through, share_pct, to_money, weekly_rate, weeks_of_supply
from storeops.logic.validation import require_days
from storeops.utils.dates import day_bounds, days_ago, today_in_tz, utc_now

TOP_PRODUCTS = 20
TOP_RISKS = 25
MIN_KPI_DAYS = 14
DEFAULT_KPI_DAYS = 28
DEFAULT_RANGE_DAYS = 30
CURVE_ATTRIBUTES = {"size", "color"}


@dataclass(slots=True)
class DailyPoint:
    day: date
    units: int
    revenue: Decimal


@dataclass(slots=True)
class TopProduct:
    product_id: str | None
    title: str | None
    units: int
    revenue: Decimal


@dataclass(slots=True)
class Overview:
    start: date
    end: date
    units: int
    revenue: Decimal
    series: list[DailyPoint]
    top: list[TopProduct]


@dataclass(slots=True)
class CurveBucket:
    label: str
    units: int
    pct: float


@dataclass(slots=True)
class VariantKpi:
    variant_id: str | None
    on_hand: int
    units: int
    weekly: float
    wos: float
    sell_through: float


@dataclass(slots=True)
class KpiTotals:
    weeks: float
    on_hand: int
    units: int
    avg_weekly: float
    weighted_wos: float
    sell_through: float


@dataclass(slots=True)
class KpiReport:
    totals: KpiTotals
    risks: list[VariantKpi]


@dataclass(slots=True)
class AgingBand:
    band: str
    on_hand: int


def default_range(start: date | None = None, end: date | None = None) -> tuple[date, date]:
    return start or days_ago(DEFAULT_RANGE_DAYS), end or today_in_tz()


def _day_expr(conn: Connection, column: str) -> str:
    if conn.dialect.name == "sqlite":
        return f"date({column})"
    return f"CAST(date_trunc('day', {column}) AS DATE)"


def _range_params(start: date, end: date) -> dict[str, datetime]:
    lower, upper = day_bounds(start, end)
    return {"start": lower, "end": upper}


RANGE_BINDS = (bindparam("start", type_=DateTime()), bindparam("end", type_=DateTime()))


def overview(engine: Engine, start: date | None = None, end: date | None = None) -> Overview:
    start, end = default_range(start, end)
    params = _range_params(start, end)
    with engine.connect() as conn:
        series_query = (
            text(
                f"""
                SELECT {_day_expr(conn, "ol.created_at")} AS day,
                       SUM(ol.qty) AS units,
                       SUM(ol.net_amount) AS revenue
                FROM order_lines ol
                WHERE ol.created_at >= :start AND ol.created_at < :end
                GROUP BY day
                ORDER BY day
                """
            )
            .bindparams(*RANGE_BINDS)
            .columns(day=Date(), units=Integer(), revenue=Numeric(18, 2))
        )
        series = [
            DailyPoint(day=row.day, units=int(row.units or 0), revenue=to_money(row.revenue))
            for row in conn.execute(series_query, params)
        ]
        top_query = (
            text(
                """
                SELECT ol.product_id AS product_id,
                       p.title AS title,
                       SUM(ol.qty) AS units,
                       SUM(ol.net_amount) AS revenue
                FROM order_lines ol
                LEFT JOIN products p ON p.id = ol.product_id
                WHERE ol.created_at >= :start AND ol.created_at < :end
                GROUP BY ol.product_id, p.title
                ORDER BY revenue DESC, ol.product_id
                LIMIT :limit
                """
            )
            .bindparams(*RANGE_BINDS)
            .columns(product_id=Text(), title=Text(), units=Integer(), revenue=Numeric(18, 2))
        )
        top = [
            TopProduct(
                product_id=row.product_id,
                title=row.title,
                units=int(row.units or 0),
                revenue=to_money(row.revenue),
            )
            for row in conn.execute(top_query, {**params, "limit": TOP_PRODUCTS})
        ]
    return Overview(
        start=start,
        end=end,
        units=sum(point.units for point in series),
        revenue=sum((point.revenue for point in series), Decimal("0.00")),
        series=series,
        top=top,
    )


def attribute_curve(
    engine: Engine, attribute: str, start: date | None = None, end: date | None = None
) -> list[CurveBucket]:
    """Units by variant ``size`` or ``color`` with each bucket's share of the total."""
    if attribute not in CURVE_ATTRIBUTES:
        raise ValueError(f"Unsupported curve attribute: {attribute}")
    start, end = default_range(start, end)
    query = (
        text(
            f"""
            SELECT COALESCE(v.{attribute}, 'Unknown') AS label, SUM(ol.qty) AS units
            FROM order_lines ol
            JOIN variants v ON v.id = ol.variant_id
            WHERE ol.created_at >= :start AND ol.created_at < :end
            GROUP BY label
            ORDER BY units DESC, label
            """
        )
        .bindparams(*RANGE_BINDS)
        .columns(label=Text(), units=Integer())
    )
    with engine.connect() as conn:
        rows = [(row.label, int(row.units or 0)) for row in conn.execute(query, _range_params(start, end))]
    total = sum(units for _, units in rows)
    return [CurveBucket(label=label, units=units, pct=share_pct(units, total)) for label, units in rows]


def size_curve(engine: Engine, start: date | None = None, end: date | None = None) -> list[CurveBucket]:
    return attribute_curve(engine, "size", start, end)


def color_curve(engine: Engine, start: date | None = None, end: date | None = None) -> list[CurveBucket]:
    return attribute_curve(engine, "color", start, end)


LATEST_SNAPSHOTS = """
    SELECT variant_id, product_id, on_hand
    FROM (
        SELECT i.variant_id, i.product_id, i.on_hand,
               ROW_NUMBER() OVER (
                   PARTITION BY i.variant_id ORDER BY i.snapshot_date DESC, i.id DESC
               ) AS rn
        FROM inventory_snapshots i
    ) ranked
    WHERE rn = 1
"""


def _latest_on_hand(conn: Connection) -> dict[str, int]:
    query = text(LATEST_SNAPSHOTS).columns(variant_id=Text(), product_id=Text(), on_hand=Integer())
    return {row.variant_id: int(row.on_hand or 0) for row in conn.execute(query)}


def _units_since(conn: Connection, since: datetime) -> dict[str | None, int]:
    query = (
        text(
            """
            SELECT ol.variant_id AS variant_id, COALESCE(SUM(ol.qty), 0) AS units
            FROM order_lines ol
            WHERE ol.created_at >= :since
            GROUP BY ol.variant_id
            """
        )
        .bindparams(bindparam("since", type_=DateTime()))
        .columns(variant_id=Text(), units=Integer())
    )
    return {row.variant_id: int(row.units or 0) for row in conn.execute(query, {"since": since})}


def kpis(engine: Engine, days: int = DEFAULT_KPI_DAYS, *, now: datetime | None = None) -> KpiReport:
    """Per-variant velocity and supply for the trailing window, plus range totals.

    Lines without a variant count towards the totals under a ``None`` id.
    """
    days = max(MIN_KPI_DAYS, require_days(days))
    weeks = days / 7
    since = (now or utc_now()) - timedelta(days=days)
    with engine.connect() as conn:
        on_by_variant = _latest_on_hand(conn)
        units_by_variant = _units_since(conn, since)

    variant_ids = sorted(set(on_by_variant) | set(units_by_variant), key=lambda v: (v is None, v or ""))
    on_hand = np.array([on_by_variant.get(v, 0) for v in variant_ids], dtype=float)
    units = np.array([units_by_variant.get(v, 0) for v in variant_ids], dtype=float)
    weekly, wos, through = kpi_arrays(on_hand, units, weeks)

    rows = [
        VariantKpi(
            variant_id=variant_id,
            on_hand=int(on_hand[idx]),
            units=int(units[idx]),
            weekly=float(weekly[idx]),
            wos=float(wos[idx]),
            sell_through=float(through[idx]),
        )
        for idx, variant_id in enumerate(variant_ids)
    ]
    risks = [row for row in rows if row.on_hand > 0 and row.weekly < 1]
    risks.sort(key=lambda row: (-row.wos, -row.on_hand))

    total_on = int(on_hand.sum())
    total_units = int(units.sum())
    avg_weekly = weekly_rate(total_units, weeks)
    totals = KpiTotals(
        weeks=weeks,
        on_hand=total_on,
        units=total_units,
        avg_weekly=avg_weekly,
        weighted_wos=weeks_of_supply(total_on, avg_weekly),
        sell_through=sell_through(total_units, total_on),
    )
    return KpiReport(totals=totals, risks=risks[:TOP_RISKS])


def aging_stock(engine: Engine, *, now: datetime | None = None) -> list[AgingBand]:
    """Latest on-hand summed into product-age bands; unknown creation dates count as new."""
    now = now or utc_now()
    query = text(
        f"""
        SELECT latest.on_hand AS on_hand, p.created_at AS created_at
        FROM ({LATEST_SNAPSHOTS}) latest
        LEFT JOIN products p ON p.id = latest.product_id
        """
    ).columns(on_hand=Integer(), created_at=DateTime())
    bands = {band: 0 for band in AGE_BANDS}
    with engine.connect() as conn:
        for row in conn.execute(query):
            created = row.created_at
            age_days = math.floor((now - created).total_seconds() / 86400) if created else 0
            bands[age_band(age_days)] += int(row.on_hand or 0)
    return [AgingBand(band=band, on_hand=on_hand) for band, on_hand in bands.items()]
