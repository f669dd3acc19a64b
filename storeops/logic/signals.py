"""Business arithmetic shared by ingestion and the analytics rollups."""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

import numpy as np

CENTS = Decimal("0.01")

AGE_BANDS = ("0-30", "31-60", "61-90", "90+")


def to_money(value: Any) -> Decimal:
    """Coerce a remote amount to a non-negative 2-digit decimal, 0 when unusable."""
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return Decimal("0.00")
    if not amount.is_finite() or amount < 0:
        return Decimal("0.00")
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def to_int(value: Any) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return int(number)


def weekly_rate(units: float, weeks: float) -> float:
    if weeks <= 0:
        return 0.0
    return units / weeks


def weeks_of_supply(on_hand: float, weekly: float) -> float:
    if weekly <= 0:
        return math.inf
    return on_hand / weekly


def sell_through(units: float, on_hand: float) -> float:
    denominator = units + on_hand
    if denominator <= 0:
        return 0.0
    return units * 100 / denominator


def kpi_arrays(on_hand: np.ndarray, units: np.ndarray, weeks: float) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Vectorised weekly rate, weeks-of-supply and sell-through per variant."""
    weekly = units / weeks if weeks > 0 else np.zeros_like(units, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        wos = np.where(weekly > 0, on_hand / np.where(weekly > 0, weekly, 1.0), np.inf)
        total = units + on_hand
        through = np.where(total > 0, units * 100 / np.where(total > 0, total, 1.0), 0.0)
    return weekly.astype(float), wos.astype(float), through.astype(float)


def share_pct(part: int, total: int) -> float:
    """Percentage of ``total`` rounded half-up to one decimal place."""
    if not total:
        return 0.0
    return math.floor(part * 1000 / total + 0.5) / 10


def age_band(age_days: int) -> str:
    if age_days <= 30:
        return "0-30"
    if age_days <= 60:
        return "31-60"
    if age_days <= 90:
        return "61-90"
    return "90+"
