import math
from decimal import Decimal

import numpy as np

from storeops.logic import signals


def test_kpi_example():
    weekly = signals.weekly_rate(20, 4)
    assert weekly == 5
    assert signals.weeks_of_supply(100, weekly) == 20
    assert round(signals.sell_through(20, 100), 1) == 16.7


def test_weeks_of_supply_without_sales_is_infinite():
    assert signals.weeks_of_supply(10, 0) == math.inf
    assert signals.sell_through(0, 0) == 0.0
    assert signals.weekly_rate(10, 0) == 0.0


def test_kpi_arrays_match_scalar_helpers():
    on_hand = np.array([100.0, 5.0, 0.0])
    units = np.array([20.0, 0.0, 0.0])
    weekly, wos, through = signals.kpi_arrays(on_hand, units, 4)
    assert weekly.tolist() == [5.0, 0.0, 0.0]
    assert wos[0] == 20.0
    assert math.isinf(wos[1]) and math.isinf(wos[2])
    assert through[0] == signals.sell_through(20, 100)
    assert through[2] == 0.0


def test_age_bands():
    assert signals.age_band(0) == "0-30"
    assert signals.age_band(30) == "0-30"
    assert signals.age_band(45) == "31-60"
    assert signals.age_band(61) == "61-90"
    assert signals.age_band(91) == "90+"


def test_share_pct_rounds_half_up():
    assert signals.share_pct(1, 3) == 33.3
    assert signals.share_pct(1, 8) == 12.5
    assert signals.share_pct(1, 16) == 6.3
    assert signals.share_pct(5, 0) == 0.0


def test_to_money():
    assert signals.to_money("12.345") == Decimal("12.35")
    assert signals.to_money(None) == Decimal("0.00")
    assert signals.to_money("NaN") == Decimal("0.00")
    assert signals.to_money("Infinity") == Decimal("0.00")
    assert signals.to_money(-3) == Decimal("0.00")


def test_to_int():
    assert signals.to_int("7") == 7
    assert signals.to_int(None) == 0
    assert signals.to_int(float("nan")) == 0
