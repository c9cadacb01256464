from __future__ import annotations

import math

import pytest

from estimator.baseline import CROWD_FACTORS, NATIONALITY_FACTORS, circle_area_km2, compute_baseline
from estimator.config import DEFAULT_DENSITIES, WORLD_POPULATION
from estimator.context import classify
from estimator.normalizer import normalize_input


def _baseline(payload: dict, **kwargs):
    inp = normalize_input(payload)
    return compute_baseline(inp, classify(inp), **kwargs)


def test_area_uses_radius_in_meters() -> None:
    assert circle_area_km2(500) == pytest.approx(0.785398, rel=1e-5)
    assert circle_area_km2(1000) == pytest.approx(math.pi)


def test_expected_is_product_of_factors() -> None:
    b = _baseline(
        {"address": "Shibuya Station", "crowd": "normal", "feature": "foreign tourists",
         "radius_m": 300, "local_time_iso": "2025-11-28T08:00:00+09:00"}
    )
    product = b.area_km2 * b.base_density * b.time_factor * b.crowd_factor * b.nationality_factor
    assert b.expected == pytest.approx(product)
    assert b.place_type == "station"
    assert b.time_slot == "morning_commute"
    assert b.nationality_factor == NATIONALITY_FACTORS["foreigner_only"]


def test_shibuya_station_crowded_is_several_thousand() -> None:
    b = _baseline({"address": "Shibuya Station", "crowd": "crowded", "feature": "commuters", "radius_m": 500})
    assert b.area_km2 == pytest.approx(0.785, abs=1e-3)
    assert 1.8 <= b.crowd_factor <= 2.0
    assert 1_000 < b.expected < 10_000


def test_station_density_is_ten_to_fifteen_times_park() -> None:
    ratio = DEFAULT_DENSITIES["station"] / DEFAULT_DENSITIES["park"]
    assert 10 <= ratio <= 15


def test_monotonic_in_radius() -> None:
    previous = -1.0
    for radius in (10, 50, 100, 500, 1_000, 5_000, 50_000, 1_000_000, 40_075_000):
        expected = _baseline({"address": "Yoyogi Park", "crowd": "normal", "radius_m": radius}).expected
        assert expected >= previous
        previous = expected


def test_bilingual_crowd_levels_give_identical_baselines() -> None:
    base = {"address": "Shibuya Station", "feature": "commuters", "radius_m": 500}
    ja = _baseline({**base, "crowd": "混雑"})
    en = _baseline({**base, "crowd": "crowded"})
    assert ja == en
    assert ja.crowd_factor == CROWD_FACTORS["crowded"]


def test_baseline_is_deterministic() -> None:
    payload = {"address": "新宿駅", "crowd": "普通", "feature": "通勤客", "radius_m": 400,
               "local_time_iso": "2025-11-28T18:30:00+09:00"}
    assert _baseline(payload) == _baseline(payload)


def test_weekend_adjusts_time_factor_by_place_type() -> None:
    weekday = _baseline({"address": "Marunouchi office", "local_time_iso": "2025-11-28T15:00:00+09:00"})
    weekend = _baseline({"address": "Marunouchi office", "local_time_iso": "2025-11-29T15:00:00+09:00"})
    assert weekend.time_factor < weekday.time_factor
    assert weekend.expected < weekday.expected


def test_custom_densities_and_band() -> None:
    b = _baseline(
        {"address": "Yoyogi Park", "crowd": "normal", "radius_m": 1000},
        densities={"park": 1000.0, "generic": 10.0},
        band_low=0.6,
        band_high=1.8,
    )
    assert b.base_density == 1000.0
    assert b.expected == pytest.approx(math.pi * 1000.0)
    assert b.lower_bound == pytest.approx(b.expected * 0.6)
    assert b.upper_bound == pytest.approx(b.expected * 1.8)


def test_unknown_place_in_custom_table_uses_generic() -> None:
    b = _baseline({"address": "Shibuya Station", "crowd": "normal", "radius_m": 1000}, densities={"generic": 10.0})
    assert b.base_density == 10.0


def test_planet_sized_circle_is_capped_at_world_population() -> None:
    b = _baseline({"address": "Earth", "crowd": "crowded", "radius_m": 40_075_000})
    assert b.expected == pytest.approx(WORLD_POPULATION)
    assert b.upper_bound == pytest.approx(WORLD_POPULATION)
    assert b.lower_bound == pytest.approx(WORLD_POPULATION * 0.5)
