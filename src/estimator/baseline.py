"""Baseline Estimator.

Deterministic, side-effect-free order-of-magnitude estimate:

    expected = min(area_km2 * density * time_factor * crowd_factor * nationality_factor,
                   world_population)

It is evaluated twice per request (prompt construction and band validation)
and must return identical numbers both times.
"""
from __future__ import annotations

import math
from typing import Mapping, Optional

from estimator.config import DEFAULT_DENSITIES, BAND_VARIANTS, WORLD_POPULATION
from estimator.types import BaselineEstimate, CanonicalInput, Context

__all__ = [
    "compute_baseline",
    "circle_area_km2",
    "time_factor",
    "TIME_FACTORS",
    "CROWD_FACTORS",
    "NATIONALITY_FACTORS",
]

TIME_FACTORS: Mapping[str, float] = {
    "morning_commute": 1.5,
    "lunch": 1.2,
    "evening_commute": 1.4,
    "night": 0.35,
    "early_morning": 0.5,
    "daytime": 1.0,
    "other": 0.8,
    "unknown": 1.0,
}

# Weekend adjustment folded into the time factor, by place type.
WEEKEND_FACTORS: Mapping[str, float] = {
    "station": 0.8,
    "office": 0.3,
    "school": 0.2,
    "mall": 1.4,
    "park": 1.6,
    "tourist_site": 1.5,
    "residential": 1.2,
}

CROWD_FACTORS: Mapping[str, float] = {
    "empty": 0.5,
    "normal": 1.0,
    "crowded": 1.9,
}

NATIONALITY_FACTORS: Mapping[str, float] = {
    "all": 1.0,
    "japanese_only": 0.85,
    "foreigner_only": 0.15,
}


def circle_area_km2(radius_m: float) -> float:
    radius_km = max(float(radius_m), 0.0) / 1000.0
    return math.pi * radius_km * radius_km


def time_factor(time_slot: str, place_type: str, weekend: bool) -> float:
    factor = TIME_FACTORS.get(time_slot, 1.0)
    if weekend:
        factor *= WEEKEND_FACTORS.get(place_type, 1.0)
    return factor


def compute_baseline(
    inp: CanonicalInput,
    ctx: Context,
    *,
    densities: Optional[Mapping[str, float]] = None,
    band_low: float = BAND_VARIANTS["default"][0],
    band_high: float = BAND_VARIANTS["default"][1],
) -> BaselineEstimate:
    table = densities or DEFAULT_DENSITIES
    area_km2 = circle_area_km2(inp.radius_m)
    density = float(table.get(ctx.place_type, table.get("generic", DEFAULT_DENSITIES["generic"])))
    t_factor = time_factor(ctx.time_slot, ctx.place_type, ctx.weekend)
    c_factor = CROWD_FACTORS.get(inp.crowd, 1.0)
    n_factor = NATIONALITY_FACTORS.get(ctx.nationality_filter, 1.0)

    expected = area_km2 * density * t_factor * c_factor * n_factor
    if not math.isfinite(expected) or expected < 0:
        expected = 0.0
    expected = min(expected, float(WORLD_POPULATION))

    return BaselineEstimate(
        expected=expected,
        area_km2=area_km2,
        base_density=density,
        time_factor=t_factor,
        crowd_factor=c_factor,
        nationality_factor=n_factor,
        place_type=ctx.place_type,
        time_slot=ctx.time_slot,
        band_low=band_low,
        band_high=band_high,
        ceiling=float(WORLD_POPULATION),
    )
