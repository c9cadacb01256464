"""Crowd estimation agent prompts."""
from __future__ import annotations

import json
from typing import Optional

from estimator.config import WORLD_POPULATION
from estimator.types import BaselineEstimate, CanonicalInput, Context

JAPAN_POPULATION = 124_000_000
COUNTRY_SCALE_RADIUS_M = 50_000
WORLD_SCALE_RADIUS_M = 1_500_000

ESTIMATE_AGENT_SYSTEM = """You are a quantitative analyst who estimates how many people matching a description are present inside a circular area.
You reason from population density, time of day and venue type, and you always answer with a single JSON object and nothing else."""

_OUTPUT_SCHEMA = """{
  "count": integer >= 0,
  "confidence": number between 0 and 1,
  "range": {"min": integer >= 0, "max": integer >= min},
  "assumptions": [string, ...],   (at most 8 items)
  "notes": [string, ...]          (at most 8 items)
}"""


def population_ceiling(radius_m: int, target_lang: str) -> Optional[str]:
    """Hard upper bound injected for very large radii, or None for local queries."""
    if radius_m >= WORLD_SCALE_RADIUS_M:
        return (
            f"The circle covers a continental or global scale. The count can never exceed the "
            f"world population ({WORLD_POPULATION:,})."
        )
    if radius_m >= COUNTRY_SCALE_RADIUS_M:
        if target_lang == "ja":
            return (
                f"The circle covers a regional or national scale. The count can never exceed the "
                f"population of Japan ({JAPAN_POPULATION:,}) when the area lies in Japan, and never "
                f"the world population ({WORLD_POPULATION:,})."
            )
        return (
            f"The circle covers a regional or national scale. The count can never exceed the "
            f"population of the country containing the address, and never the world population "
            f"({WORLD_POPULATION:,})."
        )
    return None


def get_estimate_prompt(inp: CanonicalInput, ctx: Context, baseline: BaselineEstimate) -> str:
    """Build the single instruction sent to the estimation model."""
    language = "Japanese" if ctx.target_lang == "ja" else "English"
    inputs = json.dumps(inp.to_dict(), ensure_ascii=False, indent=2)
    context = json.dumps(ctx.to_dict(), ensure_ascii=False, indent=2)

    ceiling = population_ceiling(inp.radius_m, ctx.target_lang)
    ceiling_block = f"\nPOPULATION CEILING:\n- {ceiling}\n" if ceiling else ""

    return f"""Estimate how many people matching `feature` are inside the circle described below.

INPUT:
{inputs}

Field meanings:
- radius_m is the circle radius in METERS (not kilometers). Area = pi * (radius_m / 1000)^2 km^2.
- crowd is an internal code, exactly one of: "empty", "normal", "crowded".
- local_time_iso is the local wall-clock time at the address (null when unknown).

DERIVED CONTEXT:
{context}

BASELINE (computed locally, people counts):
- area_km2: {baseline.area_km2:.6f}
- base_density: {baseline.base_density:,.0f} people/km^2 for place_type "{baseline.place_type}"
- time_factor: {baseline.time_factor:g} for time_slot "{baseline.time_slot}"
- crowd_factor: {baseline.crowd_factor:g}
- nationality_factor: {baseline.nationality_factor:g} for nationality_filter "{ctx.nationality_filter}"
- expected = area_km2 * base_density * time_factor * crowd_factor * nationality_factor = {baseline.expected:,.1f}
- accepted band: {baseline.lower_bound:,.1f} to {baseline.upper_bound:,.1f} ({baseline.band_low:g}x to {baseline.band_high:g}x of expected). Answers outside the band are corrected automatically.
{ceiling_block}
TASK:
1. Start from the baseline and adjust it using what you know about the address, the feature and the time.
2. Only count people who match `feature`; a narrower feature means a smaller share of everyone present.
3. nationality_filter comes from explicit words in the feature text only. Do not infer nationality from the request language.

SELF-CHECK (do this before answering):
- Divide your count by area_km2 and confirm the implied density (people/km^2) is realistic for this place and time.
- For large radii, compare the count to the population ceiling and to the population of the region; it must not exceed them.
- Confirm your count is within the accepted band, or that you have a concrete reason to leave it.
- Confirm range.min <= count <= range.max and that all numbers are non-negative integers.

OUTPUT:
Return ONLY one JSON object with exactly this schema, no markdown fences and no extra prose:
{_OUTPUT_SCHEMA}
Write every string in "assumptions" and "notes" in {language}. Keep each string to one short sentence."""
