"""Band Validator.

Whatever the model (or the fallback) produced, the final count is forced into
``[expected * band_low, min(expected * band_high, ceiling)]`` of the baseline,
the range is made to bracket the count without passing the ceiling, and a
note records what happened.
"""
from __future__ import annotations

import logging
import math
from typing import List, Optional, Tuple

from estimator.types import MAX_NOTES, BaselineEstimate, EstimateResult

logger = logging.getLogger("crowdscope")

__all__ = ["validate_estimate", "integer_band", "spread_range"]

SPREAD_RATIO = 0.35
SPREAD_CONSTANT = 5


def integer_band(baseline: BaselineEstimate) -> Tuple[int, int]:
    """Integer counts allowed by the baseline band."""
    low = math.ceil(baseline.lower_bound)
    high = math.floor(baseline.upper_bound)
    if low > high:
        # Band narrower than one person: collapse onto the rounded expectation.
        pinned = int(round(baseline.expected))
        return pinned, pinned
    return low, high


def spread_range(count: int, ceiling: Optional[float] = None) -> Tuple[int, int]:
    spread = count * SPREAD_RATIO + SPREAD_CONSTANT
    upper = math.ceil(count + spread)
    if ceiling is not None:
        upper = max(min(upper, math.floor(ceiling)), count)
    return max(0, math.floor(count - spread)), upper


def _format(value: float) -> str:
    return f"{value:,.0f}"


def _clamp_note(original: int, result: int, baseline: BaselineEstimate, lang: str) -> str:
    low, high = _format(baseline.lower_bound), _format(baseline.upper_bound)
    expected = _format(baseline.expected)
    if lang == "ja":
        return (
            f"推定値 {original:,} 人は許容範囲 {low}〜{high} 人"
            f"（基準値 約{expected} 人の {baseline.band_low:g}〜{baseline.band_high:g} 倍）の外にあったため、"
            f"{result:,} 人に補正しました。"
        )
    return (
        f"Estimate {original:,} was outside the allowed band {low}-{high} "
        f"({baseline.band_low:g}x-{baseline.band_high:g}x of the expected ~{expected}) "
        f"and was corrected to {result:,}."
    )


def _pass_note(count: int, baseline: BaselineEstimate, lang: str) -> str:
    low, high = _format(baseline.lower_bound), _format(baseline.upper_bound)
    if lang == "ja":
        return f"推定値 {count:,} 人は基準値 約{_format(baseline.expected)} 人に基づく許容範囲 {low}〜{high} 人の検証を通過しました。"
    return (
        f"Estimate {count:,} passed validation against the allowed band {low}-{high} "
        f"(expected ~{_format(baseline.expected)})."
    )


def _cap_notes(notes: List[str]) -> List[str]:
    return notes[-MAX_NOTES:]


def validate_estimate(result: EstimateResult, baseline: BaselineEstimate, lang: str) -> EstimateResult:
    """Return a new EstimateResult whose count lies inside the baseline band."""
    low, high = integer_band(baseline)
    original = max(int(result.count), 0)
    count = min(max(original, low), high)
    notes = list(result.notes)

    if count != original:
        range_min, range_max = spread_range(count, baseline.ceiling)
        notes.append(_clamp_note(original, count, baseline, lang))
        logger.info(
            "Clamped estimate %s -> %s (band %.1f-%.1f, expected %.1f)",
            original, count, baseline.lower_bound, baseline.upper_bound, baseline.expected,
        )
    else:
        range_min = max(0, min(int(result.range_min), count))
        range_max = int(result.range_max)
        if baseline.ceiling is not None:
            range_max = min(range_max, math.floor(baseline.ceiling))
        range_max = max(range_max, count)
        notes.append(_pass_note(count, baseline, lang))

    return EstimateResult(
        count=count,
        confidence=min(max(float(result.confidence), 0.0), 1.0),
        range_min=range_min,
        range_max=range_max,
        assumptions=list(result.assumptions),
        notes=_cap_notes(notes),
    )
