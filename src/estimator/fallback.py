from __future__ import annotations

from typing import List, Mapping

from estimator.band_validator import spread_range
from estimator.labels import crowd_label, nationality_label, place_label, slot_label
from estimator.types import BaselineEstimate, CanonicalInput, Context, EstimateResult

__all__ = ["heuristic_estimate", "FALLBACK_CONFIDENCE", "FALLBACK_REASONS"]

FALLBACK_CONFIDENCE = 0.55

FALLBACK_REASONS: Mapping[str, Mapping[str, str]] = {
    "missing_api_key": {"ja": "LLM の API キーが未設定", "en": "no LLM API key configured"},
    "timeout": {"ja": "LLM の応答がタイムアウト", "en": "the LLM call timed out"},
    "upstream_error": {"ja": "LLM サービスのエラー", "en": "the LLM service returned an error"},
    "unparsable_response": {"ja": "LLM の応答を JSON として解釈できなかった", "en": "the LLM response was not valid JSON"},
}


def _assumptions(inp: CanonicalInput, ctx: Context, baseline: BaselineEstimate) -> List[str]:
    lang = ctx.target_lang
    if lang == "ja":
        return [
            f"場所の種類: {place_label(ctx.place_type, lang)}（人口密度 {baseline.base_density:,.0f} 人/km²）",
            f"対象面積: 半径 {inp.radius_m:,} m の円 ≈ {baseline.area_km2:,.3f} km²",
            f"時間帯: {slot_label(ctx.time_slot, lang)}{'（週末）' if ctx.weekend else ''}（係数 {baseline.time_factor:g}）",
            f"混雑度: {crowd_label(inp.crowd, lang)}（係数 {baseline.crowd_factor:g}）",
            f"国籍条件: {nationality_label(ctx.nationality_filter, lang)}（係数 {baseline.nationality_factor:g}）",
        ]
    return [
        f"Place type: {place_label(ctx.place_type, lang)} ({baseline.base_density:,.0f} people/km²)",
        f"Area: circle of radius {inp.radius_m:,} m ≈ {baseline.area_km2:,.3f} km²",
        f"Time slot: {slot_label(ctx.time_slot, lang)}{' (weekend)' if ctx.weekend else ''} (factor {baseline.time_factor:g})",
        f"Crowd level: {crowd_label(inp.crowd, lang)} (factor {baseline.crowd_factor:g})",
        f"Nationality: {nationality_label(ctx.nationality_filter, lang)} (factor {baseline.nationality_factor:g})",
    ]


def heuristic_estimate(
    inp: CanonicalInput,
    ctx: Context,
    baseline: BaselineEstimate,
    reason: str = "upstream_error",
) -> EstimateResult:
    """Build a complete estimate from the baseline alone, without calling the LLM."""
    lang = ctx.target_lang
    count = int(round(baseline.expected))
    range_min, range_max = spread_range(count, baseline.ceiling)
    why = FALLBACK_REASONS.get(reason, FALLBACK_REASONS["upstream_error"])["ja" if lang == "ja" else "en"]
    if lang == "ja":
        note = f"ヒューリスティック推定（{why}のため、基準値のみから算出しました）。"
    else:
        note = f"Heuristic estimate computed from the local baseline only ({why})."
    return EstimateResult(
        count=count,
        confidence=FALLBACK_CONFIDENCE,
        range_min=range_min,
        range_max=range_max,
        assumptions=_assumptions(inp, ctx, baseline),
        notes=[note],
    )
