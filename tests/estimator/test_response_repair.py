from __future__ import annotations

import json

import pytest

from estimator.response_repair import coerce_estimate, extract_json_object, repair_response

GOOD = {"count": 1200, "confidence": 0.7, "range": {"min": 900, "max": 1500}, "assumptions": ["a"], "notes": ["n"]}


def test_fenced_block_is_preferred() -> None:
    text = "Here you go:\n```json\n" + json.dumps(GOOD) + "\n```\nThanks!"
    assert extract_json_object(text) == GOOD


def test_brace_span_inside_prose() -> None:
    text = "Sure. " + json.dumps(GOOD) + " Let me know if you need more."
    assert extract_json_object(text) == GOOD


def test_verbatim_json() -> None:
    assert extract_json_object(json.dumps(GOOD)) == GOOD


def test_mapping_passes_through() -> None:
    assert extract_json_object(GOOD) is GOOD


@pytest.mark.parametrize("raw", ["", "   ", "I cannot estimate that.", "[1, 2, 3]", "{not json}", None, 42])
def test_unparsable_text_yields_none(raw: object) -> None:
    assert extract_json_object(raw) is None
    assert repair_response(raw) is None


def test_coerce_fills_defaults() -> None:
    result = coerce_estimate({"count": 1000})
    assert result.count == 1000
    assert result.confidence == pytest.approx(0.6)
    assert (result.range_min, result.range_max) == (700, 1400)
    assert result.assumptions == []
    assert result.notes == []


@pytest.mark.parametrize("count, expected", [(None, 0), ("many", 0), (-5, 0), (float("inf"), 0), ("1,200", 1200), (12.6, 13)])
def test_coerce_count(count: object, expected: int) -> None:
    assert coerce_estimate({"count": count}).count == expected


def test_nan_count_from_model_text() -> None:
    assert repair_response('{"count": NaN, "confidence": 0.9}').count == 0


@pytest.mark.parametrize("confidence, expected", [(1.7, 1.0), (-0.2, 0.0), ("high", 0.6), (0.42, 0.42)])
def test_coerce_confidence(confidence: object, expected: float) -> None:
    assert coerce_estimate({"count": 1, "confidence": confidence}).confidence == pytest.approx(expected)


def test_lists_are_truncated_and_non_lists_dropped() -> None:
    result = coerce_estimate({"count": 5, "assumptions": [f"a{i}" for i in range(12)], "notes": "just a string"})
    assert len(result.assumptions) == 8
    assert result.notes == []


def test_swapped_range_is_reordered() -> None:
    result = coerce_estimate({"count": 100, "range": {"min": 150, "max": 80}})
    assert (result.range_min, result.range_max) == (80, 150)


def test_legacy_schema_is_understood() -> None:
    result = repair_response(
        json.dumps({"estimated_count": 300, "min_count": 200, "max_count": 400,
                    "crowd_label_jp": "普通", "reason": "駅前の平均的な人出を想定。"})
    )
    assert result is not None
    assert result.count == 300
    assert (result.range_min, result.range_max) == (200, 400)
    assert result.notes == ["駅前の平均的な人出を想定。"]
