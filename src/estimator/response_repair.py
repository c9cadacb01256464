from __future__ import annotations

import json
import logging
import math
import re
from typing import Any, Callable, List, Mapping, Optional, Sequence

from estimator.types import MAX_ASSUMPTIONS, EstimateResult

logger = logging.getLogger("crowdscope")

__all__ = [
    "EXTRACTION_STRATEGIES",
    "extract_json_object",
    "coerce_estimate",
    "repair_response",
]

DEFAULT_CONFIDENCE = 0.6
RANGE_LOW_SPREAD = 0.30
RANGE_HIGH_SPREAD = 0.40

_FENCED = re.compile(r"```(?:json)?\s*([\s\S]*?)```", flags=re.IGNORECASE)


def _loads(text: str) -> Optional[Any]:
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return None


def from_fenced_block(text: str) -> Optional[Any]:
    match = _FENCED.search(text)
    if not match:
        return None
    return _loads(match.group(1).strip())


def from_brace_span(text: str) -> Optional[Any]:
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        return None
    return _loads(text[start : end + 1])


def from_verbatim(text: str) -> Optional[Any]:
    return _loads(text.strip())


EXTRACTION_STRATEGIES: Sequence[Callable[[str], Optional[Any]]] = (
    from_fenced_block,
    from_brace_span,
    from_verbatim,
)


def extract_json_object(raw: Any) -> Optional[Mapping[str, Any]]:
    """Return the first JSON object any strategy can extract, or None."""
    if isinstance(raw, Mapping):
        return raw
    if not isinstance(raw, str) or not raw.strip():
        return None
    for strategy in EXTRACTION_STRATEGIES:
        parsed = strategy(raw)
        if isinstance(parsed, Mapping):
            logger.debug("Extracted model JSON with %s", strategy.__name__)
            return parsed
    return None


def _finite(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, str):
            value = value.strip().replace(",", "")
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _count(value: Any) -> int:
    number = _finite(value)
    if number is None or number < 0:
        return 0
    return int(round(number))


def _strings(value: Any, limit: int) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    out: List[str] = []
    for item in value:
        if isinstance(item, (int, float)) and not isinstance(item, bool):
            item = str(item)
        if isinstance(item, str) and item.strip():
            out.append(item.strip())
    return out[:limit]


def coerce_estimate(obj: Mapping[str, Any]) -> EstimateResult:
    """Coerce a parsed model object into the EstimateResult shape, filling defaults."""
    count = _count(obj.get("count", obj.get("estimated_count")))

    confidence = _finite(obj.get("confidence"))
    if confidence is None:
        confidence = DEFAULT_CONFIDENCE
    confidence = min(max(confidence, 0.0), 1.0)

    rng = obj.get("range")
    rng = rng if isinstance(rng, Mapping) else {}
    low = _finite(rng.get("min", obj.get("min_count")))
    high = _finite(rng.get("max", obj.get("max_count")))
    range_min = int(round(low)) if low is not None and low >= 0 else int(round(count * (1 - RANGE_LOW_SPREAD)))
    range_max = int(round(high)) if high is not None and high >= 0 else int(round(count * (1 + RANGE_HIGH_SPREAD)))
    if range_min > range_max:
        range_min, range_max = range_max, range_min

    notes = _strings(obj.get("notes"), MAX_ASSUMPTIONS)
    reason = obj.get("reason")
    if isinstance(reason, str) and reason.strip() and len(notes) < MAX_ASSUMPTIONS:
        notes.append(reason.strip())

    return EstimateResult(
        count=count,
        confidence=confidence,
        range_min=range_min,
        range_max=range_max,
        assumptions=_strings(obj.get("assumptions"), MAX_ASSUMPTIONS),
        notes=notes,
    )


def repair_response(raw: Any) -> Optional[EstimateResult]:
    """Extract and coerce a model answer; None means the caller should fall back."""
    obj = extract_json_object(raw)
    if obj is None:
        preview = raw[:200] if isinstance(raw, str) else type(raw).__name__
        logger.warning("Model response had no parseable JSON object: %r", preview)
        return None
    return coerce_estimate(obj)
