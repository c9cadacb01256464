from __future__ import annotations

import json
import logging
import math
from datetime import datetime
from typing import Any, Mapping, Optional

from estimator.config import MAX_TOKENS_LIMIT
from estimator.labels import crowd_code
from estimator.types import CanonicalInput

logger = logging.getLogger("crowdscope")

__all__ = ["normalize_input", "coerce_payload", "parse_local_time"]

ADDRESS_MAX = 300
FEATURE_MAX = 140
RADIUS_MIN = 10
RADIUS_MAX = 40_075_000
DEFAULT_RADIUS = 500
DEFAULT_ADDRESS = "unknown"
DEFAULT_FEATURE = "people"
DEFAULT_CROWD = "empty"

_ALIASES: Mapping[str, tuple[str, ...]] = {
    "address": ("address", "place", "location"),
    "crowd": ("crowd", "crowd_level", "crowdLevel"),
    "feature": ("feature", "features"),
    "radius_m": ("radius_m", "radius", "radiusM"),
    "local_time_iso": ("local_time_iso", "time", "localTime"),
    "lang": ("lang", "ui_lang", "language"),
    "place_type": ("place_type", "placeType"),
    "max_completion_tokens": ("max_completion_tokens", "max_tokens"),
}


def coerce_payload(body: Any) -> Mapping[str, Any]:
    """Turn a raw request body (dict, bytes, JSON string, JSON-in-a-string) into a mapping."""
    for _ in range(3):
        if isinstance(body, Mapping):
            return body
        if isinstance(body, (bytes, bytearray)):
            body = body.decode("utf-8", errors="replace")
        if not isinstance(body, str):
            break
        text = body.strip()
        if not text:
            break
        try:
            body = json.loads(text)
        except (ValueError, RecursionError):
            logger.info("Request body is not JSON; using loose defaults")
            break
    return {}


def _pick(payload: Mapping[str, Any], field: str) -> Any:
    for key in _ALIASES[field]:
        value = payload.get(key)
        if value is not None and value != "":
            return value
    return None


def _as_text(value: Any, limit: int) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (list, tuple)):
        value = " ".join(str(v) for v in value if isinstance(v, (str, int, float)))
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        return None
    text = " ".join(value.split())
    if not text:
        return None
    return text[:limit]


def _as_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            number = float(value)
        elif isinstance(value, str) and value.strip():
            text = value.strip().lower().replace(",", "")
            if text.endswith("km"):
                number = float(text[:-2]) * 1000.0
            elif text.endswith("m"):
                number = float(text[:-1])
            else:
                number = float(text)
        else:
            return None
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def _as_radius(value: Any) -> int:
    number = _as_number(value)
    if number is None or number <= 0:
        return DEFAULT_RADIUS
    return int(min(max(round(number), RADIUS_MIN), RADIUS_MAX))


def parse_local_time(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _as_tokens(value: Any) -> Optional[int]:
    number = _as_number(value)
    if number is None:
        return None
    tokens = int(number)
    if 0 < tokens <= MAX_TOKENS_LIMIT:
        return tokens
    return None


def normalize_input(body: Any) -> CanonicalInput:
    """
    Build a CanonicalInput from an arbitrary request body.

    Never raises: every field that is missing or fails validation is replaced
    by its loose default so downstream stages always receive a total record.
    """
    try:
        payload = coerce_payload(body)
    except Exception:  # malformed input must never reject the request
        logger.exception("Failed to coerce request body; using loose defaults")
        payload = {}

    local_time = _pick(payload, "local_time_iso")
    local_time_iso = local_time.strip() if parse_local_time(local_time) is not None else None

    lang = _as_text(_pick(payload, "lang"), 16)

    return CanonicalInput(
        address=_as_text(_pick(payload, "address"), ADDRESS_MAX) or DEFAULT_ADDRESS,
        crowd=crowd_code(_pick(payload, "crowd")) or DEFAULT_CROWD,
        feature=_as_text(_pick(payload, "feature"), FEATURE_MAX) or DEFAULT_FEATURE,
        radius_m=_as_radius(_pick(payload, "radius_m")),
        local_time_iso=local_time_iso,
        place_hint=_as_text(_pick(payload, "place_type"), FEATURE_MAX),
        lang_hint=lang.lower() if lang else None,
        max_output_tokens=_as_tokens(_pick(payload, "max_completion_tokens")),
    )
