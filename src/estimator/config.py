"""
Estimator configuration.

All tuning constants (densities, band multipliers, timeouts) are read from the
environment once at process start. None of them is a fixed contract: the
defaults come from calibration runs and can be overridden per deployment.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

__all__ = ["EstimatorConfig", "DEFAULT_DENSITIES", "BAND_VARIANTS", "WORLD_POPULATION"]

# people / km2; a station is calibrated at ~12.5x a park.
DEFAULT_DENSITIES: Mapping[str, float] = {
    "station": 5000.0,
    "airport": 3000.0,
    "mall": 4500.0,
    "park": 400.0,
    "residential": 4000.0,
    "office": 4500.0,
    "school": 2500.0,
    "tourist_site": 3500.0,
    "generic": 2000.0,
}

BAND_VARIANTS: Mapping[str, Tuple[float, float]] = {
    "default": (0.5, 2.0),
    "strict": (0.6, 1.8),
}

DEFAULT_MODEL = "gpt-5-mini"
DEFAULT_TIMEOUT_S = 25.0
DEFAULT_MAX_TOKENS = 400
MAX_TOKENS_LIMIT = 4000

# Hard ceiling for any count, however large the circle.
WORLD_POPULATION = 8_100_000_000


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(float(raw))
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _sanitize_band(low: float, high: float) -> Tuple[float, float]:
    fallback = BAND_VARIANTS["default"]
    if not (0 < low <= 1.0):
        logger.warning("Band low multiplier %s out of (0, 1], using %s", low, fallback[0])
        low = fallback[0]
    if high < 1.0:
        logger.warning("Band high multiplier %s below 1, using %s", high, fallback[1])
        high = fallback[1]
    return low, high


@dataclass(frozen=True)
class EstimatorConfig:
    api_key: Optional[str] = None
    model: str = DEFAULT_MODEL
    base_url: Optional[str] = None
    timeout_s: float = DEFAULT_TIMEOUT_S
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = 1.0
    json_mode: bool = True
    band_low: float = BAND_VARIANTS["default"][0]
    band_high: float = BAND_VARIANTS["default"][1]
    densities: Mapping[str, float] = field(default_factory=lambda: dict(DEFAULT_DENSITIES))

    @property
    def has_llm(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_env(cls) -> "EstimatorConfig":
        variant = (os.getenv("ESTIMATE_BAND") or "default").strip().lower()
        if variant not in BAND_VARIANTS:
            logger.warning("Unknown ESTIMATE_BAND=%r, using default band", variant)
            variant = "default"
        low, high = BAND_VARIANTS[variant]
        low = _env_float("ESTIMATE_BAND_LOW", low)
        high = _env_float("ESTIMATE_BAND_HIGH", high)
        low, high = _sanitize_band(low, high)

        max_tokens = _env_int("ESTIMATE_MAX_TOKENS", DEFAULT_MAX_TOKENS)
        if not (0 < max_tokens <= MAX_TOKENS_LIMIT):
            max_tokens = DEFAULT_MAX_TOKENS

        timeout_s = _env_float("ESTIMATE_TIMEOUT_S", DEFAULT_TIMEOUT_S)
        if timeout_s <= 0:
            timeout_s = DEFAULT_TIMEOUT_S

        return cls(
            api_key=os.getenv("OPENAI_API_KEY") or None,
            model=os.getenv("OPENAI_MODEL") or DEFAULT_MODEL,
            base_url=os.getenv("OPENAI_BASE_URL") or None,
            timeout_s=timeout_s,
            max_tokens=max_tokens,
            temperature=_env_float("ESTIMATE_TEMPERATURE", 1.0),
            json_mode=_env_bool("ESTIMATE_JSON_MODE", True),
            band_low=low,
            band_high=high,
        )
