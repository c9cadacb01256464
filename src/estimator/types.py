from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

__all__ = [
    "CROWD_LEVELS",
    "PLACE_TYPES",
    "TIME_SLOTS",
    "NATIONALITY_FILTERS",
    "CanonicalInput",
    "Context",
    "BaselineEstimate",
    "EstimateResult",
]

CROWD_LEVELS = ("empty", "normal", "crowded")

# Ordered by detection priority; "generic" is the fallback.
PLACE_TYPES = (
    "station",
    "airport",
    "mall",
    "park",
    "residential",
    "office",
    "school",
    "tourist_site",
    "generic",
)

TIME_SLOTS = (
    "morning_commute",
    "lunch",
    "evening_commute",
    "night",
    "early_morning",
    "daytime",
    "other",
    "unknown",
)

NATIONALITY_FILTERS = ("all", "japanese_only", "foreigner_only")

MAX_ASSUMPTIONS = 8
MAX_NOTES = 10


@dataclass(frozen=True)
class CanonicalInput:
    address: str
    crowd: str
    feature: str
    radius_m: int
    local_time_iso: Optional[str] = None
    place_hint: Optional[str] = None
    lang_hint: Optional[str] = None
    max_output_tokens: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "crowd": self.crowd,
            "feature": self.feature,
            "radius_m": self.radius_m,
            "local_time_iso": self.local_time_iso,
        }


@dataclass(frozen=True)
class Context:
    place_type: str
    time_slot: str
    weekday: Optional[int]
    weekend: bool
    nationality_filter: str
    target_lang: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "place_type": self.place_type,
            "time_slot": self.time_slot,
            "weekday": self.weekday,
            "weekend": self.weekend,
            "nationality_filter": self.nationality_filter,
            "target_lang": self.target_lang,
        }


@dataclass(frozen=True)
class BaselineEstimate:
    """Locally computed order-of-magnitude expectation plus its plausibility band."""

    expected: float
    area_km2: float
    base_density: float
    time_factor: float
    crowd_factor: float
    nationality_factor: float
    place_type: str
    time_slot: str
    band_low: float
    band_high: float
    ceiling: Optional[float] = None

    @property
    def lower_bound(self) -> float:
        return self.expected * self.band_low

    @property
    def upper_bound(self) -> float:
        upper = self.expected * self.band_high
        if self.ceiling is not None:
            upper = min(upper, self.ceiling)
        return upper

    def to_dict(self) -> Dict[str, Any]:
        return {
            "expected": round(self.expected, 2),
            "area_km2": round(self.area_km2, 6),
            "base_density": self.base_density,
            "time_factor": self.time_factor,
            "crowd_factor": self.crowd_factor,
            "nationality_factor": self.nationality_factor,
            "place_type": self.place_type,
            "time_slot": self.time_slot,
            "band": [self.band_low, self.band_high],
            "ceiling": self.ceiling,
        }


@dataclass
class EstimateResult:
    count: int
    confidence: float
    range_min: int
    range_max: int
    assumptions: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "confidence": round(self.confidence, 3),
            "range": {"min": self.range_min, "max": self.range_max},
            "assumptions": list(self.assumptions[:MAX_ASSUMPTIONS]),
            "notes": list(self.notes[-MAX_NOTES:]),
        }
