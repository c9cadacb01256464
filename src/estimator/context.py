from __future__ import annotations

import re
from typing import Iterable, Optional, Sequence, Tuple

from estimator.normalizer import parse_local_time
from estimator.types import CanonicalInput, Context

__all__ = [
    "classify",
    "detect_place_type",
    "detect_time_slot",
    "detect_nationality_filter",
    "detect_target_lang",
]


def _keyword_pattern(words: Iterable[str]) -> re.Pattern[str]:
    parts = []
    for word in words:
        escaped = re.escape(word)
        # ASCII words need boundaries ("park" must not match "parking").
        parts.append(rf"\b{escaped}\b" if word.isascii() else escaped)
    return re.compile("|".join(parts), re.IGNORECASE)


# First match wins, so the order here is the detection priority.
_PLACE_PATTERNS: Sequence[Tuple[str, re.Pattern[str]]] = (
    ("station", _keyword_pattern((
        "駅", "改札", "station", "stations", "subway", "metro", "train", "platform",
    ))),
    ("airport", _keyword_pattern(("空港", "airport", "airports", "departure lounge"))),
    ("mall", _keyword_pattern((
        "ショッピングモール", "モール", "百貨店", "デパート", "商業施設", "アウトレット",
        "mall", "shopping center", "shopping centre", "department store", "outlet",
    ))),
    ("park", _keyword_pattern(("公園", "庭園", "緑地", "park", "garden", "gardens"))),
    ("residential", _keyword_pattern((
        "住宅", "住宅街", "マンション", "団地", "住んでいる", "residential", "apartment",
        "apartments", "housing", "residents", "neighborhood", "neighbourhood",
    ))),
    ("office", _keyword_pattern((
        "オフィス", "オフィス街", "ビジネス街", "会社", "office", "offices", "business district",
        "workplace", "headquarters",
    ))),
    ("school", _keyword_pattern((
        "学校", "大学", "高校", "中学校", "小学校", "キャンパス", "school", "university",
        "college", "campus",
    ))),
    ("tourist_site", _keyword_pattern((
        "観光", "観光地", "神社", "寺院", "お寺", "城跡", "天守", "名所", "博物館", "tourist", "tourists",
        "sightseeing", "temple", "shrine", "castle", "landmark", "museum",
    ))),
)

_FOREIGNER_PATTERN = _keyword_pattern((
    "外国人", "訪日", "インバウンド", "海外", "外国籍", "留学生",
    "foreigner", "foreigners", "foreign", "international", "overseas", "inbound",
    "non-japanese", "non japanese", "expat", "expats",
))
_JAPANESE_PATTERN = _keyword_pattern((
    "日本人", "邦人", "国内客", "japanese", "japanese people", "japanese nationals",
))

_CJK_PATTERN = re.compile(r"[\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uff66-\uff9f]")

# (slot, hours) checked in order; the night range wraps midnight.
_SLOT_HOURS: Sequence[Tuple[str, Tuple[int, ...]]] = (
    ("morning_commute", (7, 8, 9)),
    ("lunch", (11, 12, 13)),
    ("evening_commute", (17, 18, 19, 20)),
    ("night", (22, 23, 0, 1, 2, 3, 4)),
    ("early_morning", (5, 6)),
    ("daytime", (10, 11, 12, 13, 14, 15, 16)),
)


def detect_place_type(*texts: Optional[str]) -> str:
    haystack = " ".join(t for t in texts if t)
    for place_type, pattern in _PLACE_PATTERNS:
        if pattern.search(haystack):
            return place_type
    return "generic"


def slot_for_hour(hour: int) -> str:
    for slot, hours in _SLOT_HOURS:
        if hour in hours:
            return slot
    return "other"


def detect_time_slot(local_time_iso: Optional[str]) -> Tuple[str, Optional[int]]:
    """Return (time_slot, weekday) using the wall-clock time as written in the ISO string."""
    moment = parse_local_time(local_time_iso)
    if moment is None:
        return "unknown", None
    return slot_for_hour(moment.hour), moment.weekday()


def detect_nationality_filter(feature: str) -> str:
    # Foreigner terms first: "non-japanese" also contains "japanese".
    if _FOREIGNER_PATTERN.search(feature or ""):
        return "foreigner_only"
    if _JAPANESE_PATTERN.search(feature or ""):
        return "japanese_only"
    return "all"


def _lang_from_hint(hint: Optional[str]) -> Optional[str]:
    if not hint:
        return None
    value = hint.strip().lower()
    if value.startswith("ja") or value in ("jp", "日本語"):
        return "ja"
    if value.startswith("en") or value == "english":
        return "en"
    return None


def _lang_from_header(accept_language: Optional[str]) -> Optional[str]:
    if not accept_language:
        return None
    first = accept_language.split(",")[0].split(";")[0]
    return _lang_from_hint(first)


def detect_target_lang(inp: CanonicalInput, accept_language: Optional[str] = None) -> str:
    explicit = _lang_from_hint(inp.lang_hint)
    if explicit:
        return explicit
    from_header = _lang_from_header(accept_language)
    if from_header:
        return from_header
    fields = (inp.address, inp.feature, inp.place_hint or "")
    if any(_CJK_PATTERN.search(f) for f in fields):
        return "ja"
    return "en"


def classify(inp: CanonicalInput, accept_language: Optional[str] = None) -> Context:
    time_slot, weekday = detect_time_slot(inp.local_time_iso)
    place_type = detect_place_type(inp.place_hint) if inp.place_hint else "generic"
    if place_type == "generic":
        place_type = detect_place_type(inp.address, inp.feature)
    return Context(
        place_type=place_type,
        time_slot=time_slot,
        weekday=weekday,
        weekend=weekday is not None and weekday >= 5,
        nationality_filter=detect_nationality_filter(inp.feature),
        target_lang=detect_target_lang(inp, accept_language),
    )
