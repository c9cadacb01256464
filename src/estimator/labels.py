"""Bilingual label tables.

Crowd levels are translated here and only here: the normalizer maps any
accepted spelling to the internal code, and output text maps codes back to a
display label in the target language.
"""
from __future__ import annotations

from typing import Dict, Mapping, Optional, Sequence

__all__ = ["crowd_code", "crowd_label", "place_label", "slot_label", "nationality_label"]

# code -> (ja label, en label, extra aliases)
_CROWD_TABLE: Mapping[str, Mapping[str, Sequence[str] | str]] = {
    "empty": {
        "ja": "空いている",
        "en": "empty",
        "aliases": (
            "空き", "空いてる", "すいている", "すいてる", "閑散", "ガラガラ", "少ない",
            "quiet", "sparse", "low", "not crowded", "empty",
        ),
    },
    "normal": {
        "ja": "普通",
        "en": "normal",
        "aliases": ("ふつう", "通常", "やや混雑", "medium", "moderate", "average", "regular", "normal"),
    },
    "crowded": {
        "ja": "混雑",
        "en": "crowded",
        "aliases": (
            "混雑している", "混んでいる", "混んでる", "混み", "満員", "多い",
            "busy", "packed", "high", "crowded", "very crowded",
        ),
    },
}


def _build_reverse() -> Dict[str, str]:
    reverse: Dict[str, str] = {}
    for code, entry in _CROWD_TABLE.items():
        reverse[code] = code
        reverse[str(entry["ja"])] = code
        reverse[str(entry["en"])] = code
        for alias in entry["aliases"]:
            reverse[alias.lower()] = code
    return reverse


_CROWD_REVERSE = _build_reverse()


def crowd_code(value: object) -> Optional[str]:
    """Map any accepted spelling to the internal crowd code, or None."""
    if not isinstance(value, str):
        return None
    key = value.strip().lower()
    if not key:
        return None
    return _CROWD_REVERSE.get(key)


def crowd_label(code: str, lang: str) -> str:
    entry = _CROWD_TABLE.get(code, _CROWD_TABLE["normal"])
    return str(entry["ja" if lang == "ja" else "en"])


_PLACE_LABELS: Mapping[str, Mapping[str, str]] = {
    "station": {"ja": "駅", "en": "station"},
    "airport": {"ja": "空港", "en": "airport"},
    "mall": {"ja": "商業施設", "en": "shopping mall"},
    "park": {"ja": "公園", "en": "park"},
    "residential": {"ja": "住宅街", "en": "residential area"},
    "office": {"ja": "オフィス街", "en": "office district"},
    "school": {"ja": "学校", "en": "school"},
    "tourist_site": {"ja": "観光地", "en": "tourist site"},
    "generic": {"ja": "一般的な市街地", "en": "generic urban area"},
}

_SLOT_LABELS: Mapping[str, Mapping[str, str]] = {
    "morning_commute": {"ja": "朝の通勤時間帯", "en": "morning commute"},
    "lunch": {"ja": "昼食時間帯", "en": "lunch time"},
    "evening_commute": {"ja": "夕方の帰宅時間帯", "en": "evening commute"},
    "night": {"ja": "深夜帯", "en": "night"},
    "early_morning": {"ja": "早朝", "en": "early morning"},
    "daytime": {"ja": "日中", "en": "daytime"},
    "other": {"ja": "その他の時間帯", "en": "other hours"},
    "unknown": {"ja": "時刻不明", "en": "unknown time"},
}

_NATIONALITY_LABELS: Mapping[str, Mapping[str, str]] = {
    "all": {"ja": "国籍を限定しない", "en": "no nationality restriction"},
    "japanese_only": {"ja": "日本人のみ", "en": "Japanese nationals only"},
    "foreigner_only": {"ja": "外国人のみ", "en": "foreign nationals only"},
}


def _lookup(table: Mapping[str, Mapping[str, str]], key: str, lang: str) -> str:
    entry = table.get(key)
    if entry is None:
        return key
    return entry["ja" if lang == "ja" else "en"]


def place_label(place_type: str, lang: str) -> str:
    return _lookup(_PLACE_LABELS, place_type, lang)


def slot_label(time_slot: str, lang: str) -> str:
    return _lookup(_SLOT_LABELS, time_slot, lang)


def nationality_label(nationality_filter: str, lang: str) -> str:
    return _lookup(_NATIONALITY_LABELS, nationality_filter, lang)
