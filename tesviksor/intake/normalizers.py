from __future__ import annotations

import re
from typing import Callable, Dict, Optional

from ..utils import capitalize_first, fold_case, normalize_text
from .schema import SlotValue, ZoneStatus

# Order matters: only the first suffix found at the end is stripped.
PROVINCE_SUFFIXES = ("'da", "'de", " da", " de", " ta", " te", " ili")

# Markers are written in folded form (see normalize_text). Stems match at the
# start of a word so inflections like "içindeyiz" or "dışındadır" count; words
# match whole so "yok" does not fire inside "yoksa".
INSIDE_STEMS = (
    "icinde",
    "icerisinde",
    "osbde",
    "evet",
    "inside",
    "organize sanayi",
    "organize bolge",
)
INSIDE_WORDS = ("ici", "osb de")
OUTSIDE_STEMS = (
    "disinda",
    "disarida",
    "disarisi",
    "degil",
    "hayir",
    "outside",
)
OUTSIDE_WORDS = ("disi", "yok")


def _marker_pattern(stems, words) -> re.Pattern:
    parts = [r"\b" + re.escape(stem) for stem in stems]
    parts += [r"\b" + re.escape(word) + r"\b" for word in words]
    return re.compile("|".join(parts))


INSIDE_RE = _marker_pattern(INSIDE_STEMS, INSIDE_WORDS)
OUTSIDE_RE = _marker_pattern(OUTSIDE_STEMS, OUTSIDE_WORDS)


def normalize_province(text: str) -> str:
    """Purpose: Turn a free-text province answer into a canonical province name.
    Inputs/Outputs: Input is the raw utterance; output is the province string.
    Side Effects / State: None; pure function.
    Dependencies: Uses fold_case for case-insensitive suffix matching.
    Failure Modes: Empty input returns an empty string (not usable as a slot).
    If Removed: "Ankara'da" would be stored verbatim as the province.
    Testing Notes: "Ankara'da" -> "Ankara", "izmir ili" -> "Izmir", "Bursa" -> "Bursa".
    """
    trimmed = (text or "").strip().replace("’", "'")
    folded = fold_case(trimmed)
    result = trimmed
    for suffix in PROVINCE_SUFFIXES:
        if folded.endswith(suffix):
            result = trimmed[: len(trimmed) - len(suffix)].strip()
            break
    if not result:
        result = trimmed
    return capitalize_first(result)


def normalize_district(text: str) -> str:
    """Trim and capitalize a district answer; empty input stays empty."""
    trimmed = (text or "").strip()
    if not trimmed:
        return trimmed
    return capitalize_first(trimmed)


def normalize_sector(text: str) -> str:
    # Sector is free text; the generation service interprets it later.
    return (text or "").strip()


def parse_zone_status(text: str) -> Optional[ZoneStatus]:
    """Purpose: Classify an OSB answer as inside or outside the zone.
    Inputs/Outputs: Input is the raw utterance; output is a ZoneStatus or None.
    Side Effects / State: None; pure function.
    Dependencies: Uses normalize_text and the closed INSIDE/OUTSIDE marker patterns.
    Failure Modes: Returns None when no marker matches so the caller re-prompts.
    If Removed: The OSB slot can never be filled and sessions never complete.
    Testing Notes: "OSB içinde" -> INSIDE, "OSB DISINDA" -> OUTSIDE, "belki" -> None.
    """
    folded = normalize_text(text)
    # Negations win: "OSB içinde değil" is outside.
    if OUTSIDE_RE.search(folded):
        return ZoneStatus.OUTSIDE
    if INSIDE_RE.search(folded):
        return ZoneStatus.INSIDE
    return None


SLOT_NORMALIZERS: Dict[str, Callable[[str], Optional[SlotValue]]] = {
    "sector": normalize_sector,
    "province": normalize_province,
    "district": normalize_district,
    "osb_status": parse_zone_status,
}


def extract_slot_value(slot: str, text: str) -> Optional[SlotValue]:
    """Apply the slot's normalizer and return None when the result is unusable."""
    value = SLOT_NORMALIZERS[slot](text)
    if value is None or value == "":
        return None
    return value
