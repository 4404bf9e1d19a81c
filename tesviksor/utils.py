import re
import unicodedata

_TURKISH_LOWER = str.maketrans({"I": "ı", "İ": "i"})
_CASE_FOLD = str.maketrans({"I": "i", "İ": "i", "ı": "i"})


def turkish_lower(text: str) -> str:
    """Purpose: Lower-case text using Turkish dotted/dotless i rules.
    Inputs/Outputs: Input is a raw string; output is the lower-cased string.
    Side Effects / State: None; pure function.
    Dependencies: Used by normalize_text before the dotless i is folded.
    Failure Modes: Returns an empty string for falsy input.
    If Removed: "İZMİR" lower-cases with a stray combining dot above the i.
    Testing Notes: "İZMİR" -> "izmir", "IĞDIR" -> "ığdır".
    """
    if not text:
        return ""
    return text.translate(_TURKISH_LOWER).lower()


def fold_case(text: str) -> str:
    """Purpose: Produce a length-preserving case fold for suffix comparison.
    Inputs/Outputs: Input is a raw string; output has every i variant folded to "i".
    Side Effects / State: None; pure function.
    Dependencies: Used by normalize_province to compare endings.
    Failure Modes: Returns an empty string for falsy input.
    If Removed: Upper-case inputs like "İZMİR İLİ" keep their suffix.
    Testing Notes: len(fold_case(x)) == len(x) for Turkish place names.
    """
    # Dotted capital I lower-cases to two code points; map it first.
    if not text:
        return ""
    return text.translate(_CASE_FOLD).lower()


def capitalize_first(text: str) -> str:
    """Upper-case the first character and leave the rest untouched."""
    if not text:
        return text
    return text[0].upper() + text[1:]


def normalize_text(text: str) -> str:
    """Purpose: Normalize free-form Turkish text for stable keyword matching.
    Inputs/Outputs: Input is a raw string; output is a lowercase ASCII-only string with
        diacritics removed and whitespace collapsed.
    Side Effects / State: None; pure function.
    Dependencies: Uses unicodedata and regex; called by corpus retrieval, the intent
        detector and the zone-status parser.
    Failure Modes: Returns an empty string when input is falsy.
    If Removed: Retrieval scoring misses "tesvik" vs "teşvik" spellings.
    Testing Notes: "Teşvik Belgesi" -> "tesvik belgesi".
    """
    if not text:
        return ""
    lowered = turkish_lower(text).replace("ı", "i")
    decomposed = unicodedata.normalize("NFD", lowered)
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    cleaned = re.sub(r"[^a-z0-9\s\-_/._]+", " ", stripped)
    return re.sub(r"\s+", " ", cleaned).strip()
