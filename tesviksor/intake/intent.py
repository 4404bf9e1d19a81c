from __future__ import annotations

from typing import Iterable, Optional

from ..utils import normalize_text

# Matched after folding (see normalize_text), so "TESVIK", "teşvik" and
# "Teşvik" are the same term.
DEFAULT_KEYWORDS = (
    "teşvik",
    "yatırım",
    "sektör",
    "üretim",
    "üretece",
    "imalat",
    "fabrika",
    "tesis kur",
    "destek",
    "hibe",
    "kdv istisna",
    "gümrük muafiyet",
    # Product nouns seen often in incentive questions.
    "çorap",
    "tekstil",
    "konfeksiyon",
    "mobilya",
    "seracılık",
    "güneş enerjisi",
)


def should_start_collection(message: str, keywords: Optional[Iterable[str]] = None) -> bool:
    """Purpose: Decide whether a user message should open slot collection.
    Inputs/Outputs: Inputs are the latest user utterance and an optional keyword set;
        output is True when any folded keyword occurs as a substring.
    Side Effects / State: None; pure function.
    Dependencies: Uses normalize_text; called by IntakeController.decide.
    Failure Modes: Empty messages return False; no scoring or negation handling.
    If Removed: Intake sessions are never created and every turn bypasses.
    Testing Notes: "Çorap üretimi yapacağım" -> True, "TESVIK" -> True, "Merhaba" -> False.
    """
    folded = normalize_text(message)
    if not folded:
        return False
    terms = keywords if keywords else DEFAULT_KEYWORDS
    for term in terms:
        folded_term = normalize_text(term)
        if folded_term and folded_term in folded:
            return True
    return False
