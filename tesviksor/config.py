from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

BASE_DIR = Path(__file__).resolve().parent


@dataclass(frozen=True)
class Settings:
    """Configuration container for models, storage paths, and intake behaviour."""
    gemini_api_key: str
    gemini_model: str
    data_dir: Path
    knowledge_dir: Path
    prompts_dir: Path
    default_corpus_id: str
    intake_keywords: Tuple[str, ...]
    retrieval_topk: int
    support_badge_enabled: bool
    generation_temperature: float


def load_settings() -> Settings:
    """Purpose: Load configuration from environment variables and defaults.
    Inputs/Outputs: No inputs; returns a Settings instance.
    Side Effects / State: Reads environment variables and filesystem paths.
    Dependencies: Uses os.getenv and BASE_DIR for default paths.
    Failure Modes: Invalid RETRIEVAL_TOPK/GENERATION_TEMPERATURE values raise ValueError.
    If Removed: App cannot configure models/storage and fails at startup.
    Testing Notes: Verify defaults and overrides via environment variables.
    """
    data_dir = os.getenv("DATA_DIR")
    knowledge_dir = os.getenv("KNOWLEDGE_DIR")

    return Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
        data_dir=Path(data_dir) if data_dir else (BASE_DIR / "data").resolve(),
        knowledge_dir=Path(knowledge_dir) if knowledge_dir else (BASE_DIR / ".." / "knowledge").resolve(),
        prompts_dir=(BASE_DIR / "prompts").resolve(),
        default_corpus_id=os.getenv("DEFAULT_CORPUS_ID", "tesvik"),
        intake_keywords=_parse_keywords(os.getenv("INTAKE_KEYWORDS", "")),
        retrieval_topk=int(os.getenv("RETRIEVAL_TOPK", "6")),
        support_badge_enabled=os.getenv("SUPPORT_BADGE_ENABLED", "1") != "0",
        generation_temperature=float(os.getenv("GENERATION_TEMPERATURE", "0.7")),
    )


def _parse_keywords(raw: str) -> Tuple[str, ...]:
    # Empty tuple means "use the detector's built-in list".
    return tuple(part.strip() for part in raw.split(",") if part.strip())
