from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable


def load_prompt(prompt_path: Path) -> str:
    """Purpose: Load a prompt file as UTF-8 text and strip BOM if present.
    Inputs/Outputs: Input is a Path to the prompt file; output is the decoded string.
    Side Effects / State: None; pure function reading the filesystem.
    Dependencies: Uses Path.read_text/read_bytes; used by InstructionComposer.
    Failure Modes: Missing files raise FileNotFoundError; UnicodeDecodeError triggers
        a tolerant decode that drops invalid bytes.
    If Removed: Instruction templates cannot be loaded and the composer fails.
    Testing Notes: Validate BOM-stripping and fallback decoding on non-UTF8 files.
    """
    try:
        text = prompt_path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        text = prompt_path.read_bytes().decode("utf-8", errors="ignore")
    return text.lstrip("\ufeff").strip()


def load_prompts(prompts_dir: Path, names: Iterable[str]) -> Dict[str, str]:
    """Load several ``<name>.txt`` templates from one directory."""
    return {name: load_prompt(prompts_dir / f"{name}.txt") for name in names}
