from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

from ..prompt_loader import load_prompts
from .schema import SLOT_LABELS, DecisionKind, IntakeSession, TurnDecision, ZoneStatus

TEMPLATE_NAMES = ("general", "collection", "calculation")

ZONE_LABELS = {
    ZoneStatus.INSIDE: "OSB içi",
    ZoneStatus.OUTSIDE: "OSB dışı",
}


class InstructionComposer:
    """Select and fill the system instruction handed to the generation service."""

    def __init__(self, prompts_dir: Path) -> None:
        """Purpose: Load the three instruction templates once.
        Inputs/Outputs: Input is the prompts directory; no return value.
        Side Effects / State: Reads general/collection/calculation .txt files.
        Dependencies: Uses load_prompts.
        Failure Modes: Missing templates raise FileNotFoundError at startup.
        If Removed: Generated turns have no behavioural brief.
        Testing Notes: Point at the packaged prompts dir and compose each decision kind.
        """
        self._templates: Dict[str, str] = load_prompts(prompts_dir, TEMPLATE_NAMES)

    def compose(self, decision: TurnDecision) -> str:
        """Purpose: Map a decision and its session snapshot to an instruction string.
        Inputs/Outputs: Input is a TurnDecision; output is the system instruction.
        Side Effects / State: None; templates are already in memory.
        Dependencies: Uses the loaded templates and SLOT_LABELS.
        Failure Modes: Deterministic decisions still get a collection brief when a
            collecting snapshot is attached; decisions without a session get the
            general brief.
        If Removed: The generation service cannot tell collection from calculation turns.
        Testing Notes: START_COLLECTION lists the provisional sector and asks for province.
        """
        session = decision.session
        if decision.kind == DecisionKind.BYPASS or session is None:
            return self._templates["general"]
        if decision.kind == DecisionKind.HANDOFF:
            return self._compose_calculation(session)
        return self._compose_collection(session, decision.provisional_sector)

    def _compose_collection(self, session: IntakeSession, provisional_sector: Optional[str]) -> str:
        known = {SLOT_LABELS[name]: _display(value) for name, value in session.known_slots().items()}
        next_slot = session.next_missing_slot()
        if provisional_sector and next_slot == "sector":
            known[SLOT_LABELS["sector"]] = f"{provisional_sector} (kullanıcının ilk mesajından)"
            next_slot = "province"
        known_lines = "\n".join(f"- {label}: {value}" for label, value in known.items()) or "- (henüz yok)"
        return self._templates["collection"].format(
            known_slots=known_lines,
            next_slot=SLOT_LABELS.get(next_slot, "-") if next_slot else "-",
        )

    def _compose_calculation(self, session: IntakeSession) -> str:
        return self._templates["calculation"].format(
            sector=_display(session.sector),
            province=_display(session.province),
            district=_display(session.district),
            osb_status=_display(session.osb_status),
        )


def _display(value: object) -> str:
    if isinstance(value, ZoneStatus):
        return ZONE_LABELS[value]
    return str(value) if value else "-"
