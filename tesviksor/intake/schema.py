"""Slot schema for the incentive-intake dialogue.

An intake session collects four slots in a fixed order:

    sector -> province -> district -> osb_status

Invariants held by every code path that touches a session:
    - a later slot is never set while an earlier one is unset;
    - a set slot is never cleared or overwritten;
    - status == COMPLETED if and only if all four slots are set.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional, Union


class IntakeStatus(str, Enum):
    COLLECTING = "collecting"
    COMPLETED = "completed"


class ZoneStatus(str, Enum):
    """Whether the investment site is inside an Organized Industrial Zone (OSB)."""
    INSIDE = "INSIDE"
    OUTSIDE = "OUTSIDE"


SLOT_ORDER = ("sector", "province", "district", "osb_status")

SLOT_LABELS = {
    "sector": "Sektör",
    "province": "İl",
    "district": "İlçe",
    "osb_status": "OSB durumu",
}

SlotValue = Union[str, ZoneStatus]


@dataclass
class IntakeSession:
    """Slot-filling progress for one chat conversation."""
    session_id: Optional[str]
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: IntakeStatus = IntakeStatus.COLLECTING
    sector: Optional[str] = None
    province: Optional[str] = None
    district: Optional[str] = None
    osb_status: Optional[ZoneStatus] = None
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    def get_slot(self, name: str) -> Optional[SlotValue]:
        if name not in SLOT_ORDER:
            raise KeyError(name)
        return getattr(self, name)

    def is_slot_set(self, name: str) -> bool:
        value = self.get_slot(name)
        return value is not None and value != ""

    def next_missing_slot(self) -> Optional[str]:
        """Return the first unset slot in fixed order, or None when all are set."""
        for name in SLOT_ORDER:
            if not self.is_slot_set(name):
                return name
        return None

    def known_slots(self) -> Dict[str, SlotValue]:
        return {name: self.get_slot(name) for name in SLOT_ORDER if self.is_slot_set(name)}

    def with_slot(self, name: str, value: SlotValue) -> "IntakeSession":
        """Return a copy with one more slot set; the receiver is left untouched."""
        if self.is_slot_set(name):
            raise ValueError(f"slot {name} is already set")
        if self.next_missing_slot() != name:
            raise ValueError(f"slot {name} is out of order")
        return replace(self, **{name: value})

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "status": self.status.value,
            "sector": self.sector,
            "province": self.province,
            "district": self.district,
            "osb_status": self.osb_status.value if self.osb_status else None,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "IntakeSession":
        osb_status = data.get("osb_status")
        return cls(
            id=str(data["id"]),
            session_id=data.get("session_id"),
            status=IntakeStatus(data.get("status", IntakeStatus.COLLECTING.value)),
            sector=data.get("sector") or None,
            province=data.get("province") or None,
            district=data.get("district") or None,
            osb_status=ZoneStatus(osb_status) if osb_status else None,
            created_at=float(data.get("created_at", 0.0)),
            updated_at=float(data.get("updated_at", 0.0)),
        )


class DecisionKind(str, Enum):
    START_COLLECTION = "start_collection"
    SLOT_FILLED = "slot_filled"
    NO_SLOT_EXTRACTED = "no_slot_extracted"
    BYPASS = "bypass"
    HANDOFF = "handoff"


@dataclass
class TurnDecision:
    """Per-turn controller output. Never persisted.

    ``reply`` is set only for deterministic outcomes (SLOT_FILLED and
    NO_SLOT_EXTRACTED); the other kinds are answered by the generation service.
    ``session`` is the post-decision snapshot and carries no uncommitted
    provisional values.
    """
    kind: DecisionKind
    session: Optional[IntakeSession] = None
    reply: Optional[str] = None
    slot: Optional[str] = None
    value: Optional[SlotValue] = None
    completed: bool = False
    provisional_sector: Optional[str] = None

    @property
    def is_deterministic(self) -> bool:
        return self.reply is not None

    def describe(self) -> List[str]:
        parts = [f"kind={self.kind.value}"]
        if self.slot:
            parts.append(f"slot={self.slot}")
        if self.completed:
            parts.append("completed=true")
        return parts
