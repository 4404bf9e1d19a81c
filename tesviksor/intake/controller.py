"""Incentive-intake dialogue controller.

Role:
    Decides, once per chat turn, whether the conversation is collecting the four
    investment slots or should be answered in open-ended mode. Every turn runs in
    two phases:

    decide(session_id, utterance) -> TurnDecision
        Reads session state only. The reply for deterministic outcomes is fixed
        here, before anything is written.
    commit(decision)
        Applies the writes implied by the decision. Called by the chat handler
        after the turn's reply is known.

States and transitions:
    NoSession  + intent match   -> START_COLLECTION (session created on commit)
    NoSession  + no match       -> BYPASS
    Collecting + usable value   -> SLOT_FILLED (next prompt or completion ack)
    Collecting + unusable value -> NO_SLOT_EXTRACTED (same prompt again)
    Completed                   -> HANDOFF
    Store read failure          -> BYPASS

The utterance that opens a session is never parsed as a slot answer in the
same turn: the first question is asked by that turn's reply. It is kept as a
provisional sector and written on commit so the next turn starts at province.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Tuple

from ..session_store import IntakeSessionStore, SessionStoreError
from .intent import should_start_collection
from .normalizers import extract_slot_value
from .schema import DecisionKind, IntakeSession, IntakeStatus, TurnDecision

logger = logging.getLogger("tesviksor.intake")

SLOT_PROMPTS = {
    "sector": "Hangi sektörde yatırım yapmayı planlıyorsunuz?",
    "province": "Yatırımı hangi ilde yapmayı planlıyorsunuz?",
    "district": "Yatırım hangi ilçede olacak?",
    "osb_status": "Yatırım yeriniz Organize Sanayi Bölgesi (OSB) içinde mi, dışında mı?",
}
COMPLETION_REPLY = (
    "Teşekkürler, gerekli tüm bilgileri aldım. Teşvik hesaplamasına hazırım; "
    "sorunuzu iletebilirsiniz."
)


class IntakeController:
    """Slot-filling state machine for incentive-intake sessions."""

    def __init__(self, store: IntakeSessionStore, keywords: Optional[Iterable[str]] = None) -> None:
        self._store = store
        self._keywords = tuple(keywords) if keywords else None

    def decide(self, session_id: Optional[str], utterance: str) -> TurnDecision:
        """Purpose: Compute this turn's decision without writing anything.
        Inputs/Outputs: Inputs are the chat session id (may be None) and the latest
            user utterance; output is a TurnDecision.
        Side Effects / State: Reads the session store; store read errors are logged.
        Dependencies: Uses should_start_collection, extract_slot_value, SLOT_PROMPTS.
        Failure Modes: Store read failures degrade to BYPASS, even for trigger messages,
            so an unreadable store never opens a second session.
        If Removed: The chat handler cannot route turns between intake and RAG.
        Testing Notes: Drive multi-turn scenarios and check the slot invariants.
        """
        session, read_failed = self._load_state(session_id)

        if read_failed:
            decision = TurnDecision(kind=DecisionKind.BYPASS)
        elif session is not None and session.status == IntakeStatus.COMPLETED:
            decision = TurnDecision(kind=DecisionKind.HANDOFF, session=session)
        elif session is not None:
            decision = self._decide_collecting(session, utterance)
        elif should_start_collection(utterance, self._keywords):
            decision = TurnDecision(
                kind=DecisionKind.START_COLLECTION,
                session=IntakeSession(session_id=session_id),
                provisional_sector=utterance.strip() or None,
            )
        else:
            decision = TurnDecision(kind=DecisionKind.BYPASS)

        logger.info("session=%s %s", session_id, " ".join(decision.describe()))
        return decision

    def _load_state(self, session_id: Optional[str]) -> Tuple[Optional[IntakeSession], bool]:
        # (collecting session, else the latest completed one, else None; read failed)
        if not session_id:
            return None, False
        try:
            active = self._store.load_active_session(session_id)
            if active is not None:
                return active, False
            latest = self._store.load_latest_session(session_id)
        except SessionStoreError as exc:
            logger.warning("session=%s store read failed, bypassing intake: %s", session_id, exc)
            return None, True
        if latest is not None and latest.status == IntakeStatus.COMPLETED:
            return latest, False
        return None, False

    def _decide_collecting(self, session: IntakeSession, utterance: str) -> TurnDecision:
        slot = session.next_missing_slot()
        if slot is None:
            # All slots set but the completion write was lost; finish it on commit.
            return TurnDecision(
                kind=DecisionKind.SLOT_FILLED,
                session=session,
                reply=COMPLETION_REPLY,
                completed=True,
            )

        if slot == "sector":
            # The provisional sector from the opening turn never landed.
            value = utterance.strip() or None
        else:
            value = extract_slot_value(slot, utterance)

        if value is None:
            return TurnDecision(
                kind=DecisionKind.NO_SLOT_EXTRACTED,
                session=session,
                reply=SLOT_PROMPTS[slot],
                slot=slot,
            )

        updated = session.with_slot(slot, value)
        next_slot = updated.next_missing_slot()
        if next_slot is None:
            updated.status = IntakeStatus.COMPLETED
            reply = COMPLETION_REPLY
        else:
            reply = SLOT_PROMPTS[next_slot]
        logger.debug("intake=%s slot=%s value=%s", session.id, slot, value)
        return TurnDecision(
            kind=DecisionKind.SLOT_FILLED,
            session=updated,
            reply=reply,
            slot=slot,
            value=value,
            completed=next_slot is None,
        )

    def commit(self, decision: TurnDecision) -> None:
        """Purpose: Apply the writes implied by a decision after the reply is computed.
        Inputs/Outputs: Input is a TurnDecision; no return value.
        Side Effects / State: Creates sessions, fills slots, and marks completion.
        Dependencies: Uses IntakeSessionStore create/update/mark operations.
        Failure Modes: Store write errors are logged; the next turn re-derives state.
        If Removed: Slot answers are never remembered and every turn restarts.
        Testing Notes: A START_COLLECTION commit without a session id writes nothing.
        """
        session = decision.session
        if session is None or not session.session_id:
            return
        try:
            if decision.kind == DecisionKind.START_COLLECTION:
                self._commit_start(session.session_id, decision.provisional_sector)
            elif decision.kind == DecisionKind.SLOT_FILLED:
                if decision.slot is not None:
                    self._store.update_slots(session, {decision.slot: decision.value})
                if decision.completed:
                    self._store.mark_completed(session)
        except SessionStoreError as exc:
            logger.warning(
                "session=%s store write failed for %s: %s", session.session_id, decision.kind.value, exc
            )

    def _commit_start(self, session_id: str, provisional_sector: Optional[str]) -> None:
        created = self._store.create_session(session_id)
        if not provisional_sector:
            return
        # Best effort: a lost sector write is recovered by the next turn's fallback.
        try:
            self._store.update_slots(created, {"sector": provisional_sector})
        except SessionStoreError as exc:
            logger.warning("session=%s provisional sector not saved: %s", session_id, exc)
