from __future__ import annotations

import json
import logging
import threading
import time
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from .intake.schema import SLOT_ORDER, IntakeSession, IntakeStatus, SlotValue, ZoneStatus

logger = logging.getLogger("tesviksor.store")


class SessionStoreError(Exception):
    """Raised when the intake session file cannot be read or written."""


class IntakeSessionStore:
    """Persistent store of intake sessions keyed by chat session identifier."""

    def __init__(self, path: Optional[Path] = None) -> None:
        """Purpose: Initialize the store, optionally backed by a JSON file.
        Inputs/Outputs: Input is an optional file path; no return value.
        Side Effects / State: Creates the parent directory of the file when given.
        Dependencies: Uses IntakeSession.to_dict/from_dict for (de)serialization.
        Failure Modes: Directory creation errors propagate at startup.
        If Removed: Slot progress is lost between chat turns.
        Testing Notes: Use tmp_path for file-backed tests and None for memory-only.
        """
        # Without a path rows live in memory only.
        self._path = path
        self._lock = threading.Lock()
        self._rows: List[Dict[str, object]] = []
        if self._path:
            self._path.parent.mkdir(parents=True, exist_ok=True)

    def _read_rows(self) -> List[Dict[str, object]]:
        """Purpose: Read all rows from disk so several workers share one file.
        Inputs/Outputs: Reads self._path; returns a list of row dicts.
        Side Effects / State: Refreshes the in-memory row cache.
        Dependencies: json.loads and Path.read_text.
        Failure Modes: IO and JSON decode errors raise SessionStoreError.
        If Removed: Each process sees only its own writes.
        Testing Notes: Corrupt JSON should raise SessionStoreError.
        """
        if not self._path:
            return self._rows
        if not self._path.exists():
            self._rows = []
            return self._rows
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise SessionStoreError(f"cannot read {self._path}: {exc}") from exc
        rows = data.get("intake_sessions", []) if isinstance(data, dict) else []
        self._rows = [row for row in rows if isinstance(row, dict) and row.get("id")]
        return self._rows

    def _persist(self) -> None:
        """Purpose: Write the row cache to disk atomically.
        Inputs/Outputs: Writes to self._path; no return value.
        Side Effects / State: Replaces the JSON file via a temporary file.
        Dependencies: Uses json.dumps and Path.replace.
        Failure Modes: IO errors raise SessionStoreError.
        If Removed: Slot writes are never saved across requests.
        Testing Notes: Ensure the file contains every row after a write.
        """
        if not self._path:
            return
        payload = {"intake_sessions": self._rows}
        tmp_path = self._path.with_suffix(".tmp")
        try:
            tmp_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
            tmp_path.replace(self._path)
        except OSError as exc:
            raise SessionStoreError(f"cannot write {self._path}: {exc}") from exc

    def _latest_row(self, session_id: str, status: Optional[IntakeStatus] = None) -> Optional[Dict[str, object]]:
        candidates = [
            row
            for row in self._read_rows()
            if row.get("session_id") == session_id and (status is None or row.get("status") == status.value)
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda row: float(row.get("created_at", 0.0)))

    def _find_row(self, record_id: str) -> Optional[Dict[str, object]]:
        for row in self._read_rows():
            if row.get("id") == record_id:
                return row
        return None

    def load_active_session(self, session_id: Optional[str]) -> Optional[IntakeSession]:
        """Purpose: Return the most recent collecting session for a chat session.
        Inputs/Outputs: Input is session_id (may be None); output is IntakeSession or None.
        Side Effects / State: Re-reads the backing file.
        Dependencies: Uses _latest_row.
        Failure Modes: Raises SessionStoreError on read failures.
        If Removed: The controller cannot resume slot collection.
        Testing Notes: A completed session must not be returned.
        """
        if not session_id:
            return None
        with self._lock:
            row = self._latest_row(session_id, IntakeStatus.COLLECTING)
            return IntakeSession.from_dict(row) if row else None

    def load_latest_session(self, session_id: Optional[str]) -> Optional[IntakeSession]:
        """Return the most recently created session of any status, or None."""
        if not session_id:
            return None
        with self._lock:
            row = self._latest_row(session_id)
            return IntakeSession.from_dict(row) if row else None

    def create_session(self, session_id: str) -> IntakeSession:
        """Purpose: Insert a new collecting session with every slot unset.
        Inputs/Outputs: Input is session_id; output is the stored IntakeSession.
        Side Effects / State: Appends a row and persists the file.
        Dependencies: Uses IntakeSession defaults and _persist.
        Failure Modes: Raises SessionStoreError on IO errors.
        If Removed: Slot collection cannot start for identified callers.
        Testing Notes: New sessions start in collecting with no slots.
        """
        session = IntakeSession(session_id=session_id)
        with self._lock:
            self._read_rows()
            self._rows.append(session.to_dict())
            self._persist()
        logger.info("session=%s intake=%s created", session_id, session.id)
        return session

    def update_slots(self, session: IntakeSession, slots: Mapping[str, SlotValue]) -> List[str]:
        """Purpose: Conditionally set slots that are still unset in the stored row.
        Inputs/Outputs: Inputs are the session and a partial slot mapping; output is the
            list of slot names actually written.
        Side Effects / State: Mutates the stored row and persists when anything changed.
        Dependencies: Uses SLOT_ORDER to keep fill order; _persist for durability.
        Failure Modes: Raises SessionStoreError on IO errors; unknown or missing rows,
            completed rows, set fields and out-of-order fields are skipped.
        If Removed: A racing duplicate turn could overwrite an answered slot.
        Testing Notes: Calling twice with the same field leaves the row unchanged.
        """
        written: List[str] = []
        with self._lock:
            row = self._find_row(session.id)
            if row is None or row.get("status") != IntakeStatus.COLLECTING.value:
                return written
            for name in SLOT_ORDER:
                if name not in slots:
                    continue
                if row.get(name):
                    continue
                if any(not row.get(earlier) for earlier in SLOT_ORDER[: SLOT_ORDER.index(name)]):
                    logger.warning("intake=%s slot=%s skipped out of order", session.id, name)
                    break
                value = slots[name]
                if value is None or value == "":
                    break
                row[name] = value.value if isinstance(value, ZoneStatus) else value
                written.append(name)
            if written:
                row["updated_at"] = time.time()
                self._persist()
        return written

    def mark_completed(self, session: IntakeSession) -> bool:
        """Purpose: Mark a session completed once every slot is set.
        Inputs/Outputs: Input is the session; output is True when the status changed.
        Side Effects / State: Mutates the stored row and persists.
        Dependencies: Uses SLOT_ORDER to verify completeness.
        Failure Modes: Raises SessionStoreError on IO errors; incomplete rows are left
            collecting and a warning is logged.
        If Removed: Sessions never leave collecting and never hand off.
        Testing Notes: Incomplete sessions stay collecting.
        """
        with self._lock:
            row = self._find_row(session.id)
            if row is None or row.get("status") == IntakeStatus.COMPLETED.value:
                return False
            if not all(row.get(name) for name in SLOT_ORDER):
                logger.warning("intake=%s not completed, slots missing", session.id)
                return False
            row["status"] = IntakeStatus.COMPLETED.value
            row["updated_at"] = time.time()
            self._persist()
        logger.info("session=%s intake=%s completed", session.session_id, session.id)
        return True
