"""State repository: load/save of the single state document with recovery.

Layout inside the key-value store:
  main key          -> current state (rewritten on every load/save)
  recovery key      -> mirror of the main key, used when main is unparsable
  restore point key -> written only before destructive user actions
  meta key          -> {lastSavedAt, schema, restorePointAt}
  quarantine keys   -> raw corrupt payloads, bounded
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from larder.domain.State import AppState
from larder.events.Event_Bus import EventBus
from larder.events.event_helpers import publish_audit_report, publish_storage_status
from larder.infra.Key_Value_Store import KeyValueStore
from larder.infra.migrations import ensure_state_shape
from larder.logic.audit.integrity import AuditReport, repair_references
from larder.logic.pantry.engine import normalize_pantry, reprice_all_pantry
from larder.logic.shopping.reconcile import RECONCILE_RAISE, normalize_shopping, reconcile_shopping_with_plan
from larder.utilities.backup import QuarantineManager
from larder.utilities.config import QUARANTINE_LIMIT, STRICT_LOGS
from larder.utilities.constants import (
    CURRENT_SCHEMA, META_KEY, RECOVERY_KEY, RESTORE_POINT_KEY, STATUS_EMPTY, STATUS_OK,
    STATUS_RECOVERED, STATUS_RESET, STATUS_WARNING, STORAGE_KEY,
)
from larder.utilities.quantities import new_id as default_new_id
from larder.utilities.quantities import to_iso, utc_now

logger = logging.getLogger(__name__)

__all__ = ['StorageReport', 'StateRepository', 'post_load_repair', 'parse_state_text', 'dump_state']

# Errors that make a save fail without touching the in-memory state
SAVE_ERRORS = (OSError, TypeError, ValueError)


@dataclass
class StorageReport:
    status: str = STATUS_OK
    message: str = ""
    at: Optional[datetime] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status, "message": self.message, "at": to_iso(self.at), "details": dict(self.details)}


def parse_state_text(raw: str) -> Dict[str, Any]:
    """Parse a persisted payload. Raises ValueError when it is not a JSON object."""
    parsed = json.loads(str(raw or ""))
    if not isinstance(parsed, dict):
        raise ValueError(f"State payload is {type(parsed).__name__}, expected an object")
    return parsed


def dump_state(state: AppState, pretty: bool = False) -> str:
    return json.dumps(state.to_dict(), ensure_ascii=False, indent=2 if pretty else None, allow_nan=False)


def post_load_repair(state: AppState, now: datetime, new_id: Callable[[], str] = default_new_id,
                     strict_logs: bool = False) -> AuditReport:
    """Repair pipeline run after every load/save/import:
    references -> pantry merge -> re-pricing -> shopping merge -> plan raise."""
    report = repair_references(state, strict_logs=strict_logs, now=now)
    normalize_pantry(state)
    if reprice_all_pantry(state):
        logger.info("Stale pantry costs re-priced from ingredient prices")
    normalize_shopping(state, new_id)
    reconcile_shopping_with_plan(state, now, new_id, mode=RECONCILE_RAISE)
    return report


class StateRepository:
    def __init__(self, store: KeyValueStore, clock: Callable[[], datetime] = utc_now,
                 new_id: Callable[[], str] = default_new_id, bus: Optional[EventBus] = None,
                 quarantine_limit: int = QUARANTINE_LIMIT, strict_logs: bool = STRICT_LOGS):
        self.store = store
        self.clock = clock
        self.new_id = new_id
        self.bus = bus
        self.strict_logs = strict_logs
        self.quarantine = QuarantineManager(store, quarantine_limit, clock)
        self.last_report = StorageReport()
        self.last_audit: Optional[AuditReport] = None

    # --- Reports ------------------------------------------------------------
    def _set_report(self, status: str, message: str = "", **details) -> StorageReport:
        self.last_report = StorageReport(status=status, message=message, at=self.clock(), details=details)
        publish_storage_status(self.last_report, self.bus)
        return self.last_report

    @property
    def report(self) -> StorageReport:
        return self.last_report

    # --- Pipeline -----------------------------------------------------------
    def shape(self, doc: Any) -> AppState:
        return ensure_state_shape(doc, self.new_id, self.clock())

    def post_load_repair(self, state: AppState) -> AuditReport:
        report = post_load_repair(state, self.clock(), self.new_id, self.strict_logs)
        self.last_audit = report
        publish_audit_report(report, self.bus)
        return report

    def _load_key(self, key: str) -> Optional[AppState]:
        raw = self.store.get(key)
        if not raw:
            return None
        return self.shape(parse_state_text(raw))

    # --- Meta ---------------------------------------------------------------
    def read_meta(self) -> Optional[Dict[str, Any]]:
        raw = self.store.get(META_KEY)
        if not raw:
            return None
        try:
            parsed = json.loads(raw)
        except ValueError:
            logger.warning("Unreadable meta record ignored")
            return None
        return parsed if isinstance(parsed, dict) else None

    def _write_meta(self, **updates):
        meta = self.read_meta() or {}
        meta.update(updates)
        self.store.set(META_KEY, json.dumps(meta))

    def _write_main_and_recovery(self, state: AppState):
        """Write mirror, main and meta as one unit; on failure every key is put back."""
        text = dump_state(state)
        previous = {key: self.store.get(key) for key in (RECOVERY_KEY, STORAGE_KEY, META_KEY)}
        try:
            self.store.set(RECOVERY_KEY, text)
            self.store.set(STORAGE_KEY, text)
            self._write_meta(lastSavedAt=to_iso(self.clock()), schema=CURRENT_SCHEMA)
        except SAVE_ERRORS:
            self._rollback(previous)
            raise

    def _rollback(self, previous: Dict[str, Optional[str]]):
        for key, old in previous.items():
            try:
                if old is None:
                    self.store.remove(key)
                else:
                    self.store.set(key, old)
            except SAVE_ERRORS as e:
                logger.error(f"Rollback of {key} failed: {e}")

    def _persist_after_load(self, state: AppState) -> Optional[str]:
        try:
            self._write_main_and_recovery(state)
        except SAVE_ERRORS as e:
            logger.warning(f"Could not persist loaded state: {e}")
            return str(e)
        return None

    # --- Load / save --------------------------------------------------------
    def load(self) -> AppState:
        """Load the state, falling back to the recovery mirror and then to defaults.

        Never raises for corrupt data; the outcome is in ``self.report``.
        """
        raw = self.store.get(STORAGE_KEY)
        if not raw:
            fresh = self.shape({})
            self.post_load_repair(fresh)
            error = self._persist_after_load(fresh)
            self._set_report(STATUS_EMPTY, "No local data found (fresh start).",
                             **({'persist_error': error} if error else {}))
            logger.info("No stored state, starting fresh")
            return fresh

        try:
            state = self.shape(parse_state_text(raw))
        except (ValueError, TypeError) as e:
            logger.warning(f"Stored state is corrupt: {e}")
            quarantine_key = self._quarantine(raw, str(e))
            return self._load_recovery(str(e), quarantine_key)

        self.post_load_repair(state)
        error = self._persist_after_load(state)
        self._set_report(STATUS_OK, **({'persist_error': error} if error else {}))
        return state

    def _quarantine(self, raw: str, reason: str) -> Optional[str]:
        try:
            return self.quarantine.quarantine(raw, reason)
        except OSError as e:
            logger.error(f"Quarantine failed: {e}")
            return None

    def _load_recovery(self, reason: str, quarantine_key: Optional[str]) -> AppState:
        try:
            recovered = self._load_key(RECOVERY_KEY)
        except (ValueError, TypeError) as e:
            logger.error(f"Recovery mirror is corrupt too: {e}")
            recovered = None

        if recovered is not None:
            self.post_load_repair(recovered)
            self._persist_after_load(recovered)
            self._set_report(STATUS_RECOVERED, "Stored data was corrupt; the recovery copy was loaded.",
                             source="recovery", reason=reason, quarantine_key=quarantine_key)
            logger.warning("State recovered from mirror")
            return recovered

        fresh = self.shape({})
        self.post_load_repair(fresh)
        self._persist_after_load(fresh)
        self._set_report(STATUS_RESET, "Stored data was unreadable (recovery too); a fresh state was created.",
                         source="default", reason=reason, quarantine_key=quarantine_key)
        logger.error("State reset to defaults after unrecoverable corruption")
        return fresh

    def save(self, state: AppState) -> Optional[AppState]:
        """Repair and persist. Returns the persisted state, or None when the save failed."""
        try:
            next_state = self.shape(state.to_dict())
            self.post_load_repair(next_state)
            self._write_main_and_recovery(next_state)
        except SAVE_ERRORS as e:
            logger.warning(f"Save failed: {e}")
            self._set_report(STATUS_WARNING, "Saving failed; changes are kept in memory only.", error=str(e))
            return None
        self._set_report(STATUS_OK)
        return next_state

    def repair(self, state: AppState) -> AppState:
        """Re-run the full pipeline on demand and persist the result."""
        next_state = self.shape(state.to_dict())
        self.post_load_repair(next_state)
        try:
            self._write_main_and_recovery(next_state)
        except SAVE_ERRORS as e:
            logger.warning(f"Repair could not be saved: {e}")
            self._set_report(STATUS_WARNING, "Data was checked but could not be saved.", error=str(e))
            return next_state
        self._set_report(STATUS_OK, "Data was checked and saved.", source="repair")
        return next_state

    # --- Restore point ------------------------------------------------------
    def set_restore_point(self, state: AppState) -> bool:
        try:
            self.store.set(RESTORE_POINT_KEY, dump_state(self.shape(state.to_dict())))
            self._write_meta(restorePointAt=to_iso(self.clock()))
        except SAVE_ERRORS as e:
            logger.warning(f"Restore point not written: {e}")
            return False
        logger.info("Restore point written")
        return True

    def has_restore_point(self) -> bool:
        return bool(self.store.get(RESTORE_POINT_KEY))

    def restore_from_restore_point(self) -> Optional[AppState]:
        """Replace the current state with the restore point; None when there is none."""
        try:
            restored = self._load_key(RESTORE_POINT_KEY)
        except (ValueError, TypeError) as e:
            logger.error(f"Restore point unreadable: {e}")
            self._set_report(STATUS_WARNING, "Restore point is unreadable.", source="restorePoint", error=str(e))
            return None
        if restored is None:
            return None
        self.post_load_repair(restored)
        try:
            self._write_main_and_recovery(restored)
        except SAVE_ERRORS as e:
            logger.warning(f"Restored state could not be saved: {e}")
            self._set_report(STATUS_WARNING, "Restored in memory only; saving failed.", error=str(e))
            return restored
        self._set_report(STATUS_OK, "Restore successful.", source="restorePoint")
        logger.info("State restored from restore point")
        return restored

    # --- Housekeeping -------------------------------------------------------
    def list_quarantines(self) -> List[str]:
        return self.quarantine.list_keys()

    def delete_all_local_data(self) -> None:
        for key in (STORAGE_KEY, RECOVERY_KEY, RESTORE_POINT_KEY, META_KEY):
            self.store.remove(key)
        removed = self.quarantine.clear()
        logger.info(f"All local data deleted ({removed} quarantines)")
