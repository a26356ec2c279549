"""Diagnostics observer for storage and audit reports.

Subscribes to an EventBus for:
  - storage.status
  - audit.report

and keeps the last report of each kind plus a lightweight in-memory ring
buffer of recent reports, each with an auto-increment integer id (cursor) so
callers can ask only for newer entries (since=<last_id_seen>).
"""
from __future__ import annotations
from typing import List, Dict, Any, Optional
from threading import Lock

from .Event_Bus import EventBus, STORAGE_STATUS, AUDIT_REPORT

MAX_EVENTS = 100


class DiagnosticsObserver:
    def __init__(self, max_events: int = MAX_EVENTS):
        self._lock = Lock()
        self._events: List[Dict[str, Any]] = []
        self._next_id = 1
        self.max_events = max_events
        self.last_storage_report = None
        self.last_audit_report = None
        self._bus: Optional[EventBus] = None

    def _record(self, event_name: str, payload: Any):  # signature expected by EventBus
        with self._lock:
            if event_name == STORAGE_STATUS:
                self.last_storage_report = payload
            elif event_name == AUDIT_REPORT:
                self.last_audit_report = payload
            evt = {'id': self._next_id, 'type': event_name}
            if hasattr(payload, 'to_dict'):
                evt.update(payload.to_dict())
            self._events.append(evt)
            self._next_id += 1
            # Trim buffer
            if len(self._events) > self.max_events:
                del self._events[: len(self._events) - self.max_events]

    def start(self, bus: EventBus) -> "DiagnosticsObserver":
        """Idempotent start: subscribe once."""
        if self._bus is bus:
            return self
        bus.subscribe(STORAGE_STATUS, self._record)
        bus.subscribe(AUDIT_REPORT, self._record)
        self._bus = bus
        return self

    def stop(self):
        if self._bus is None:
            return
        self._bus.unsubscribe(STORAGE_STATUS, self._record)
        self._bus.unsubscribe(AUDIT_REPORT, self._record)
        self._bus = None

    def get_events(self, since: Optional[int] = None) -> Dict[str, Any]:
        """Return reports newer than 'since' (exclusive) plus next_cursor."""
        with self._lock:
            if since is None:
                data = list(self._events)
            else:
                data = [e for e in self._events if e['id'] > since]
            next_cursor = self._events[-1]['id'] if self._events else since or 0
        return {'events': data, 'next_cursor': next_cursor}

    def snapshot(self) -> Dict[str, Any]:
        """Last storage status and last audit report, for display."""
        storage = self.last_storage_report
        audit = self.last_audit_report
        return {
            'storage': storage.to_dict() if storage is not None else None,
            'audit': audit.to_dict() if audit is not None else None,
        }


__all__ = ['DiagnosticsObserver', 'MAX_EVENTS']
