"""Simple Event Bus / Observer implementation for state and storage notifications.

Event names used so far:
  state.committed -> payload {"state": AppState, "message": str}
  storage.status  -> payload StorageReport
  audit.report    -> payload AuditReport

Subscribers are callables taking (event_name, payload).
"""
from __future__ import annotations
import logging
from collections import defaultdict
from typing import Callable, Any, Dict, List

logger = logging.getLogger(__name__)

# --- Event name constants (used across modules) ---
STATE_COMMITTED = "state.committed"
STORAGE_STATUS = "storage.status"
AUDIT_REPORT = "audit.report"


class EventBus:
	def __init__(self):
		self._subscribers: Dict[str, List[Callable[[str, Any], None]]] = defaultdict(list)

	def subscribe(self, event_name: str, callback: Callable[[str, Any], None]):
		if callback not in self._subscribers[event_name]:
			self._subscribers[event_name].append(callback)

	def unsubscribe(self, event_name: str, callback: Callable[[str, Any], None]):
		try:
			self._subscribers[event_name].remove(callback)
		except (ValueError, KeyError):
			pass

	def publish(self, event_name: str, payload: Any):
		for cb in list(self._subscribers.get(event_name, [])):
			try:
				cb(event_name, payload)
			except Exception:
				# A failing subscriber never blocks the others
				logger.exception("Error delivering %s to %r", event_name, cb)


# A singleton-like instance used by the CLI
GLOBAL_EVENT_BUS = EventBus()


__all__ = [
	'EventBus', 'GLOBAL_EVENT_BUS',
	'STATE_COMMITTED', 'STORAGE_STATUS', 'AUDIT_REPORT'
]
