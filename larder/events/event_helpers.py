"""Event helper utilities.

This module provides helper functions for publishing core events on an
event bus (the global one unless a bus is passed).

Quick import:
    from larder.events.event_helpers import (
        publish_state_committed, publish_storage_status, publish_audit_report,
        STATE_COMMITTED, STORAGE_STATUS, AUDIT_REPORT
    )

"""
from __future__ import annotations
from typing import Any, Optional
from .Event_Bus import (
    EventBus, GLOBAL_EVENT_BUS,
    STATE_COMMITTED, STORAGE_STATUS, AUDIT_REPORT,
)

__all__ = [
    'publish_state_committed', 'publish_storage_status', 'publish_audit_report',
    'STATE_COMMITTED', 'STORAGE_STATUS', 'AUDIT_REPORT',
]


def _bus(bus: Optional[EventBus]) -> EventBus:
    return bus if bus is not None else GLOBAL_EVENT_BUS


def publish_state_committed(state: Any, message: str = "", bus: Optional[EventBus] = None):
    """Publish a state.committed event after a mutation was persisted."""
    _bus(bus).publish(STATE_COMMITTED, {
        'state': state,
        'message': message,
    })


def publish_storage_status(report: Any, bus: Optional[EventBus] = None):
    """Publish the latest load/save report (status ok|empty|recovered|reset|warning)."""
    _bus(bus).publish(STORAGE_STATUS, report)


def publish_audit_report(report: Any, bus: Optional[EventBus] = None):
    """Publish the result of a reference repair run."""
    _bus(bus).publish(AUDIT_REPORT, report)
