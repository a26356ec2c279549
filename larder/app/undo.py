"""Single-slot undo with a time window, checked lazily against the clock."""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from larder.utilities.config import UNDO_SECONDS
from larder.utilities.quantities import utc_now


@dataclass
class UndoSlot:
    # AppState attribute name -> cloned value to put back
    snapshot: Dict[str, Any]
    message: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class UndoManager:
    def __init__(self, clock: Callable[[], datetime] = utc_now, window_seconds: float = UNDO_SECONDS):
        self.clock = clock
        self.window = timedelta(seconds=window_seconds)
        self._slot: Optional[UndoSlot] = None

    def set(self, snapshot: Dict[str, Any], message: str) -> UndoSlot:
        """Replace any pending slot; it expires ``window_seconds`` from now."""
        self._slot = UndoSlot(snapshot=snapshot, message=message, expires_at=self.clock() + self.window)
        return self._slot

    def peek(self) -> Optional[UndoSlot]:
        """The pending slot, or None once its window has passed."""
        if self._slot is not None and self._slot.is_expired(self.clock()):
            self._slot = None
        return self._slot

    def take(self) -> Optional[UndoSlot]:
        slot = self.peek()
        self._slot = None
        return slot

    def clear(self):
        self._slot = None

    def seconds_left(self) -> float:
        slot = self.peek()
        if slot is None:
            return 0.0
        return max(0.0, (slot.expires_at - self.clock()).total_seconds())
