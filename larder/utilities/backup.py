"""
Quarantine of corrupt state payloads.
Unparsable documents are kept verbatim under timestamped keys for diagnosis;
only the most recent ones are retained.
"""
import logging
from datetime import datetime
from typing import Callable, List

from larder.infra.Key_Value_Store import KeyValueStore
from larder.utilities.config import QUARANTINE_LIMIT
from larder.utilities.constants import QUARANTINE_PREFIX
from larder.utilities.quantities import utc_now

logger = logging.getLogger(__name__)


class QuarantineManager:
    """Bounded ring buffer of raw corrupt payloads inside a key-value store."""

    def __init__(self, store: KeyValueStore, limit: int = QUARANTINE_LIMIT,
                 clock: Callable[[], datetime] = utc_now, prefix: str = QUARANTINE_PREFIX):
        self.store = store
        self.limit = max(1, int(limit))
        self.clock = clock
        self.prefix = prefix

    def quarantine(self, raw: str, reason: str = "") -> str:
        """Store a corrupt payload and trim the oldest ones. Returns the new key."""
        stamp = int(self.clock().timestamp() * 1000)
        key = f"{self.prefix}{stamp:013d}"
        existing = set(self.list_keys())
        n = 1
        while key in existing:
            key = f"{self.prefix}{stamp:013d}_{n}"
            n += 1
        self.store.set(key, str(raw or ""))
        logger.warning(f"Corrupt payload quarantined as {key}: {reason}")
        self._cleanup_old()
        return key

    def _cleanup_old(self):
        """Remove old quarantines, keeping only the most recent ones."""
        keys = self.list_keys()
        for key in keys[:-self.limit]:
            self.store.remove(key)
            logger.info(f"Removed old quarantine: {key}")

    def list_keys(self) -> List[str]:
        return sorted(k for k in self.store.keys() if k.startswith(self.prefix))

    def clear(self) -> int:
        keys = self.list_keys()
        for key in keys:
            self.store.remove(key)
        return len(keys)
