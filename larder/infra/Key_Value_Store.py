"""Key-value storage backends holding one raw text payload per key."""

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

__all__ = ['KeyValueStore', 'JsonFileStore', 'MemoryStore']


class KeyValueStore(ABC):
    """Minimal local storage contract. ``set`` raises ``OSError`` when the write fails."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        ...

    @abstractmethod
    def keys(self) -> List[str]:
        ...


class JsonFileStore(KeyValueStore):
    """One ``<key>.json`` file per key inside ``directory``.

    Writes go to a temp file in the same directory and are moved into place
    with ``os.replace``, so a key is either fully written or left unchanged.
    """

    SUFFIX = '.json'

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}{self.SUFFIX}"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        with open(path, 'r', encoding='utf-8', errors='replace') as f:
            return f.read()

    def set(self, key: str, value: str) -> None:
        fd, tmp = tempfile.mkstemp(prefix=f".{key}.", suffix='.tmp', dir=self.directory)
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(value)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self._path(key))
        except OSError:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def remove(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()

    def keys(self) -> List[str]:
        return sorted(p.name[:-len(self.SUFFIX)] for p in self.directory.glob(f"*{self.SUFFIX}"))

    def __repr__(self) -> str:
        return f"JsonFileStore({self.directory})"


class MemoryStore(KeyValueStore):
    """In-process store. ``quota`` (characters across all keys) simulates a full disk."""

    def __init__(self, initial: Optional[Dict[str, str]] = None, quota: Optional[int] = None):
        self.data: Dict[str, str] = dict(initial) if initial else {}
        self.quota = quota

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"MemoryStore values must be str, got {type(value).__name__}")
        if self.quota is not None:
            used = sum(len(v) for k, v in self.data.items() if k != key)
            if used + len(value) > self.quota:
                raise OSError(f"Storage quota exceeded writing {key!r}")
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)

    def keys(self) -> List[str]:
        return sorted(self.data.keys())
