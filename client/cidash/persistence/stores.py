"""Client-local key-value stores backing the persistence adapter."""

import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional, Protocol, Union

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """String keys to string values, durable or not."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStore:
    """Store used when no durable storage is available."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data.keys())


class JsonFileStore:
    """
    Durable store kept as one JSON object in a file.

    The file is read once on first access and rewritten on every mutation.
    A missing or unreadable file starts the store empty.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()
        self._data: Optional[Dict[str, str]] = None

    def _load(self) -> Dict[str, str]:
        if self._data is not None:
            return self._data

        self._data = {}
        if not self.path.exists():
            return self._data

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable state file {self.path}: {e}")
            return self._data

        if not isinstance(raw, dict):
            logger.warning(f"Ignoring state file {self.path}: top level is not an object")
            return self._data

        self._data = {str(k): v for k, v in raw.items() if isinstance(v, str)}
        return self._data

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(self._load(), indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp_path, self.path)

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        self._load()[key] = value
        self._flush()

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._flush()


def create_store(state_file: Optional[str]) -> Optional[KeyValueStore]:
    """Durable store for `state_file`, or None when durable storage is disabled."""
    if not state_file:
        return None
    return JsonFileStore(state_file)
