"""Typed get/set/remove over a client-local key-value store."""

import json
import logging
from typing import Any, Callable, Optional, TypeVar

from cidash.persistence.stores import KeyValueStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PersistenceAdapter:
    """
    Narrow persistence port used by the workflow store.

    When no store is available every operation is a no-op and every read
    returns None. Reads never raise: a value that fails to decode is logged,
    its key removed, and None returned. Writes are synchronous and failures
    are logged, never propagated to the interaction that caused them.
    """

    def __init__(self, store: Optional[KeyValueStore] = None):
        self.store = store

    @property
    def available(self) -> bool:
        return self.store is not None

    def get_str(self, key: str) -> Optional[str]:
        if self.store is None:
            return None
        try:
            value = self.store.get(key)
        except Exception as e:
            logger.warning(f"Failed to read persisted key '{key}': {e}")
            return None
        return value or None

    def get_json(self, key: str, parse: Callable[[Any], T]) -> Optional[T]:
        """Decode the JSON value of `key` and pass it through `parse`."""
        raw = self.get_str(key)
        if raw is None:
            return None
        try:
            return parse(json.loads(raw))
        except (ValueError, TypeError) as e:
            logger.warning(f"Discarding malformed persisted value for '{key}': {e}")
            self.remove(key)
            return None

    def get_choice(self, key: str, parse: Callable[[str], T]) -> Optional[T]:
        """Like get_json for plain string values (e.g. an enum member)."""
        raw = self.get_str(key)
        if raw is None:
            return None
        try:
            return parse(raw)
        except (ValueError, TypeError) as e:
            logger.warning(f"Discarding malformed persisted value for '{key}': {e}")
            self.remove(key)
            return None

    def set_str(self, key: str, value: str) -> None:
        if self.store is None:
            return
        try:
            self.store.set(key, value)
        except Exception as e:
            logger.warning(f"Failed to persist key '{key}': {e}")

    def set_json(self, key: str, value: Any) -> None:
        self.set_str(key, json.dumps(value))

    def remove(self, key: str) -> None:
        if self.store is None:
            return
        try:
            self.store.remove(key)
        except Exception as e:
            logger.warning(f"Failed to remove persisted key '{key}': {e}")

    def save_str(self, key: str, value: Optional[str]) -> None:
        """Persist a non-empty value, remove the key otherwise."""
        if value:
            self.set_str(key, value)
        else:
            self.remove(key)

    def save_json(self, key: str, value: Any) -> None:
        """Persist a truthy value as JSON, remove the key otherwise."""
        if value:
            self.set_json(key, value)
        else:
            self.remove(key)
