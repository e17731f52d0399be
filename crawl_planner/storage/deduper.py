"""Tracks which place identifiers were already exported so a restarted run does not emit them twice."""

import threading
from typing import Callable, Optional, Set

from ..errors import StateStoreError
from ..utils import logger
from .checkpoint import KeyValueStore

DEDUP_KEY = "EXPORT-URLS-DEDUP"


class ExportDeduper:

    def __init__(self, store: KeyValueStore):
        self.store = store
        self._emitted: Set[str] = set()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._emitted)

    def initialize(self) -> None:
        try:
            saved = self.store.get_value(DEDUP_KEY, default=[])
            emitted = set(saved)
        except (StateStoreError, TypeError) as e:
            logger.warning(f"Export dedup state unreadable, starting empty: {str(e)}", extra={
                "operation": "load_export_dedup",
                "error": str(e),
                "status": "recovered"
            })
            emitted = set()
        with self._lock:
            self._emitted = emitted

    def try_emit(self, key: str, admit: Optional[Callable[[], bool]] = None) -> bool:
        """
        Mark `key` as emitted. False when it already was, or when `admit()` declines it.

        `admit` runs under the deduper lock: a duplicate never reaches it, and a
        key it declines is not marked, so it can be offered again later.
        """
        with self._lock:
            if key in self._emitted:
                return False
            if admit is not None and not admit():
                return False
            self._emitted.add(key)
            return True

    def persist(self) -> None:
        with self._lock:
            emitted = sorted(self._emitted)
        self.store.set_value(DEDUP_KEY, emitted)


class NullDeduper:
    """Duplicate-free export turned off: everything may be emitted."""

    def __len__(self) -> int:
        return 0

    def initialize(self) -> None:
        pass

    def try_emit(self, key: str, admit: Optional[Callable[[], bool]] = None) -> bool:
        return admit() if admit is not None else True

    def persist(self) -> None:
        pass


def create_deduper(enabled: bool, store: Optional[KeyValueStore] = None):
    if not enabled:
        return NullDeduper()
    if store is None:
        raise ValueError("A store is required for duplicate-free export")
    return ExportDeduper(store)
