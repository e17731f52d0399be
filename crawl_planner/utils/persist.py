"""
Periodic state persistence.

Components that hold resumable state (crawl budget, places cache, export
deduper, stats) register a persist callback; the timer calls every callback each
`interval` seconds from a daemon thread, and once more when stopped so a
graceful shutdown always leaves the latest counts on disk.
"""

import threading
from typing import Callable, List, Optional, Tuple

from ..config import PERSIST_INTERVAL_SECS
from . import logger


class PersistTimer:

    def __init__(self, interval: float = PERSIST_INTERVAL_SECS):
        self.interval = interval
        self._callbacks: List[Tuple[str, Callable[[], None]]] = []
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def register(self, name: str, callback: Callable[[], None]) -> None:
        self._callbacks.append((name, callback))

    def persist_all(self) -> int:
        """Run every callback once. Returns how many failed; a failure never stops the others."""
        failures = 0
        for name, callback in self._callbacks:
            try:
                callback()
            except Exception as e:
                failures += 1
                logger.error(f"Failed to persist {name}: {str(e)}", extra={
                    "operation": "persist_state",
                    "component": name,
                    "error": str(e),
                    "status": "error"
                })
        return failures

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            self.persist_all()

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="persist-timer", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        self.persist_all()
