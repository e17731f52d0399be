"""
Crawl Metrics Tracking Module

Module to collect and emit structured logging of crawl statistics.

This module defines the CrawlStats class, which keeps counters for:
  - requests enqueued: start requests and follow-ups pushed to the queue
  - places accepted: results admitted by the crawl budget
  - places rejected: results discarded because a budget was exhausted
  - duplicates skipped: accepted results already exported once
  - crawls failed: requests whose page crawler raised

Counters are incremented from many worker threads, so every update goes
through `increment()` which holds the instance lock.

Usage:

    ```python
    stats = CrawlStats()
    stats.increment("places_accepted")
    stats.log_metrics()
    ```
"""

import threading
from typing import Dict

from . import logger
from ..errors import StateStoreError

STATS_KEY = "STATS"


class CrawlStats:
    """Track crawl counters"""

    FIELDS = (
        "requests_enqueued",
        "places_accepted",
        "places_rejected",
        "duplicates_skipped",
        "crawls_failed",
    )

    def __init__(self, store=None):
        self._lock = threading.Lock()
        self._store = store
        self._counts: Dict[str, int] = {field: 0 for field in self.FIELDS}

    def increment(self, field: str, by: int = 1) -> None:
        if field not in self._counts:
            raise KeyError(f"Unknown stats field: {field}")
        with self._lock:
            self._counts[field] += by

    def get(self, field: str) -> int:
        with self._lock:
            return self._counts[field]

    def to_dict(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counts)

    def initialize(self) -> None:
        if self._store is None:
            return
        try:
            saved = self._store.get_value(STATS_KEY)
        except StateStoreError as e:
            logger.warning(f"Stats unreadable, starting from zero: {str(e)}", extra={
                "operation": "load_stats",
                "error": str(e),
                "status": "recovered"
            })
            return
        if saved:
            with self._lock:
                for field in self.FIELDS:
                    self._counts[field] = int(saved.get(field, 0))

    def persist(self) -> None:
        if self._store is not None:
            self._store.set_value(STATS_KEY, self.to_dict())

    def log_metrics(self):
        """Log current crawl metrics"""
        counts = self.to_dict()
        seen = counts["places_accepted"] + counts["places_rejected"]
        logger.info("Crawl Metrics Summary", extra={
            "metrics": {
                **counts,
                "acceptance_ratio": round(counts["places_accepted"] / max(1, seen), 2)
            }
        })
