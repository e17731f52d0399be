"""
Crawl Budget Module
-------------------

Admission control for a crawl: caps how many places are accepted per logical
search (a search term, a start URL, or the no-search sentinel) and in total.

Every worker asks `try_accept()` before keeping a place. The check and the
increment happen under one lock, so two workers can never both see the last
free slot and both take it. The same goes for `try_enqueue()`, which admits
follow-up requests against a second set of counters.

Counts are persisted under MAX-CRAWLED-PLACES-STATE periodically and on
shutdown. A restarted run resumes from them so a cap is never silently doubled;
unreadable counts restart from zero instead.
"""

import threading
from collections import defaultdict
from typing import Dict, Optional

from ..errors import BudgetPersistenceError, StateStoreError
from ..utils import logger

BUDGET_KEY = "MAX-CRAWLED-PLACES-STATE"


class CrawlBudgetTracker:

    def __init__(self, max_total: int, max_per_search: int, store=None):
        if max_total < 0 or max_per_search < 0:
            raise ValueError("Crawl caps cannot be negative")
        self.max_total = max_total
        self.max_per_search = max_per_search
        self.store = store

        self._lock = threading.Lock()
        self._accepted_total = 0
        self._accepted: Dict[str, int] = defaultdict(int)
        self._enqueued_total = 0
        self._enqueued: Dict[str, int] = defaultdict(int)

    # -------------------------------------------------- Persistence ---------------------------------------------------------

    def _load(self) -> Optional[dict]:
        try:
            state = self.store.get_value(BUDGET_KEY)
        except StateStoreError as e:
            raise BudgetPersistenceError(str(e)) from e
        if state is None:
            return None

        try:
            parsed = {
                "accepted_total": int(state["accepted_total"]),
                "accepted_per_search": {str(k): int(v) for k, v in state["accepted_per_search"].items()},
                "enqueued_total": int(state.get("enqueued_total", 0)),
                "enqueued_per_search": {str(k): int(v) for k, v in state.get("enqueued_per_search", {}).items()},
            }
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise BudgetPersistenceError(f"Malformed crawl budget state: {e}") from e

        counts = [parsed["accepted_total"], parsed["enqueued_total"],
                  *parsed["accepted_per_search"].values(), *parsed["enqueued_per_search"].values()]
        if any(count < 0 for count in counts):
            raise BudgetPersistenceError("Crawl budget state contains negative counts")
        return parsed

    def initialize(self) -> None:
        """Resume counts persisted by an earlier attempt of this run."""
        if self.store is None:
            return
        try:
            state = self._load()
        except BudgetPersistenceError as e:
            logger.warning(f"Crawl budget counts unreadable, resuming from zero: {str(e)}", extra={
                "operation": "load_crawl_budget",
                "error": str(e),
                "status": "recovered"
            })
            state = None

        if state is None:
            return

        with self._lock:
            self._accepted_total = state["accepted_total"]
            self._accepted = defaultdict(int, state["accepted_per_search"])
            self._enqueued_total = state["enqueued_total"]
            self._enqueued = defaultdict(int, state["enqueued_per_search"])

        logger.info("Resumed crawl budget counts", extra={
            "operation": "load_crawl_budget",
            "accepted_total": state["accepted_total"],
            "searches": len(state["accepted_per_search"]),
            "status": "resumed"
        })

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "accepted_total": self._accepted_total,
                "accepted_per_search": dict(self._accepted),
                "enqueued_total": self._enqueued_total,
                "enqueued_per_search": dict(self._enqueued),
            }

    def persist(self) -> None:
        if self.store is None:
            return
        self.store.set_value(BUDGET_KEY, self.snapshot())

    # -------------------------------------------------- Admission ---------------------------------------------------------

    def try_accept(self, search_id: str) -> bool:
        """Take one accepted-result slot for `search_id`. False when either cap is reached."""
        with self._lock:
            if self._accepted_total >= self.max_total or self._accepted[search_id] >= self.max_per_search:
                return False
            self._accepted[search_id] += 1
            self._accepted_total += 1
            return True

    def try_enqueue(self, search_id: str) -> bool:
        """Take one enqueue slot for `search_id`, used to admit follow-up requests."""
        with self._lock:
            if (self._accepted_total >= self.max_total
                    or self._accepted[search_id] >= self.max_per_search
                    or self._enqueued_total >= self.max_total
                    or self._enqueued[search_id] >= self.max_per_search):
                return False
            self._enqueued[search_id] += 1
            self._enqueued_total += 1
            return True

    # -------------------------------------------------- Queries ---------------------------------------------------------

    def is_finished(self, search_id: str) -> bool:
        with self._lock:
            return (self._accepted.get(search_id, 0) >= self.max_per_search
                    or self._accepted_total >= self.max_total)

    def is_globally_finished(self) -> bool:
        with self._lock:
            return self._accepted_total >= self.max_total

    def accepted(self, search_id: str) -> int:
        with self._lock:
            return self._accepted.get(search_id, 0)

    def enqueued(self, search_id: str) -> int:
        with self._lock:
            return self._enqueued.get(search_id, 0)

    @property
    def accepted_total(self) -> int:
        with self._lock:
            return self._accepted_total
