"""In-memory request queue shared by the enqueuer and the crawl workers."""

import threading
from collections import deque
from typing import Deque, Optional, Set

from .models import CrawlRequest


class RequestQueue:
    """FIFO of crawl requests, idempotent on `unique_key`."""

    def __init__(self):
        self._lock = threading.Lock()
        self._pending: Deque[CrawlRequest] = deque()
        self._seen: Set[str] = set()
        self._in_progress = 0
        self._handled = 0

    def add_request(self, request: CrawlRequest) -> bool:
        """Queue `request`. Returns False when its unique key was queued before."""
        with self._lock:
            if request.unique_key in self._seen:
                return False
            self._seen.add(request.unique_key)
            self._pending.append(request)
            return True

    def fetch_next(self) -> Optional[CrawlRequest]:
        with self._lock:
            if not self._pending:
                return None
            self._in_progress += 1
            return self._pending.popleft()

    def mark_handled(self, request: CrawlRequest) -> None:
        with self._lock:
            self._in_progress = max(0, self._in_progress - 1)
            self._handled += 1

    def is_empty(self) -> bool:
        with self._lock:
            return not self._pending

    def is_finished(self) -> bool:
        with self._lock:
            return not self._pending and self._in_progress == 0

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    @property
    def handled_count(self) -> int:
        with self._lock:
            return self._handled

    @property
    def total_count(self) -> int:
        with self._lock:
            return len(self._seen)
