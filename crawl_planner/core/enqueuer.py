"""
Background Enqueueing Module
----------------------------

Streams a (possibly huge) list of start requests into the shared queue without
holding up the rest of the run. A small first batch is pushed synchronously so
workers have something to do straight away; the rest is pushed from a
background thread while workers are already draining the queue.

Before each push the crawl budget is consulted: requests of a logical search
that already reached its cap are skipped, and the whole activity stops once
every search is finished or a stop is requested. Queue pushes are retried a
few times; a request that still cannot be pushed is dropped and logged.
"""

import threading
import time
from typing import List, Optional, Sequence

from ..config import FIRST_BATCH_SIZE, MAX_PUSH_RETRIES, RETRY_DELAY
from ..errors import QueuePushError
from ..utils import logger
from .budget import CrawlBudgetTracker
from .models import CrawlRequest


class BackgroundEnqueuer:

    def __init__(
            self,
            queue,
            tracker: CrawlBudgetTracker,
            first_batch: int = FIRST_BATCH_SIZE,
            max_push_retries: int = MAX_PUSH_RETRIES,
            retry_delay: float = RETRY_DELAY,
            stop_event: Optional[threading.Event] = None,
            stats=None,
            ) -> None:
        self.queue = queue
        self.tracker = tracker
        self.first_batch = first_batch
        self.max_push_retries = max_push_retries
        self.retry_delay = retry_delay
        self.stop_event = stop_event or threading.Event()
        self.stats = stats

        self.pushed: int = 0
        self.skipped: int = 0
        self.dropped: int = 0
        self._thread: Optional[threading.Thread] = None

# -------------------------------------------------- Helper Functions ---------------------------------------------------------

    def _push(self, request: CrawlRequest) -> bool:
        """Push one request with bounded retries. Raises QueuePushError once retries are exhausted."""
        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_push_retries + 1):
            try:
                return self.queue.add_request(request)
            except Exception as e:
                last_error = e
                logger.warning(f"Queue push failed, retrying", extra={
                    "operation": "enqueue",
                    "unique_key": request.unique_key,
                    "attempt": attempt,
                    "error": str(e)
                })
                if attempt < self.max_push_retries:
                    time.sleep(self.retry_delay)
        raise QueuePushError(f"Could not enqueue {request.unique_key}") from last_error

    def _should_stop(self) -> bool:
        return self.stop_event.is_set() or self.tracker.is_globally_finished()

    def _enqueue(self, requests: Sequence[CrawlRequest]) -> None:
        for request in requests:
            if self._should_stop():
                return

            if self.tracker.is_finished(request.search_id):
                self.skipped += 1
                continue

            try:
                added = self._push(request)
            except QueuePushError as e:
                self.dropped += 1
                logger.error(f"Dropping request after {self.max_push_retries} failed pushes", extra={
                    "operation": "enqueue",
                    "unique_key": request.unique_key,
                    "url": request.url,
                    "error": str(e.__cause__ or e),
                    "status": "dropped"
                })
                continue

            if added:
                self.pushed += 1
                if self.stats is not None:
                    self.stats.increment("requests_enqueued")

    def _run_background(self, rest: List[CrawlRequest]) -> None:
        started = time.time()
        try:
            self._enqueue(rest)
        except Exception as e:
            logger.error(f"Background enqueueing failed: {str(e)}", extra={
                "operation": "enqueue_background",
                "error": str(e),
                "status": "error"
            }, exc_info=True)
            raise
        finally:
            logger.info("Background enqueueing finished", extra={
                "operation": "enqueue_background",
                "pushed": self.pushed,
                "skipped": self.skipped,
                "dropped": self.dropped,
                "stopped_early": self._should_stop(),
                "duration_sec": round(time.time() - started, 2)
            })

# -------------------------------------------------- Public API ---------------------------------------------------------

    def start(self, requests: Sequence[CrawlRequest]) -> None:
        """Push the first batch now and the remainder from a background thread."""
        requests = list(requests)
        first, rest = requests[:self.first_batch], requests[self.first_batch:]

        self._enqueue(first)
        logger.info("Enqueued first batch of start requests", extra={
            "operation": "enqueue",
            "first_batch": len(first),
            "pushed": self.pushed,
            "remaining": len(rest)
        })

        if not rest:
            return

        self._thread = threading.Thread(
            target=self._run_background,
            args=(rest,),
            name="background-enqueuer",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        self.stop_event.set()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)
