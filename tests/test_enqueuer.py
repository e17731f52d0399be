import threading

from crawl_planner.core.budget import CrawlBudgetTracker
from crawl_planner.core.enqueuer import BackgroundEnqueuer
from crawl_planner.core.models import CrawlRequest, Label
from crawl_planner.core.queue import RequestQueue
from crawl_planner.utils.metrics import CrawlStats


def _requests(term, count):
    return [
        CrawlRequest(url=f"https://www.google.com/maps/search/{term}/{i}", unique_key=f"{term}-{i}",
                     label=Label.SEARCH, search_term=term)
        for i in range(count)
    ]


class FlakyQueue(RequestQueue):
    """Fails the first `failures` pushes of every request."""

    def __init__(self, failures):
        super().__init__()
        self.failures = failures
        self.attempts = {}

    def add_request(self, request):
        self.attempts[request.unique_key] = self.attempts.get(request.unique_key, 0) + 1
        if self.attempts[request.unique_key] <= self.failures:
            raise ConnectionError("queue unavailable")
        return super().add_request(request)


def test_first_batch_is_synchronous_rest_in_background():
    queue = RequestQueue()
    stats = CrawlStats()
    enqueuer = BackgroundEnqueuer(queue, CrawlBudgetTracker(100, 100), first_batch=3, stats=stats)

    enqueuer.start(_requests("pizza", 10))
    assert queue.total_count >= 3, "First batch must be queued before start() returns"

    enqueuer.join(timeout=5)
    assert not enqueuer.is_running
    assert queue.total_count == 10
    assert enqueuer.pushed == 10
    assert stats.get("requests_enqueued") == 10


def test_small_list_needs_no_background_thread():
    queue = RequestQueue()
    enqueuer = BackgroundEnqueuer(queue, CrawlBudgetTracker(100, 100), first_batch=20)
    enqueuer.start(_requests("pizza", 5))
    assert not enqueuer.is_running
    assert queue.total_count == 5


def test_finished_searches_are_skipped():
    tracker = CrawlBudgetTracker(max_total=100, max_per_search=1)
    tracker.try_accept("pizza")

    queue = RequestQueue()
    enqueuer = BackgroundEnqueuer(queue, tracker, first_batch=2)
    enqueuer.start(_requests("pizza", 3) + _requests("coffee", 3))
    enqueuer.join(timeout=5)

    queued = []
    while not queue.is_empty():
        queued.append(queue.fetch_next().search_id)
    assert queued == ["coffee"] * 3
    assert enqueuer.skipped == 3


def test_stops_once_every_search_is_finished():
    tracker = CrawlBudgetTracker(max_total=1, max_per_search=1)
    tracker.try_accept("pizza")

    queue = RequestQueue()
    enqueuer = BackgroundEnqueuer(queue, tracker, first_batch=1)
    enqueuer.start(_requests("coffee", 5))
    enqueuer.join(timeout=5)
    assert queue.total_count == 0
    assert enqueuer.skipped == 0, "Nothing is inspected after the global cap is reached"


def test_stop_event_halts_enqueueing():
    stop_event = threading.Event()
    stop_event.set()
    queue = RequestQueue()
    enqueuer = BackgroundEnqueuer(queue, CrawlBudgetTracker(100, 100), stop_event=stop_event)
    enqueuer.start(_requests("pizza", 5))
    assert queue.total_count == 0


def test_push_is_retried():
    queue = FlakyQueue(failures=2)
    enqueuer = BackgroundEnqueuer(queue, CrawlBudgetTracker(100, 100), max_push_retries=3, retry_delay=0)
    enqueuer.start(_requests("pizza", 2))
    assert queue.total_count == 2
    assert enqueuer.dropped == 0


def test_request_is_dropped_after_retries(caplog):
    queue = FlakyQueue(failures=5)
    enqueuer = BackgroundEnqueuer(queue, CrawlBudgetTracker(100, 100), max_push_retries=3, retry_delay=0)
    enqueuer.start(_requests("pizza", 2))
    assert queue.total_count == 0
    assert enqueuer.dropped == 2
    assert queue.attempts == {"pizza-0": 3, "pizza-1": 3}
    assert "Dropping request" in caplog.text


def test_duplicate_requests_are_not_counted():
    queue = RequestQueue()
    enqueuer = BackgroundEnqueuer(queue, CrawlBudgetTracker(100, 100))
    requests = _requests("pizza", 2)
    enqueuer.start(requests + requests)
    assert enqueuer.pushed == 2
