import logging
import threading

import pytest

from crawl_planner.core.budget import BUDGET_KEY, CrawlBudgetTracker


def test_accepts_until_per_search_cap():
    tracker = CrawlBudgetTracker(max_total=10, max_per_search=3)
    assert [tracker.try_accept("pizza") for _ in range(4)] == [True, True, True, False]
    assert tracker.is_finished("pizza")
    assert not tracker.is_finished("coffee")
    assert tracker.accepted("pizza") == 3


def test_total_cap_finishes_every_search():
    tracker = CrawlBudgetTracker(max_total=2, max_per_search=5)
    assert tracker.try_accept("pizza")
    assert tracker.try_accept("coffee")
    assert not tracker.try_accept("sushi")
    assert tracker.is_globally_finished()
    assert tracker.is_finished("sushi"), "Every search is finished once the total cap is reached"


def test_zero_cap_accepts_nothing():
    tracker = CrawlBudgetTracker(max_total=0, max_per_search=0)
    assert not tracker.try_accept("pizza")
    assert tracker.is_globally_finished()


def test_negative_caps_are_rejected():
    with pytest.raises(ValueError):
        CrawlBudgetTracker(max_total=-1, max_per_search=5)


def test_concurrent_workers_never_exceed_cap():
    tracker = CrawlBudgetTracker(max_total=1000, max_per_search=50)
    accepted = []
    accepted_lock = threading.Lock()
    barrier = threading.Barrier(16)

    def worker():
        barrier.wait()
        mine = 0
        for _ in range(100):
            if tracker.try_accept("pizza"):
                mine += 1
        with accepted_lock:
            accepted.append(mine)

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sum(accepted) == 50, "Exactly the cap must be accepted across all workers"
    assert tracker.accepted("pizza") == 50
    assert tracker.accepted_total == 50


def test_enqueue_budget_is_separate_but_bounded():
    tracker = CrawlBudgetTracker(max_total=10, max_per_search=2)
    assert tracker.try_enqueue("pizza")
    assert tracker.try_enqueue("pizza")
    assert not tracker.try_enqueue("pizza"), "Enqueue slots are capped per search"
    assert tracker.enqueued("pizza") == 2
    assert tracker.accepted("pizza") == 0

    assert tracker.try_accept("coffee")
    assert tracker.try_accept("coffee")
    assert not tracker.try_enqueue("coffee"), "A finished search admits no follow-ups"


def test_counts_survive_restart(store):
    tracker = CrawlBudgetTracker(max_total=10, max_per_search=3, store=store)
    tracker.try_accept("pizza")
    tracker.try_accept("pizza")
    tracker.try_enqueue("coffee")
    tracker.persist()

    resumed = CrawlBudgetTracker(max_total=10, max_per_search=3, store=store)
    resumed.initialize()
    assert resumed.accepted("pizza") == 2
    assert resumed.enqueued("coffee") == 1
    assert resumed.try_accept("pizza")
    assert not resumed.try_accept("pizza"), "A restart must not reset the cap"


def test_corrupt_state_restarts_from_zero(store, caplog):
    store.set_value(BUDGET_KEY, {"accepted_total": "many", "accepted_per_search": []})

    tracker = CrawlBudgetTracker(max_total=10, max_per_search=3, store=store)
    with caplog.at_level(logging.WARNING, logger="crawl_planner"):
        tracker.initialize()

    assert tracker.accepted_total == 0
    assert "resuming from zero" in caplog.text


def test_negative_counts_are_rejected(store):
    store.set_value(BUDGET_KEY, {"accepted_total": -1, "accepted_per_search": {"pizza": -1}})
    tracker = CrawlBudgetTracker(max_total=10, max_per_search=3, store=store)
    tracker.initialize()
    assert tracker.accepted("pizza") == 0


def test_unreadable_blob_restarts_from_zero(store):
    store.set_value(BUDGET_KEY, {"accepted_total": 1, "accepted_per_search": {"pizza": 1}})
    store._path(BUDGET_KEY).write_bytes(b"not a pickle")

    tracker = CrawlBudgetTracker(max_total=10, max_per_search=3, store=store)
    tracker.initialize()
    assert tracker.accepted_total == 0


def test_persist_while_accepting(store):
    tracker = CrawlBudgetTracker(max_total=10000, max_per_search=10000, store=store)

    def worker(search_id):
        for _ in range(500):
            tracker.try_accept(search_id)

    threads = [threading.Thread(target=worker, args=(f"term-{n}",)) for n in range(4)]
    for thread in threads:
        thread.start()
    while any(thread.is_alive() for thread in threads):
        tracker.persist()
    for thread in threads:
        thread.join()
    tracker.persist()

    resumed = CrawlBudgetTracker(max_total=10000, max_per_search=10000, store=store)
    resumed.initialize()
    assert resumed.accepted_total == 2000, "Reloaded counts must match, not add up snapshots"
    assert all(resumed.accepted(f"term-{n}") == 500 for n in range(4))
