import threading

import pytest

from crawl_planner.storage.deduper import DEDUP_KEY, ExportDeduper, NullDeduper, create_deduper


def test_each_key_is_emitted_once(store):
    deduper = ExportDeduper(store)
    deduper.initialize()
    assert deduper.try_emit("P1")
    assert not deduper.try_emit("P1")
    assert deduper.try_emit("P2")
    assert len(deduper) == 2


def test_emitted_keys_survive_restart(store):
    deduper = ExportDeduper(store)
    deduper.initialize()
    deduper.try_emit("P1")
    deduper.persist()

    restarted = ExportDeduper(store)
    restarted.initialize()
    assert not restarted.try_emit("P1"), "A restarted run must not export P1 again"
    assert restarted.try_emit("P2")


def test_unreadable_state_starts_empty(store):
    store.set_value(DEDUP_KEY, 42)
    deduper = ExportDeduper(store)
    deduper.initialize()
    assert deduper.try_emit("P1")


def test_null_deduper_emits_everything():
    deduper = NullDeduper()
    assert deduper.try_emit("P1")
    assert deduper.try_emit("P1")


def test_create_deduper(store):
    assert isinstance(create_deduper(False), NullDeduper)
    assert isinstance(create_deduper(True, store), ExportDeduper)
    with pytest.raises(ValueError):
        create_deduper(True)


def test_declined_key_is_not_marked(store):
    deduper = ExportDeduper(store)
    deduper.initialize()
    assert not deduper.try_emit("P1", admit=lambda: False)
    assert len(deduper) == 0, "A key the budget declined must stay emittable"
    assert deduper.try_emit("P1", admit=lambda: True)


def test_duplicate_never_reaches_admit(store):
    deduper = ExportDeduper(store)
    deduper.initialize()
    calls = []

    def admit():
        calls.append(1)
        return True

    assert deduper.try_emit("P1", admit=admit)
    assert not deduper.try_emit("P1", admit=admit)
    assert len(calls) == 1, "Only the first sighting may take a budget slot"


def test_null_deduper_defers_to_admit():
    deduper = NullDeduper()
    assert deduper.try_emit("P1", admit=lambda: True)
    assert not deduper.try_emit("P1", admit=lambda: False)


def test_concurrent_emits_win_once_per_key(store):
    deduper = ExportDeduper(store)
    deduper.initialize()
    keys = [f"P{i}" for i in range(200)]
    wins = []
    wins_lock = threading.Lock()
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        mine = [key for key in keys if deduper.try_emit(key)]
        with wins_lock:
            wins.extend(mine)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(wins) == sorted(keys), "Every key must be emitted exactly once across workers"
    assert len(deduper) == len(keys)


def test_persist_while_emitting(store):
    deduper = ExportDeduper(store)
    deduper.initialize()

    def worker(offset):
        for i in range(300):
            deduper.try_emit(f"P{offset + i}")

    threads = [threading.Thread(target=worker, args=(n * 300,)) for n in range(4)]
    for thread in threads:
        thread.start()
    while any(thread.is_alive() for thread in threads):
        deduper.persist()
    for thread in threads:
        thread.join()
    deduper.persist()

    restarted = ExportDeduper(store)
    restarted.initialize()
    assert len(restarted) == 1200
    assert not restarted.try_emit("P0")
