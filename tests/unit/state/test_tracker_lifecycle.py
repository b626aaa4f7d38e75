from __future__ import annotations

import random
import threading
from pathlib import Path

from tabsearch.state import HighlightRequest, QueueDelta, StateStore, TabTracker


def _tracker(tmp_path: Path) -> TabTracker:
    return TabTracker(StateStore(tmp_path / "state.json"))


def test_created_tab_is_queued_as_new(tmp_path: Path) -> None:
    tracker = _tracker(tmp_path)

    tracker.on_create(7)

    assert tracker.drain_queue() == {7: QueueDelta.NEW}


def test_create_then_update_stays_new_and_is_seen(tmp_path: Path) -> None:
    tracker = _tracker(tmp_path)

    tracker.on_create(7)
    tracker.on_update(7)

    assert tracker.drain_queue() == {7: QueueDelta.NEW}
    assert tracker.seen_tabs() == {7}


def test_update_of_seen_tab_marks_stale(tmp_path: Path) -> None:
    tracker = _tracker(tmp_path)

    tracker.on_update(3)
    tracker.mark_complete([3])
    tracker.on_update(3)

    assert tracker.drain_queue() == {3: QueueDelta.STALE}


def test_activate_follows_update_rule(tmp_path: Path) -> None:
    tracker = _tracker(tmp_path)

    tracker.on_activate(4)
    assert tracker.drain_queue() == {4: QueueDelta.NEW}

    tracker.on_activate(4)
    assert tracker.drain_queue() == {4: QueueDelta.STALE}


def test_discarded_update_is_ignored(tmp_path: Path) -> None:
    tracker = _tracker(tmp_path)

    tracker.on_update(5, discarded=True)

    assert tracker.drain_queue() == {}
    assert tracker.seen_tabs() == set()


def test_removing_never_seen_tab_leaves_no_entry(tmp_path: Path) -> None:
    tracker = _tracker(tmp_path)

    tracker.on_create(9)
    tracker.on_remove(9)

    assert tracker.drain_queue() == {}


def test_removing_seen_tab_queues_removal_and_unsees_it(tmp_path: Path) -> None:
    tracker = _tracker(tmp_path)

    tracker.on_update(2)
    tracker.mark_complete([2])
    tracker.on_remove(2)

    assert tracker.drain_queue() == {2: QueueDelta.REMOVED}
    assert 2 not in tracker.seen_tabs()


def test_drain_does_not_clear_queue(tmp_path: Path) -> None:
    tracker = _tracker(tmp_path)
    tracker.on_create(1)

    first = tracker.drain_queue()
    second = tracker.drain_queue()

    assert first == second == {1: QueueDelta.NEW}


def test_drain_then_complete_empties_queue_and_grows_seen_set(tmp_path: Path) -> None:
    tracker = _tracker(tmp_path)
    tracker.on_create(1)
    tracker.on_create(2)

    pending = tracker.drain_queue()
    completed = tracker.mark_complete(pending.keys())

    assert completed == 2
    assert tracker.drain_queue() == {}
    assert tracker.seen_tabs() >= {1, 2}


def test_complete_without_ids_acknowledges_whole_queue(tmp_path: Path) -> None:
    tracker = _tracker(tmp_path)
    tracker.on_create(1)
    tracker.on_update(2)

    assert tracker.mark_complete() == 2
    assert tracker.drain_queue() == {}


def test_completed_removals_are_not_counted_as_documents(tmp_path: Path) -> None:
    tracker = _tracker(tmp_path)
    tracker.on_update(1)
    tracker.mark_complete()
    tracker.on_remove(1)
    tracker.on_create(2)

    assert tracker.mark_complete() == 1
    assert tracker.snapshot().docs == 2


def test_removal_drops_highlight(tmp_path: Path) -> None:
    tracker = _tracker(tmp_path)
    tracker.set_highlight(HighlightRequest(query="q", snippet="<b>q</b>", tab_id=6, window_id=1))
    assert tracker.get_highlight(6) is not None

    tracker.on_remove(6)

    assert tracker.get_highlight(6) is None


def test_startup_resets_and_queues_open_tabs(tmp_path: Path) -> None:
    tracker = _tracker(tmp_path)
    tracker.on_update(1)
    tracker.mark_complete()

    tracker.startup([10, 11])

    assert tracker.drain_queue() == {10: QueueDelta.NEW, 11: QueueDelta.NEW}
    assert tracker.seen_tabs() == set()
    assert tracker.snapshot().docs == 0


def test_concurrent_events_lose_no_updates(tmp_path: Path) -> None:
    tracker = _tracker(tmp_path)
    tracker.ensure_loaded()
    workers, tabs_per_worker = 8, 20

    def run(worker: int) -> None:
        for offset in range(tabs_per_worker):
            tab_id = worker * 100 + offset
            tracker.on_create(tab_id)
            tracker.on_update(tab_id)
            if offset % 2 == 0:
                tracker.mark_complete([tab_id])

    threads = [threading.Thread(target=run, args=(worker,)) for worker in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    all_tabs = {w * 100 + o for w in range(workers) for o in range(tabs_per_worker)}
    pending = {tab_id: QueueDelta.NEW for tab_id in all_tabs if tab_id % 2}
    assert tracker.drain_queue() == pending
    assert tracker.seen_tabs() == all_tabs
    assert tracker.snapshot().docs == workers * tabs_per_worker // 2

    restored = StateStore(tmp_path / "state.json")
    assert restored.restore() is True
    assert restored.index_queue == pending
    assert restored.all_seen_tabs == all_tabs
    assert restored.docs == workers * tabs_per_worker // 2


def test_random_event_sequences_never_queue_unseen_removals(tmp_path: Path) -> None:
    rng = random.Random(20261019)
    events = ("create", "update", "discard", "activate", "remove", "complete", "complete_all")

    for round_number in range(20):
        tracker = TabTracker(StateStore(tmp_path / f"state-{round_number}.json"))
        for _ in range(60):
            tab_id = rng.randint(1, 6)
            event = rng.choice(events)
            seen_before = tracker.seen_tabs()
            if event == "create":
                tracker.on_create(tab_id)
            elif event == "update":
                tracker.on_update(tab_id)
            elif event == "discard":
                tracker.on_update(tab_id, discarded=True)
            elif event == "activate":
                tracker.on_activate(tab_id)
            elif event == "remove":
                tracker.on_remove(tab_id)
                assert tab_id not in tracker.seen_tabs()
                if tab_id not in seen_before:
                    assert tab_id not in tracker.drain_queue()
            elif event == "complete":
                tracker.mark_complete([tab_id])
            else:
                tracker.mark_complete()

            queue = tracker.drain_queue()
            seen = tracker.seen_tabs()
            for queued_id, delta in queue.items():
                if delta is QueueDelta.REMOVED:
                    assert queued_id not in seen
