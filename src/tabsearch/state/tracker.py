"""Tab lifecycle tracking and the pending indexing queue."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable

from tabsearch.state.models import HighlightRequest, QueueDelta, TrackerSnapshot
from tabsearch.state.store import PersistenceUnavailableError, StateStore

logger = logging.getLogger(__name__)


class TabTracker:
    """Turns host tab events into per-tab indexing deltas.

    Every public method runs restore -> mutate -> save under one lock, so
    concurrent event handlers and drain calls never interleave on the maps.
    """

    def __init__(self, store: StateStore) -> None:
        self._store = store
        self._lock = threading.RLock()
        self._durable = False

    def ensure_loaded(self) -> bool:
        """Restore saved state, or reset it when none is usable; return whether it is durable.

        Call once at process start so a first-install reset happens before any
        content is stored.
        """
        with self._lock:
            return self._hydrate()

    def startup(self, open_tab_ids: Iterable[int]) -> None:
        """Reset all state and queue every currently open tab as new."""
        with self._lock:
            try:
                self._store.reset()
            except PersistenceUnavailableError as error:
                logger.warning("startup reset not persisted: %s", error.reason)
            queue = self._queue()
            for tab_id in open_tab_ids:
                queue[tab_id] = QueueDelta.NEW
            logger.debug("startup queued %d open tabs", len(queue))
            self._persist()

    def on_create(self, tab_id: int) -> None:
        with self._lock:
            self._hydrate()
            logger.debug("Created tab: %s", tab_id)
            self._queue()[tab_id] = QueueDelta.NEW
            self._persist()

    def on_update(self, tab_id: int, discarded: bool = False) -> None:
        """Record a content change; discarding a tab is not one."""
        if discarded:
            return
        with self._lock:
            self._hydrate()
            logger.debug("Updated tab: %s", tab_id)
            self._touch(tab_id)
            self._persist()

    def on_activate(self, tab_id: int) -> None:
        with self._lock:
            self._hydrate()
            logger.debug("Activated tab: %s", tab_id)
            self._touch(tab_id)
            self._persist()

    def on_remove(self, tab_id: int) -> None:
        """Drop highlight state and mark the tab for purging if it was ever seen."""
        with self._lock:
            self._hydrate()
            logger.debug("Removed tab: %s", tab_id)
            self._highlights().pop(tab_id, None)
            seen = self._seen()
            if tab_id in seen:
                seen.discard(tab_id)
                self._queue()[tab_id] = QueueDelta.REMOVED
            else:
                self._queue().pop(tab_id, None)
            self._persist()

    def drain_queue(self) -> dict[int, QueueDelta]:
        """Return a copy of the pending work without clearing it.

        Entries are cleared by ``mark_complete``, so a caller that never
        completes can request the same work again.
        """
        with self._lock:
            if not self._hydrate():
                raise PersistenceUnavailableError("tracker state could not be restored")
            queue = dict(self._queue())
            logger.debug("tab delta: %s", sorted(queue))
            return queue

    def mark_complete(self, tab_ids: Iterable[int] | None = None) -> int:
        """Acknowledge processed tabs: mark them seen and clear their deltas.

        With no ids every tab currently in the queue is acknowledged. Returns
        how many non-removed entries were completed.
        """
        with self._lock:
            self._hydrate()
            queue = self._queue()
            if tab_ids is None:
                tab_ids = list(queue)
            seen = self._seen()
            completed = 0
            for tab_id in tab_ids:
                delta = queue.pop(tab_id, None)
                seen.add(tab_id)
                if delta is not None and delta is not QueueDelta.REMOVED:
                    completed += 1
            self._store.docs += completed
            self._persist()
            return completed

    def set_highlight(self, request: HighlightRequest) -> None:
        with self._lock:
            self._hydrate()
            self._highlights()[request.tab_id] = request
            self._persist()

    def get_highlight(self, tab_id: int) -> HighlightRequest | None:
        with self._lock:
            if not self._hydrate():
                raise PersistenceUnavailableError("tracker state could not be restored")
            return self._highlights().get(tab_id)

    def seen_tabs(self) -> set[int]:
        with self._lock:
            self._hydrate()
            return set(self._seen())

    def snapshot(self) -> TrackerSnapshot:
        with self._lock:
            loaded = self._hydrate()
            queue = self._queue()
            values = list(queue.values())
            return TrackerSnapshot(
                loaded=loaded,
                pending=len(queue),
                pending_new=values.count(QueueDelta.NEW),
                pending_stale=values.count(QueueDelta.STALE),
                pending_removed=values.count(QueueDelta.REMOVED),
                seen=len(self._seen()),
                highlights=len(self._highlights()),
                docs=self._store.docs,
            )

    def _touch(self, tab_id: int) -> None:
        # update and activate share one rule: first sighting is new, later ones are stale
        seen = self._seen()
        if tab_id in seen:
            self._queue()[tab_id] = QueueDelta.STALE
        else:
            self._queue()[tab_id] = QueueDelta.NEW
            seen.add(tab_id)

    def _persist(self) -> bool:
        try:
            self._durable = self._store.save()
        except PersistenceUnavailableError as error:
            logger.warning("state change kept in memory only: %s", error.reason)
            self._durable = False
        return self._durable

    def _hydrate(self) -> bool:
        """Make sure the maps are initialized; return False when not durable.

        Maps already in memory are never reset again, so content stored after
        the first reset is not purged; an unsaved state only retries the save.
        """
        if self._store.is_loaded:
            if not self._durable:
                self._persist()
            return self._durable
        if self._store.restore():
            self._durable = True
            return True
        try:
            self._durable = self._store.reset()
        except PersistenceUnavailableError as error:
            logger.warning("state reset not persisted: %s", error.reason)
            self._durable = False
        return self._durable

    def _queue(self) -> dict[int, QueueDelta]:
        assert self._store.index_queue is not None
        return self._store.index_queue

    def _seen(self) -> set[int]:
        assert self._store.all_seen_tabs is not None
        return self._store.all_seen_tabs

    def _highlights(self) -> dict[int, HighlightRequest]:
        assert self._store.tab_highlight is not None
        return self._store.tab_highlight
