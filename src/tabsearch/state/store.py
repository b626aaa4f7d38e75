"""Durable storage for the tracker's state bundle across process restarts."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from pathlib import Path

from tabsearch.state.models import HighlightRequest, QueueDelta

STATE_SCHEMA_VERSION = 1

logger = logging.getLogger(__name__)


class PersistenceUnavailableError(Exception):
    """Raised when the durable state area cannot be read or written."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class StateStore:
    """Holds the three tracking maps and mirrors them to one JSON file.

    The maps start uninitialized (None). ``restore`` is the only method that
    reads the durable file; everything else works on the in-memory maps.
    """

    def __init__(self, path: Path, purge: Callable[[], None] | None = None) -> None:
        self._path = path
        self._purge = purge
        self.index_queue: dict[int, QueueDelta] | None = None
        self.all_seen_tabs: set[int] | None = None
        self.tab_highlight: dict[int, HighlightRequest] | None = None
        self.docs = 0

    @property
    def path(self) -> Path:
        """Return on-disk bundle path."""
        return self._path

    @property
    def is_loaded(self) -> bool:
        return (
            self.index_queue is not None
            and self.all_seen_tabs is not None
            and self.tab_highlight is not None
        )

    def restore(self) -> bool:
        """Load the bundle from disk; return whether a valid bundle was found."""
        if not self._path.exists():
            logger.info("no saved state bundle at %s", self._path)
            return False
        try:
            payload = self._read_bundle()
        except PersistenceUnavailableError as error:
            logger.warning("state bundle unavailable: %s", error.reason)
            return False
        index_queue, seen, highlights, docs = payload
        self.index_queue = index_queue
        self.all_seen_tabs = seen
        self.tab_highlight = highlights
        self.docs = docs
        return True

    def save(self) -> bool:
        """Write the in-memory maps back; no-op when any map is uninitialized."""
        if self.index_queue is None or self.all_seen_tabs is None or self.tab_highlight is None:
            return False
        payload = {
            "schema_version": STATE_SCHEMA_VERSION,
            "index_queue": {
                str(tab_id): int(delta) for tab_id, delta in self.index_queue.items()
            },
            "all_seen_tabs": sorted(self.all_seen_tabs),
            "tab_highlight": {
                str(tab_id): request.to_dict() for tab_id, request in self.tab_highlight.items()
            },
            "docs": self.docs,
        }
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._atomic_write_json(self._path, payload)
        except OSError as error:
            raise PersistenceUnavailableError(f"cannot write {self._path}: {error}") from error
        return True

    def reset(self) -> bool:
        """Clear every map, purge orphaned search databases and persist."""
        self.index_queue = {}
        self.all_seen_tabs = set()
        self.tab_highlight = {}
        self.docs = 0
        if self._purge is not None:
            try:
                self._purge()
            except OSError as error:
                logger.warning("purging search databases failed: %s", error)
        logger.info("tracker state reset")
        return self.save()

    def _read_bundle(
        self,
    ) -> tuple[dict[int, QueueDelta], set[int], dict[int, HighlightRequest], int]:
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, json.JSONDecodeError) as error:
            raise PersistenceUnavailableError(f"cannot read {self._path}: {error}") from error
        if not isinstance(payload, dict):
            raise PersistenceUnavailableError("bundle is not an object")
        schema = payload.get("schema_version")
        if schema != STATE_SCHEMA_VERSION:
            raise PersistenceUnavailableError(
                f"bundle schema {schema!r} is unsupported; expected {STATE_SCHEMA_VERSION}"
            )

        raw_queue = payload.get("index_queue")
        if not isinstance(raw_queue, dict):
            raise PersistenceUnavailableError("index_queue must be an object")
        index_queue: dict[int, QueueDelta] = {}
        for key, value in raw_queue.items():
            tab_id = _parse_tab_id(key)
            if tab_id is None or not isinstance(value, int):
                raise PersistenceUnavailableError(f"malformed index_queue entry {key!r}")
            try:
                index_queue[tab_id] = QueueDelta(value)
            except ValueError as error:
                raise PersistenceUnavailableError(f"unknown delta {value!r}") from error

        # older bundles carried no seen set
        raw_seen = payload.get("all_seen_tabs", [])
        if not isinstance(raw_seen, list):
            raise PersistenceUnavailableError("all_seen_tabs must be a list")
        seen: set[int] = set()
        for item in raw_seen:
            tab_id = _parse_tab_id(item)
            if tab_id is None:
                raise PersistenceUnavailableError(f"malformed all_seen_tabs entry {item!r}")
            seen.add(tab_id)

        raw_highlight = payload.get("tab_highlight")
        if not isinstance(raw_highlight, dict):
            raise PersistenceUnavailableError("tab_highlight must be an object")
        highlights: dict[int, HighlightRequest] = {}
        for key, value in raw_highlight.items():
            tab_id = _parse_tab_id(key)
            request = HighlightRequest.from_dict(value) if isinstance(value, dict) else None
            if tab_id is None or request is None:
                raise PersistenceUnavailableError(f"malformed tab_highlight entry {key!r}")
            highlights[tab_id] = request

        docs = payload.get("docs", 0)
        if not isinstance(docs, int) or isinstance(docs, bool) or docs < 0:
            docs = 0
        return index_queue, seen, highlights, docs

    @staticmethod
    def _atomic_write_json(path: Path, payload: dict[str, object]) -> None:
        tmp = path.with_suffix(path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, sort_keys=True)
            handle.write("\n")
        tmp.replace(path)


def _parse_tab_id(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None
