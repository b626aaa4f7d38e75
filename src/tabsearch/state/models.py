"""Typed models for tab tracking state."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class QueueDelta(IntEnum):
    """Pending indexing status of one tab."""

    NEW = 1
    STALE = 0
    REMOVED = -1


@dataclass(slots=True, frozen=True)
class HighlightRequest:
    """Last search-navigation payload recorded for a tab."""

    query: str
    snippet: str
    tab_id: int
    window_id: int

    def to_dict(self) -> dict[str, object]:
        return {
            "query": self.query,
            "snippet": self.snippet,
            "tabId": self.tab_id,
            "windowId": self.window_id,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, object]) -> HighlightRequest | None:
        """Rebuild from the persisted form, or None when fields are malformed."""
        query = payload.get("query")
        snippet = payload.get("snippet")
        tab_id = payload.get("tabId")
        window_id = payload.get("windowId")
        if not isinstance(query, str) or not isinstance(snippet, str):
            return None
        if not isinstance(tab_id, int) or isinstance(tab_id, bool):
            return None
        if not isinstance(window_id, int) or isinstance(window_id, bool):
            return None
        return cls(query=query, snippet=snippet, tab_id=tab_id, window_id=window_id)


@dataclass(slots=True, frozen=True)
class TrackerSnapshot:
    """Counts describing the tracker state."""

    loaded: bool
    pending: int
    pending_new: int
    pending_stale: int
    pending_removed: int
    seen: int
    highlights: int
    docs: int
