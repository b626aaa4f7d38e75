"""Host environment collaborator: the browser that owns tabs and windows."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol


class ActivationFailureError(Exception):
    """Raised when the host refuses to act on a tab or window."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class Host(Protocol):
    """Tab and window operations the gateway asks the host to perform."""

    def activate_tab(self, tab_id: int) -> None: ...

    def focus_window(self, window_id: int) -> None: ...

    def inject_highlighter(self, tab_id: int) -> None: ...

    def close_tabs(self, tab_ids: list[int]) -> None: ...

    def create_window(self, tab_id: int) -> int: ...

    def move_tabs(self, tab_ids: list[int], window_id: int) -> None: ...

    def query_tabs(self) -> list[int]: ...


@dataclass(slots=True)
class InMemoryHost:
    """Headless host that mirrors tabs and windows reported by lifecycle events."""

    tabs: dict[int, int] = field(default_factory=dict)
    active_tabs: dict[int, int] = field(default_factory=dict)
    focused_window: int | None = None
    highlighted: list[int] = field(default_factory=list)
    _next_window_id: int = 1

    def open_tab(self, tab_id: int, window_id: int = 1) -> None:
        self.tabs[tab_id] = window_id
        self._next_window_id = max(self._next_window_id, window_id + 1)

    def forget_tab(self, tab_id: int) -> None:
        window_id = self.tabs.pop(tab_id, None)
        if window_id is not None and self.active_tabs.get(window_id) == tab_id:
            del self.active_tabs[window_id]

    def activate_tab(self, tab_id: int) -> None:
        window_id = self._window_of(tab_id)
        self.active_tabs[window_id] = tab_id

    def focus_window(self, window_id: int) -> None:
        if window_id not in set(self.tabs.values()):
            raise ActivationFailureError(f"No window with id: {window_id}")
        self.focused_window = window_id

    def inject_highlighter(self, tab_id: int) -> None:
        self._window_of(tab_id)
        self.highlighted.append(tab_id)

    def close_tabs(self, tab_ids: list[int]) -> None:
        for tab_id in tab_ids:
            self._window_of(tab_id)
        for tab_id in tab_ids:
            self.forget_tab(tab_id)

    def create_window(self, tab_id: int) -> int:
        self._window_of(tab_id)
        window_id = self._next_window_id
        self._next_window_id += 1
        self.tabs[tab_id] = window_id
        self.active_tabs[window_id] = tab_id
        return window_id

    def move_tabs(self, tab_ids: list[int], window_id: int) -> None:
        for tab_id in tab_ids:
            self._window_of(tab_id)
        for tab_id in tab_ids:
            self.tabs[tab_id] = window_id

    def query_tabs(self) -> list[int]:
        return sorted(self.tabs)

    def windows(self) -> dict[int, list[int]]:
        grouped: dict[int, list[int]] = {}
        for tab_id, window_id in sorted(self.tabs.items()):
            grouped.setdefault(window_id, []).append(tab_id)
        return grouped

    def _window_of(self, tab_id: int) -> int:
        window_id = self.tabs.get(tab_id)
        if window_id is None:
            raise ActivationFailureError(f"No tab with id: {tab_id}")
        return window_id

