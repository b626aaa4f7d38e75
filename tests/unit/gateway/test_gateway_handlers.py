from __future__ import annotations

from pathlib import Path

import pytest

from tabsearch.gateway import (
    Call,
    FindRequest,
    GetHighlightRequest,
    GroupRequest,
    IndexingGateway,
    InvalidRequestError,
    MethodRegistry,
)
from tabsearch.host import InMemoryHost
from tabsearch.state import QueueDelta, StateStore, TabTracker


def _gateway(
    tmp_path: Path, strict: bool = False
) -> tuple[IndexingGateway, TabTracker, InMemoryHost]:
    tracker = TabTracker(StateStore(tmp_path / "state.json"))
    host = InMemoryHost()
    return IndexingGateway(tracker, host, strict=strict), tracker, host


def test_find_with_marked_snippet_stores_highlight_and_injects(tmp_path: Path) -> None:
    gateway, tracker, host = _gateway(tmp_path)
    host.open_tab(4, window_id=2)

    result = gateway.find(FindRequest(tab_id=4, window_id=2, query="q", snippet="a <b>q</b>"))

    assert result == {}
    assert host.active_tabs == {2: 4}
    assert host.focused_window == 2
    assert host.highlighted == [4]
    highlight = tracker.get_highlight(4)
    assert highlight is not None
    assert highlight.query == "q"


def test_find_without_marker_skips_highlight(tmp_path: Path) -> None:
    gateway, tracker, host = _gateway(tmp_path)
    host.open_tab(4)

    gateway.find(FindRequest(tab_id=4, window_id=1, query="q", snippet="plain text"))

    assert tracker.get_highlight(4) is None
    assert host.highlighted == []


def test_strict_mode_highlights_unmarked_snippets(tmp_path: Path) -> None:
    gateway, tracker, host = _gateway(tmp_path, strict=True)
    host.open_tab(4)

    gateway.find(FindRequest(tab_id=4, window_id=1, query="q", snippet="plain text"))

    assert tracker.get_highlight(4) is not None


def test_find_on_closed_tab_still_completes(tmp_path: Path) -> None:
    gateway, tracker, _ = _gateway(tmp_path)

    result = gateway.find(FindRequest(tab_id=99, window_id=9, query="q", snippet="<b>q</b>"))

    assert result == {}
    assert tracker.get_highlight(99) is not None


def test_group_moves_rest_into_anchor_window(tmp_path: Path) -> None:
    gateway, _, host = _gateway(tmp_path)
    for tab_id in (1, 2, 3):
        host.open_tab(tab_id, window_id=1)

    result = gateway.group(GroupRequest(ids=(2, 1, 3)))

    window_id = result["windowId"]
    assert window_id != 1
    assert host.windows()[window_id] == [1, 2, 3]
    assert host.focused_window == window_id


def test_group_with_unknown_anchor_returns_empty_result(tmp_path: Path) -> None:
    gateway, _, _ = _gateway(tmp_path)

    assert gateway.group(GroupRequest(ids=(5,))) == {}


def test_registered_methods_round_trip_jobs(tmp_path: Path) -> None:
    gateway, tracker, _ = _gateway(tmp_path)
    registry = MethodRegistry()
    gateway.register(registry)
    tracker.on_create(7)
    tracker.on_create(8)

    jobs = registry.dispatch("get_jobs", Call(params={}))
    done = registry.dispatch("index_complete", Call(params={"ids": [7]}))

    assert jobs == {"jobs": {"7": 1, "8": 1}}
    assert done == {"completed": 1}
    assert tracker.drain_queue() == {8: QueueDelta.NEW}


def test_get_highlight_uses_sender_tab(tmp_path: Path) -> None:
    gateway, tracker, _ = _gateway(tmp_path)
    registry = MethodRegistry()
    gateway.register(registry)
    registry.dispatch(
        "find",
        Call(params={"tabId": 3, "windowId": 1, "query": "q", "snippet": "<b>q</b>"}),
    )

    own = registry.dispatch("get_highlight", Call(params={}, sender_tab_id=3))
    other = registry.dispatch("get_highlight", Call(params={}, sender_tab_id=4))
    anonymous = registry.dispatch("get_highlight", Call(params={}))

    assert own == {
        "highlight": {"query": "q", "snippet": "<b>q</b>", "tabId": 3, "windowId": 1}
    }
    assert other == {"highlight": None}
    assert anonymous == {"highlight": None}


def test_delete_closes_tabs(tmp_path: Path) -> None:
    gateway, _, host = _gateway(tmp_path)
    registry = MethodRegistry()
    gateway.register(registry)
    host.open_tab(1)
    host.open_tab(2)

    assert registry.dispatch("delete", Call(params={"ids": [1]})) == {}
    assert host.query_tabs() == [2]


def test_unknown_method_is_invalid_request() -> None:
    registry = MethodRegistry()

    with pytest.raises(InvalidRequestError) as error:
        registry.dispatch("nope", Call(params={}))

    assert error.value.code == "INVALID_REQUEST"
    assert error.value.message == "Unknown method: nope"


def test_unpersistable_state_reads_as_nothing_pending(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("file, not a directory", encoding="utf-8")
    tracker = TabTracker(StateStore(blocker / "state.json"))
    gateway = IndexingGateway(tracker, InMemoryHost())
    tracker.on_create(2)

    assert gateway.get_jobs() == {
        "jobs": {},
        "__warnings__": ["tracker state could not be restored"],
    }
    assert gateway.get_highlight(GetHighlightRequest(sender_tab_id=2)) == {
        "highlight": None,
        "__warnings__": ["tracker state could not be restored"],
    }
    assert tracker.snapshot().loaded is False
