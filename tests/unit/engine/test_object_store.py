from __future__ import annotations

from pathlib import Path

import pytest

from tabsearch.engine import ObjectStore


def test_put_without_guid_generates_increasing_keys(tmp_path: Path) -> None:
    store = ObjectStore(tmp_path / "objects.sqlite3")

    first = store.put({"timestamp": 1, "body": "a"})
    second = store.put({"timestamp": 2, "body": "b"})

    assert first == 1
    assert second == 2
    assert store.get(1) == {"guid": 1, "timestamp": 1, "body": "a"}


def test_explicit_int_guid_advances_generator(tmp_path: Path) -> None:
    store = ObjectStore(tmp_path / "objects.sqlite3")

    store.put({"guid": 10, "timestamp": 1})
    generated = store.put({"timestamp": 2})

    assert generated == 11


def test_string_and_int_guids_are_distinct(tmp_path: Path) -> None:
    store = ObjectStore(tmp_path / "objects.sqlite3")
    store.put({"guid": "12", "timestamp": 1, "body": "text"})

    assert store.get("12") is not None
    assert store.get(12) is None


def test_recent_and_pinned_queries(tmp_path: Path) -> None:
    store = ObjectStore(tmp_path / "objects.sqlite3")
    store.put({"guid": "old", "timestamp": 100})
    store.put({"guid": "new", "timestamp": 300, "pinned": True})
    store.put({"guid": "mid", "timestamp": 200})

    assert [record["guid"] for record in store.recent(limit=2)] == ["new", "mid"]
    assert [record["guid"] for record in store.recent(since=200)] == ["new", "mid"]
    assert [record["guid"] for record in store.pinned()] == ["new"]


def test_clear_restarts_numbering(tmp_path: Path) -> None:
    store = ObjectStore(tmp_path / "objects.sqlite3")
    store.put({"timestamp": 1})
    store.put({"timestamp": 2})

    store.clear()

    assert store.count() == 0
    assert store.put({"timestamp": 3}) == 1


def test_unsupported_guid_type_is_rejected(tmp_path: Path) -> None:
    store = ObjectStore(tmp_path / "objects.sqlite3")

    with pytest.raises(TypeError, match="guid"):
        store.put({"guid": 1.5, "timestamp": 1})
