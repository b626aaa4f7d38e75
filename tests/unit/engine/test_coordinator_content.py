from __future__ import annotations

from pathlib import Path

import pytest

from tabsearch.engine import (
    ContentCoordinator,
    LookupMissError,
    ObjectStore,
    SearchEngine,
    SearchError,
)


def _coordinator(tmp_path: Path) -> ContentCoordinator:
    coordinator = ContentCoordinator(
        objects=ObjectStore(tmp_path / "objects.sqlite3"),
        engine=SearchEngine(),
        engine_root=tmp_path / "engine",
    )
    coordinator.open()
    return coordinator


def test_add_then_body_returns_record(tmp_path: Path) -> None:
    coordinator = _coordinator(tmp_path)

    guid = coordinator.add(
        {
            "url": "https://example.com/docs/page",
            "title": "Example",
            "body": "hello world",
            "mime": "text/html",
            "keywords": "alpha ,  beta,gamma",
        },
        hidden={"pinned": False},
    )
    record = coordinator.body(guid)

    assert record["guid"] == int(guid)
    assert record["hostname"] == "example.com"
    assert record["url"] == "https://example.com/docs/page"
    assert record["body"] == "hello world"
    assert record["pinned"] is False
    assert isinstance(record["timestamp"], int)


def test_generated_guids_increase(tmp_path: Path) -> None:
    coordinator = _coordinator(tmp_path)

    first = coordinator.add({"body": "one"})
    second = coordinator.add({"body": "two"})

    assert int(second) > int(first)


def test_search_then_snippet_highlights_match(tmp_path: Path) -> None:
    coordinator = _coordinator(tmp_path)
    coordinator.add({"title": "Greeting", "body": "hello there friend"}, guid="g1")

    summary = coordinator.search({"query": "hello"})

    assert summary.size == 1
    assert coordinator.guid(0) == "g1"
    assert coordinator.percent(0) == 100
    snippet = coordinator.snippet({"index": 0, "size": 300})
    assert "hello" in snippet
    assert "<b>hello</b>" in snippet


def test_snippet_of_raw_content(tmp_path: Path) -> None:
    coordinator = _coordinator(tmp_path)
    coordinator.add({"body": "hello"}, guid="g1")
    coordinator.search({"query": "hello"})

    snippet = coordinator.snippet({"content": "say hello & goodbye", "size": 300})

    assert snippet == "say <b>hello</b> &amp; goodbye"


def test_remove_drops_search_document_but_keeps_record(tmp_path: Path) -> None:
    coordinator = _coordinator(tmp_path)
    coordinator.add({"body": "hello"}, guid="g1")

    coordinator.remove("g1")

    assert coordinator.search({"query": "hello"}).size == 0
    assert coordinator.body("g1")["body"] == "hello"


def test_body_of_unknown_guid_is_a_lookup_miss(tmp_path: Path) -> None:
    coordinator = _coordinator(tmp_path)

    with pytest.raises(LookupMissError):
        coordinator.body("missing")


def test_body_tries_numeric_guid_first(tmp_path: Path) -> None:
    coordinator = _coordinator(tmp_path)
    guid = coordinator.add({"body": "numbered"})

    assert coordinator.body(str(guid))["body"] == "numbered"


def test_numeric_caller_guid_is_shadowed_by_generated_record(tmp_path: Path) -> None:
    coordinator = _coordinator(tmp_path)
    generated = coordinator.add({"body": "generated"})
    supplied = coordinator.add({"body": "supplied"}, guid="1")

    assert generated == supplied == "1"
    assert coordinator.body("1")["body"] == "generated"
    assert coordinator.objects.get("1")["body"] == "supplied"


def test_guid_past_last_result_is_a_lookup_miss(tmp_path: Path) -> None:
    coordinator = _coordinator(tmp_path)
    coordinator.add({"body": "hello"}, guid="g1")
    coordinator.search({"query": "hello"})

    with pytest.raises(LookupMissError):
        coordinator.guid(5)


def test_empty_query_raises_search_error(tmp_path: Path) -> None:
    coordinator = _coordinator(tmp_path)

    with pytest.raises(SearchError, match="no searchable terms"):
        coordinator.search({"query": "  "})


def test_commit_survives_reopen(tmp_path: Path) -> None:
    coordinator = _coordinator(tmp_path)
    coordinator.add({"body": "persisted words"}, guid="g1")
    coordinator.commit()

    reopened = _coordinator(tmp_path)

    assert reopened.search({"query": "persisted"}).size == 1


def test_purge_removes_documents_and_records(tmp_path: Path) -> None:
    coordinator = _coordinator(tmp_path)
    coordinator.add({"body": "hello"}, guid="g1")
    coordinator.commit()

    coordinator.purge()

    assert coordinator.objects.count() == 0
    assert coordinator.search({"query": "hello"}).size == 0
    assert coordinator.open_databases() == (0,)


def test_language_maps_tags_to_stemmers(tmp_path: Path) -> None:
    coordinator = _coordinator(tmp_path)

    assert coordinator.language("fr-CA") == "french"
    assert coordinator.language("xx") == "english"
