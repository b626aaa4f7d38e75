"""Lifecycle, engine and status methods served next to the gateway."""

from __future__ import annotations

from collections.abc import Callable

from tabsearch.config import ServerConfig
from tabsearch.engine import ContentCoordinator
from tabsearch.gateway import (
    Call,
    InvalidRequestError,
    MethodHandler,
    MethodRegistry,
    optional_int,
    required_int,
)
from tabsearch.host import InMemoryHost
from tabsearch.state import TabTracker

LIFECYCLE_METHODS = (
    "runtime.startup",
    "tabs.created",
    "tabs.updated",
    "tabs.activated",
    "tabs.removed",
)
ENGINE_METHODS = (
    "engine.add",
    "engine.commit",
    "engine.search",
    "engine.guid",
    "engine.percent",
    "engine.body",
    "engine.snippet",
    "engine.remove",
    "engine.language",
    "engine.recent",
    "engine.pinned",
)


def register_lifecycle_methods(
    registry: MethodRegistry,
    tracker: TabTracker,
    host: InMemoryHost | None,
) -> None:
    """Register host tab events; an in-memory host mirrors them when present."""
    registry.register("runtime.startup", _startup_handler(tracker, host))
    registry.register("tabs.created", _created_handler(tracker, host))
    registry.register("tabs.updated", _updated_handler(tracker))
    registry.register("tabs.activated", _activated_handler(tracker, host))
    registry.register("tabs.removed", _removed_handler(tracker, host))


def register_engine_methods(
    registry: MethodRegistry,
    coordinator: ContentCoordinator,
    max_results: int,
) -> None:
    registry.register("engine.add", _add_handler(coordinator))
    registry.register("engine.commit", _commit_handler(coordinator))
    registry.register("engine.search", _search_handler(coordinator, max_results))
    registry.register("engine.guid", _guid_handler(coordinator))
    registry.register("engine.percent", _percent_handler(coordinator))
    registry.register("engine.body", _body_handler(coordinator))
    registry.register("engine.snippet", _snippet_handler(coordinator))
    registry.register("engine.remove", _remove_handler(coordinator))
    registry.register("engine.language", _language_handler(coordinator))
    registry.register("engine.recent", _recent_handler(coordinator, max_results))
    registry.register("engine.pinned", _pinned_handler(coordinator))


def register_status_methods(
    registry: MethodRegistry,
    tracker: TabTracker,
    coordinator: ContentCoordinator,
    config: ServerConfig,
    read_audit_entries: Callable[[str | None, int], list[dict[str, object]]],
) -> None:
    registry.register("status", _status_handler(tracker, coordinator, config))
    registry.register("audit_log", _audit_log_handler(config, read_audit_entries))


def _startup_handler(tracker: TabTracker, host: InMemoryHost | None) -> MethodHandler:
    def handler(call: Call) -> dict[str, object]:
        tabs_value = call.params.get("tabs", [])
        if not isinstance(tabs_value, list):
            raise InvalidRequestError(message="runtime.startup tabs must be a list.")
        open_tabs: list[int] = []
        for item in tabs_value:
            if not isinstance(item, dict):
                raise InvalidRequestError(message="runtime.startup tabs must contain objects.")
            tab_id = required_int(item, "tabId", "runtime.startup")
            window_id = optional_int(item, "windowId", "runtime.startup", 1)
            open_tabs.append(tab_id)
            if host is not None:
                host.open_tab(tab_id, window_id)
        if host is not None:
            open_tabs = host.query_tabs()
        tracker.startup(open_tabs)
        return {"queued": len(open_tabs)}

    return handler


def _created_handler(tracker: TabTracker, host: InMemoryHost | None) -> MethodHandler:
    def handler(call: Call) -> dict[str, object]:
        tab_id = required_int(call.params, "tabId", "tabs.created")
        window_id = optional_int(call.params, "windowId", "tabs.created", 1)
        if host is not None:
            host.open_tab(tab_id, window_id)
        tracker.on_create(tab_id)
        return {}

    return handler


def _updated_handler(tracker: TabTracker) -> MethodHandler:
    def handler(call: Call) -> dict[str, object]:
        tab_id = required_int(call.params, "tabId", "tabs.updated")
        discarded = call.params.get("discarded", False)
        if not isinstance(discarded, bool):
            raise InvalidRequestError(message="tabs.updated discarded must be a boolean.")
        tracker.on_update(tab_id, discarded=discarded)
        return {}

    return handler


def _activated_handler(tracker: TabTracker, host: InMemoryHost | None) -> MethodHandler:
    def handler(call: Call) -> dict[str, object]:
        tab_id = required_int(call.params, "tabId", "tabs.activated")
        if host is not None and tab_id in host.tabs:
            host.activate_tab(tab_id)
        tracker.on_activate(tab_id)
        return {}

    return handler


def _removed_handler(tracker: TabTracker, host: InMemoryHost | None) -> MethodHandler:
    def handler(call: Call) -> dict[str, object]:
        tab_id = required_int(call.params, "tabId", "tabs.removed")
        if host is not None:
            host.forget_tab(tab_id)
        tracker.on_remove(tab_id)
        return {}

    return handler


def _add_handler(coordinator: ContentCoordinator) -> MethodHandler:
    def handler(call: Call) -> dict[str, object]:
        fields = call.params.get("fields")
        if not isinstance(fields, dict):
            raise InvalidRequestError(message="engine.add fields must be an object.")
        hidden = call.params.get("hidden", {})
        if not isinstance(hidden, dict):
            raise InvalidRequestError(message="engine.add hidden must be an object.")
        guid = call.params.get("guid")
        if guid is not None and not isinstance(guid, str):
            raise InvalidRequestError(message="engine.add guid must be a string.")
        if guid is not None and _is_numeric(guid):
            # numeric guids are reserved for generated records
            raise InvalidRequestError(message="engine.add guid must not be numeric.")
        db_index = optional_int(call.params, "db", "engine.add", 0)
        return {"guid": coordinator.add(fields, hidden, guid=guid, db_index=db_index)}

    return handler


def _commit_handler(coordinator: ContentCoordinator) -> MethodHandler:
    def handler(call: Call) -> dict[str, object]:
        coordinator.commit(optional_int(call.params, "db", "engine.commit", 0))
        return {}

    return handler


def _search_handler(coordinator: ContentCoordinator, max_results: int) -> MethodHandler:
    def handler(call: Call) -> dict[str, object]:
        query = call.params.get("query")
        if not isinstance(query, str):
            raise InvalidRequestError(message="engine.search query must be a string.")
        params = dict(call.params)
        length = optional_int(call.params, "length", "engine.search", max_results)
        params["length"] = max(0, min(length, max_results))
        db_index = optional_int(call.params, "db", "engine.search", 0)
        summary = coordinator.search(params, db_index=db_index)
        return {"size": summary.size, "estimated": summary.estimated}

    return handler


def _guid_handler(coordinator: ContentCoordinator) -> MethodHandler:
    def handler(call: Call) -> dict[str, object]:
        index = required_int(call.params, "index", "engine.guid")
        return {"guid": coordinator.guid(index)}

    return handler


def _percent_handler(coordinator: ContentCoordinator) -> MethodHandler:
    def handler(call: Call) -> dict[str, object]:
        index = required_int(call.params, "index", "engine.percent")
        return {"percent": coordinator.percent(index)}

    return handler


def _body_handler(coordinator: ContentCoordinator) -> MethodHandler:
    def handler(call: Call) -> dict[str, object]:
        guid = call.params.get("guid")
        if guid is None:
            index = required_int(call.params, "index", "engine.body")
            return {"record": coordinator.search_body(index)}
        if isinstance(guid, bool) or not isinstance(guid, (str, int)):
            raise InvalidRequestError(message="engine.body guid must be a string or integer.")
        return {"record": coordinator.body(guid)}

    return handler


def _snippet_handler(coordinator: ContentCoordinator) -> MethodHandler:
    def handler(call: Call) -> dict[str, object]:
        content = call.params.get("content")
        if content is not None and not isinstance(content, str):
            raise InvalidRequestError(message="engine.snippet content must be a string.")
        if content is None:
            required_int(call.params, "index", "engine.snippet")
        return {"snippet": coordinator.snippet(call.params)}

    return handler


def _remove_handler(coordinator: ContentCoordinator) -> MethodHandler:
    def handler(call: Call) -> dict[str, object]:
        guid = call.params.get("guid")
        if isinstance(guid, bool) or not isinstance(guid, (str, int)):
            raise InvalidRequestError(message="engine.remove guid must be a string or integer.")
        coordinator.remove(guid, db_index=optional_int(call.params, "db", "engine.remove", 0))
        return {}

    return handler


def _language_handler(coordinator: ContentCoordinator) -> MethodHandler:
    def handler(call: Call) -> dict[str, object]:
        code = call.params.get("code")
        if not isinstance(code, str):
            raise InvalidRequestError(message="engine.language code must be a string.")
        return {"lang": coordinator.language(code)}

    return handler


def _recent_handler(coordinator: ContentCoordinator, max_results: int) -> MethodHandler:
    def handler(call: Call) -> dict[str, object]:
        limit = optional_int(call.params, "limit", "engine.recent", max_results)
        since_value = call.params.get("since")
        since = since_value if isinstance(since_value, int) else None
        limit = max(1, min(limit, max_results))
        return {"records": coordinator.objects.recent(limit=limit, since=since)}

    return handler


def _pinned_handler(coordinator: ContentCoordinator) -> MethodHandler:
    def handler(_: Call) -> dict[str, object]:
        return {"records": coordinator.objects.pinned()}

    return handler


def _status_handler(
    tracker: TabTracker,
    coordinator: ContentCoordinator,
    config: ServerConfig,
) -> MethodHandler:
    def handler(_: Call) -> dict[str, object]:
        snapshot = tracker.snapshot()
        return {
            "state": {
                "durable": snapshot.loaded,
                "pending": snapshot.pending,
                "pending_new": snapshot.pending_new,
                "pending_stale": snapshot.pending_stale,
                "pending_removed": snapshot.pending_removed,
                "seen_tabs": snapshot.seen,
                "highlights": snapshot.highlights,
                "docs": snapshot.docs,
            },
            "content_records": coordinator.objects.count(),
            "open_databases": list(coordinator.open_databases()),
            "effective_config": config.to_public_dict(),
        }

    return handler


def _audit_log_handler(
    config: ServerConfig,
    read_audit_entries: Callable[[str | None, int], list[dict[str, object]]],
) -> MethodHandler:
    def handler(call: Call) -> dict[str, object]:
        since_value = call.params.get("since")
        limit_value = call.params.get("limit", config.engine.max_results)

        since: str | None = since_value if isinstance(since_value, str) else None
        limit = limit_value if isinstance(limit_value, int) else config.engine.max_results
        if limit < 1:
            limit = 1
        if limit > config.engine.max_results:
            limit = config.engine.max_results

        return {"entries": read_audit_entries(since, limit)}

    return handler


def _is_numeric(value: str) -> bool:
    try:
        int(value)
    except ValueError:
        return False
    return True
