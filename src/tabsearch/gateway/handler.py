"""Indexing gateway: routes UI and content-script requests onto the tracker and host."""

from __future__ import annotations

import logging
from collections.abc import Callable

from tabsearch.gateway.registry import Call, MethodHandler, MethodRegistry
from tabsearch.gateway.requests import (
    GATEWAY_METHODS,
    DeleteRequest,
    FindRequest,
    GatewayRequest,
    GetHighlightRequest,
    GetJobsRequest,
    GroupRequest,
    IndexCompleteRequest,
    InvalidRequestError,
    decode_request,
)
from tabsearch.host import ActivationFailureError, Host
from tabsearch.state import HighlightRequest, PersistenceUnavailableError, TabTracker

DEFAULT_HIGHLIGHT_MARKER = "<b>"

logger = logging.getLogger(__name__)


class IndexingGateway:
    """Serves the six gateway methods.

    Host calls are best effort: a refused activation, injection or move is
    logged and the request still completes.
    """

    def __init__(
        self,
        tracker: TabTracker,
        host: Host,
        strict: bool = False,
        highlight_marker: str = DEFAULT_HIGHLIGHT_MARKER,
    ) -> None:
        self._tracker = tracker
        self._host = host
        self._strict = strict
        self._highlight_marker = highlight_marker

    def register(self, registry: MethodRegistry) -> None:
        for method in GATEWAY_METHODS:
            registry.register(method, self._handler(method))

    def handle(self, request: GatewayRequest) -> dict[str, object]:
        if isinstance(request, FindRequest):
            return self.find(request)
        if isinstance(request, GetHighlightRequest):
            return self.get_highlight(request)
        if isinstance(request, DeleteRequest):
            return self.delete(request)
        if isinstance(request, GroupRequest):
            return self.group(request)
        if isinstance(request, GetJobsRequest):
            return self.get_jobs()
        if isinstance(request, IndexCompleteRequest):
            return self.index_complete(request)
        raise InvalidRequestError(message=f"Unsupported request: {type(request).__name__}")

    def find(self, request: FindRequest) -> dict[str, object]:
        """Bring a result tab to front and queue highlighting of the matched snippet."""
        self._best_effort("activate tab", self._host.activate_tab, request.tab_id)
        self._best_effort("focus window", self._host.focus_window, request.window_id)
        if request.snippet and (self._highlight_marker in request.snippet or self._strict):
            self._tracker.set_highlight(
                HighlightRequest(
                    query=request.query,
                    snippet=request.snippet,
                    tab_id=request.tab_id,
                    window_id=request.window_id,
                )
            )
            self._best_effort("inject highlighter", self._host.inject_highlighter, request.tab_id)
        return {}

    def get_highlight(self, request: GetHighlightRequest) -> dict[str, object]:
        if request.sender_tab_id is None:
            return {"highlight": None}
        try:
            highlight = self._tracker.get_highlight(request.sender_tab_id)
        except PersistenceUnavailableError as error:
            return {"highlight": None, "__warnings__": [error.reason]}
        return {"highlight": highlight.to_dict() if highlight is not None else None}

    def delete(self, request: DeleteRequest) -> dict[str, object]:
        self._best_effort("close tabs", self._host.close_tabs, list(request.ids))
        return {}

    def group(self, request: GroupRequest) -> dict[str, object]:
        """Move the tabs into a new window anchored on the first id."""
        anchor, *rest = request.ids
        try:
            window_id = self._host.create_window(anchor)
        except ActivationFailureError as error:
            logger.warning("create window failed for tab %s: %s", anchor, error.reason)
            return {}
        if rest:
            self._best_effort("move tabs", self._host.move_tabs, rest, window_id)
            self._best_effort("focus window", self._host.focus_window, window_id)
        return {"windowId": window_id}

    def get_jobs(self) -> dict[str, object]:
        """Return the pending work; an unrestorable state reads as nothing pending."""
        try:
            queue = self._tracker.drain_queue()
        except PersistenceUnavailableError as error:
            return {"jobs": {}, "__warnings__": [error.reason]}
        return {"jobs": {str(tab_id): int(delta) for tab_id, delta in sorted(queue.items())}}

    def index_complete(self, request: IndexCompleteRequest) -> dict[str, object]:
        completed = self._tracker.mark_complete(request.ids)
        return {"completed": completed}

    def _handler(self, method: str) -> MethodHandler:
        def handler(call: Call) -> dict[str, object]:
            request = decode_request(method, call.params, sender_tab_id=call.sender_tab_id)
            return self.handle(request)

        return handler

    @staticmethod
    def _best_effort(action: str, operation: Callable[..., object], *args: object) -> bool:
        try:
            operation(*args)
        except ActivationFailureError as error:
            logger.warning("%s failed: %s", action, error.reason)
            return False
        return True
