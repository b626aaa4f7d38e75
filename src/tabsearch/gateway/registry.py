"""Method registration and dispatch for served requests."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from tabsearch.gateway.requests import InvalidRequestError


@dataclass(slots=True, frozen=True)
class Call:
    """Parameters of one request plus the tab that sent it, if any."""

    params: dict[str, object]
    sender_tab_id: int | None = None


MethodHandler = Callable[[Call], dict[str, object]]


@dataclass(slots=True)
class MethodRegistry:
    """In-memory method registry preserving registration order."""

    _handlers: dict[str, MethodHandler] = field(default_factory=dict)

    def register(self, name: str, handler: MethodHandler) -> None:
        """Register a named handler."""
        self._handlers[name] = handler

    def get(self, name: str) -> MethodHandler | None:
        return self._handlers.get(name)

    def names(self) -> tuple[str, ...]:
        """Return registered method names in registration order."""
        return tuple(self._handlers.keys())

    def dispatch(self, name: str, call: Call) -> dict[str, object]:
        """Dispatch to a registered method by name."""
        handler = self.get(name)
        if handler is None:
            raise InvalidRequestError(message=f"Unknown method: {name}")
        return handler(call)
