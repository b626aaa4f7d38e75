"""Typed gateway requests decoded from loosely shaped protocol payloads."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

GATEWAY_METHODS = ("find", "get_highlight", "delete", "group", "get_jobs", "index_complete")


@dataclass(slots=True, frozen=True)
class InvalidRequestError(Exception):
    """Raised for unknown methods and payloads that fail validation."""

    message: str
    code: str = "INVALID_REQUEST"


@dataclass(slots=True, frozen=True)
class FindRequest:
    tab_id: int
    window_id: int
    query: str
    snippet: str


@dataclass(slots=True, frozen=True)
class GetHighlightRequest:
    sender_tab_id: int | None


@dataclass(slots=True, frozen=True)
class DeleteRequest:
    ids: tuple[int, ...]


@dataclass(slots=True, frozen=True)
class GroupRequest:
    ids: tuple[int, ...]


@dataclass(slots=True, frozen=True)
class GetJobsRequest:
    pass


@dataclass(slots=True, frozen=True)
class IndexCompleteRequest:
    """Acknowledge ``ids``, or the whole current queue when ``ids`` is None."""

    ids: tuple[int, ...] | None


GatewayRequest = (
    FindRequest
    | GetHighlightRequest
    | DeleteRequest
    | GroupRequest
    | GetJobsRequest
    | IndexCompleteRequest
)


def decode_request(
    method: str,
    params: dict[str, object],
    sender_tab_id: int | None = None,
) -> GatewayRequest:
    """Validate ``params`` for ``method`` and build its typed request."""
    if method == "find":
        return FindRequest(
            tab_id=required_int(params, "tabId", method),
            window_id=required_int(params, "windowId", method),
            query=_optional_str(params, "query", method),
            snippet=_optional_str(params, "snippet", method),
        )
    if method == "get_highlight":
        return GetHighlightRequest(sender_tab_id=sender_tab_id)
    if method == "delete":
        return DeleteRequest(ids=_id_tuple(params.get("ids"), method, allow_empty=True))
    if method == "group":
        return GroupRequest(ids=_id_tuple(params.get("ids"), method, allow_empty=False))
    if method == "get_jobs":
        return GetJobsRequest()
    if method == "index_complete":
        raw_ids = params.get("ids")
        if raw_ids is None:
            return IndexCompleteRequest(ids=None)
        return IndexCompleteRequest(ids=_id_tuple(raw_ids, method, allow_empty=True))
    raise InvalidRequestError(message=f"Unknown method: {method}")


def _int_list(values: Iterable[object]) -> list[int] | None:
    """Return ``values`` as ints, or None if any item is not an integer."""
    output: list[int] = []
    for value in values:
        if not isinstance(value, int) or isinstance(value, bool):
            return None
        output.append(value)
    return output


def required_int(params: dict[str, object], key: str, method: str) -> int:
    """Return ``params[key]`` as an integer or reject the request."""
    value = params.get(key)
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidRequestError(message=f"{method} {key} must be an integer.")
    return value


def optional_int(params: dict[str, object], key: str, method: str, default: int) -> int:
    value = params.get(key)
    if value is None:
        return default
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidRequestError(message=f"{method} {key} must be an integer.")
    return value


def _optional_str(params: dict[str, object], key: str, method: str) -> str:
    value = params.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidRequestError(message=f"{method} {key} must be a string.")
    return value


def _id_tuple(value: object, method: str, allow_empty: bool) -> tuple[int, ...]:
    if isinstance(value, int) and not isinstance(value, bool):
        value = [value]
    if not isinstance(value, list):
        raise InvalidRequestError(message=f"{method} ids must be a list of integers.")
    ids = _int_list(value)
    if ids is None:
        raise InvalidRequestError(message=f"{method} ids must be a list of integers.")
    if not ids and not allow_empty:
        raise InvalidRequestError(message=f"{method} ids must not be empty.")
    return tuple(ids)
