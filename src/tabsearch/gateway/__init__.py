"""Indexing gateway: request decoding, dispatch and handlers."""

from .handler import DEFAULT_HIGHLIGHT_MARKER, IndexingGateway
from .registry import Call, MethodHandler, MethodRegistry
from .requests import (
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
    optional_int,
    required_int,
)

__all__ = [
    "Call",
    "DEFAULT_HIGHLIGHT_MARKER",
    "DeleteRequest",
    "FindRequest",
    "GATEWAY_METHODS",
    "GatewayRequest",
    "GetHighlightRequest",
    "GetJobsRequest",
    "GroupRequest",
    "IndexCompleteRequest",
    "IndexingGateway",
    "InvalidRequestError",
    "MethodHandler",
    "MethodRegistry",
    "decode_request",
    "optional_int",
    "required_int",
]
