"""
=============================================================================
HTTP PROTOCOL IMPLEMENTATION
=============================================================================

Translates raw bytes from TCP into structured HTTP messages and routes
them to handlers.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ request.py      raw bytes → HTTPRequest (HTTPParseError on garbage) │
    │ response.py     HTTPResponse, ResponseBuilder, ok/created/...       │
    │ status_codes.py HTTPStatus with reason phrases                      │
    │ router.py       token-compiled patterns, parse_query()              │
    │ dispatcher.py   body decode → route → handler → JSON content type   │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .request import HTTPRequest, HTTPParseError, RequestParser, NO_BODY, parse_request
from .response import (
    HTTPResponse,
    ResponseBuilder,
    ok,
    created,
    no_content,
    not_found,
    error_response,
    internal_error,
)
from .status_codes import HTTPStatus
from .router import Router, Route, RouteMatch, RoutePattern, parse_query
from .dispatcher import Dispatcher, decode_body

__all__ = [
    "HTTPRequest",
    "HTTPParseError",
    "RequestParser",
    "NO_BODY",
    "parse_request",
    "HTTPResponse",
    "ResponseBuilder",
    "ok",
    "created",
    "no_content",
    "not_found",
    "error_response",
    "internal_error",
    "HTTPStatus",
    "Router",
    "Route",
    "RouteMatch",
    "RoutePattern",
    "parse_query",
    "Dispatcher",
    "decode_body",
]
