"""
=============================================================================
REQUEST DISPATCHER
=============================================================================

Glue between a parsed request and the handler that answers it.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │  Received ──► BodyBuffered ──► BodyDecoded ──► Routed               │
    │                                                   │                  │
    │                                    ┌──────────────┴───────────┐      │
    │                                    ▼                          ▼      │
    │                               matched                    unmatched   │
    │                                    │                          │      │
    │                                    ▼                          ▼      │
    │                            HandlerInvoked               404, no body │
    │                                    │                          │      │
    │                                    └──────────┬───────────────┘      │
    │                                               ▼                      │
    │                                         ResponseSent                 │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The body is already complete when the Dispatcher sees it: the Connection
reads exactly Content-Length bytes before the parser runs. Decoding never
fails the request. An empty or malformed body leaves request.data as
NO_BODY and the handler decides what that means.

Every response leaves with Content-Type: application/json. The handler's
own Content-Type, status and body are never overwritten.

=============================================================================
"""

import json
import logging

from .request import HTTPRequest, NO_BODY
from .response import HTTPResponse, JSON_CONTENT_TYPE, not_found
from .router import Router, parse_query


logger = logging.getLogger(__name__)


def decode_body(body: bytes):
    """
    Decode a JSON body.

    Returns:
        The decoded document, or NO_BODY when the body is empty, isn't
        UTF-8, or isn't valid JSON.
    """
    if not body:
        return NO_BODY
    try:
        return json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return NO_BODY


class Dispatcher:
    """
    Routes requests and invokes handlers.

    Usable directly as the final handler of a MiddlewarePipeline:

        dispatcher = Dispatcher(router)
        handler = MiddlewarePipeline().add(LoggingMiddleware()).wrap(dispatcher)
    """

    def __init__(self, router: Router):
        self.router = router

    def dispatch(self, request: HTTPRequest) -> HTTPResponse:
        label = f"{request.method} {request.target}"
        logger.debug(f"{label}: received")
        logger.debug(f"{label}: body buffered ({len(request.body)} bytes)")

        request.data = decode_body(request.body)
        decoded = "json" if request.data is not NO_BODY else "no body"
        logger.debug(f"{label}: body decoded ({decoded})")

        match = self.router.match(request.method, request.target)
        if match is None:
            logger.debug(f"{label}: routed (unmatched)")
            response = not_found()
        else:
            route = match.route
            logger.debug(f"{label}: routed (matched {route.method or 'ANY'} {route.path})")
            request.path_params = match.params
            request.query = parse_query(match.query_string)

            response = route.handler(request)
            logger.debug(f"{label}: handler invoked (status {response.status})")

        if not response.has_header("Content-Type"):
            response.set_header("Content-Type", JSON_CONTENT_TYPE)

        logger.debug(f"{label}: response ready")
        return response

    __call__ = dispatch
