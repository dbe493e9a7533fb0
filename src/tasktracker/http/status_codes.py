"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes the task tracker actually emits, with their RFC 7231
reason phrases.

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  2xx   │ 200 OK          - GET /tasks                              │
    │        │ 201 Created     - POST /tasks                             │
    │        │ 204 No Content  - PUT / PATCH / DELETE succeeded          │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  4xx   │ 400 Bad Request - malformed request line or headers       │
    │        │ 404 Not Found   - no route, or unknown task id            │
    │        │ 405 Method Not Allowed - method the parser doesn't know   │
    │        │ 408 Request Timeout    - client never finished sending    │
    │        │ 413 Payload Too Large  - request exceeds max size         │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  5xx   │ 500 Internal Server Error - handler raised                 │
    │        │ 501 Not Implemented      - unsupported Transfer-Encoding   │
    │        │ 503 Service Unavailable  - thread pool queue is full      │
    │        │ 505 HTTP Version Not Supported                            │
    └────────┴───────────────────────────────────────────────────────────┘

IntEnum keeps the values usable as plain integers:

    HTTPStatus.NOT_FOUND == 404          → True
    f"{HTTPStatus.NOT_FOUND}"            → "404"

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """HTTP status codes used by the server."""

    # 2xx Success
    OK = 200
    CREATED = 201
    NO_CONTENT = 204

    # 4xx Client Error
    BAD_REQUEST = 400
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    PAYLOAD_TOO_LARGE = 413

    # 5xx Server Error
    INTERNAL_SERVER_ERROR = 500
    NOT_IMPLEMENTED = 501
    SERVICE_UNAVAILABLE = 503
    HTTP_VERSION_NOT_SUPPORTED = 505

    def __str__(self) -> str:
        return str(self.value)

    @property
    def phrase(self) -> str:
        """
        Reason phrase for the status line.

            HTTP/1.1 404 Not Found
                     ─── ─────────
                      │      └── phrase
                      └───────── code
        """
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        return 200 <= self < 300

    @property
    def is_error(self) -> bool:
        """4xx or 5xx. Used by the access log to pick a level."""
        return self >= 400

    @property
    def allows_body(self) -> bool:
        """204 responses must not carry a body (RFC 7230 section 3.3)."""
        return self != HTTPStatus.NO_CONTENT


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",
    HTTPStatus.NO_CONTENT: "No Content",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.NOT_IMPLEMENTED: "Not Implemented",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}
