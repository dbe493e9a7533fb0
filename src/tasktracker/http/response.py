"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds HTTP/1.1 responses with proper formatting per RFC 7230.

=============================================================================
HTTP RESPONSE ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │    HTTP/1.1 200 OK\r\n                       ← status line          │
    │    Content-Type: application/json\r\n        ← set by handler or    │
    │                                                 the Dispatcher       │
    │    Content-Length: 118\r\n                   ← added by to_bytes()  │
    │    Date: Sun, 18 Oct 2026 12:00:00 GMT\r\n   ← added by to_bytes()  │
    │    Server: TaskTracker/1.0\r\n               ← added by to_bytes()  │
    │    Connection: keep-alive\r\n                ← added by the server  │
    │    X-Request-ID: 4f1c9a2e\r\n                ← access log middleware│
    │    \r\n                                                              │
    │    [{"id": "...", "title": "Buy milk", ...}]  ← body                │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Every endpoint of the task API speaks JSON, so the builder and the
helper functions at the bottom of this module only know about JSON
bodies and empty bodies.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Any, Optional, Union
import json

from .status_codes import HTTPStatus


JSON_CONTENT_TYPE = "application/json"


@dataclass
class HTTPResponse:
    """
    Represents an HTTP response to be sent to the client.

    Handlers return one of these; the Connection serializes it with
    to_bytes() and writes it to the socket.

        Handler returns          to_bytes()              Socket sends
        HTTPResponse    ─────►   serializes    ─────►    raw bytes
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    def __post_init__(self):
        self.status = HTTPStatus(self.status)
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")

    @property
    def status_line(self) -> str:
        """Format: HTTP-VERSION SP STATUS-CODE SP REASON-PHRASE"""
        return f"{self.version} {self.status} {self.status.phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """Set a response header. Returns self for chaining."""
        self.headers[name] = value
        return self

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default

    def has_header(self, name: str) -> bool:
        return self.get_header(name) is not None

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.body = body
        return self

    def json(self) -> Any:
        """Decode the body as JSON. Mostly useful in tests."""
        return json.loads(self.body.decode("utf-8")) if self.body else None

    def to_bytes(self, server_name: str = "TaskTracker/1.0") -> bytes:
        """
        Serialize the response to bytes for socket.sendall().

        Content-Length, Date and Server are added when the handler didn't
        set them. A 204 never carries a body or a Content-Length
        (RFC 7230 section 3.3.2).
        """
        response_headers = dict(self.headers)
        body = self.body if self.status.allows_body else b""

        if self.status.allows_body and not self.has_header("Content-Length"):
            response_headers["Content-Length"] = str(len(body))

        if not self.has_header("Date"):
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        if not self.has_header("Server"):
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        return header_bytes + body


class ResponseBuilder:
    """
    Fluent builder for constructing HTTP responses.

        response = (ResponseBuilder()
            .status(HTTPStatus.NOT_FOUND)
            .json({"message": "id not found"})
            .build())

    Every setter returns the builder, build() returns the HTTPResponse.
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = HTTPStatus(status)
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        if isinstance(body, str):
            body = body.encode("utf-8")
        self._body = body
        return self

    def json(self, data: Any, pretty: bool = False) -> "ResponseBuilder":
        """
        Serialize data as the JSON body and set the Content-Type.

        Non-ASCII characters are written as-is (UTF-8), so task titles in
        any language survive the round trip without \\u escapes.
        """
        text = json.dumps(data, indent=2 if pretty else None, ensure_ascii=False)
        return self.content_type(JSON_CONTENT_TYPE).body(text)

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
        )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

_DAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
_MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231).

    Example: Sun, 18 Oct 2026 12:00:00 GMT

    Built by hand because strftime's %a and %b follow the process locale,
    and HTTP dates are always English.
    """
    return (
        f"{_DAYS[dt.weekday()]}, "
        f"{dt.day:02d} {_MONTHS[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
#     return ok(rows)
#     return created()
#     return no_content()
#     return not_found({"message": "id not found"})
#
# =============================================================================

def ok(body: Any = None) -> HTTPResponse:
    """200 with a JSON body (an empty body when body is None)."""
    builder = ResponseBuilder().status(HTTPStatus.OK)
    if body is not None:
        builder.json(body)
    return builder.build()


def created(body: Any = None, location: Optional[str] = None) -> HTTPResponse:
    """201. The task API answers POST /tasks with an empty body."""
    builder = ResponseBuilder().status(HTTPStatus.CREATED)
    if body is not None:
        builder.json(body)
    if location:
        builder.header("Location", location)
    return builder.build()


def no_content() -> HTTPResponse:
    return HTTPResponse(status=HTTPStatus.NO_CONTENT)


def not_found(body: Any = None) -> HTTPResponse:
    """
    404 Not Found.

    Without a body this is the "no route matched" answer. Handlers pass
    {"message": "id not found"} when the route matched but the row
    doesn't exist.
    """
    builder = ResponseBuilder().status(HTTPStatus.NOT_FOUND)
    if body is not None:
        builder.json(body)
    return builder.build()


def error_response(status: HTTPStatus, message: Optional[str] = None) -> HTTPResponse:
    """JSON error body {"error": message}, defaulting to the reason phrase."""
    status = HTTPStatus(status)
    return (ResponseBuilder()
        .status(status)
        .json({"error": message or status.phrase})
        .build())


def internal_error(message: str = "Internal Server Error") -> HTTPResponse:
    """500. Keep the message generic; details belong in the log."""
    return error_response(HTTPStatus.INTERNAL_SERVER_ERROR, message)
