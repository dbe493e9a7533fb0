"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Parses raw HTTP/1.1 request bytes into structured HTTPRequest objects.

=============================================================================
WHAT THE PARSER PRODUCES
=============================================================================

    PUT /tasks/3f2a-...?verbose=1 HTTP/1.1\r\n      ← request line
    Host: localhost:3333\r\n                         ← headers
    Content-Type: application/json\r\n
    Content-Length: 24\r\n
    \r\n                                             ← separator
    {"title": "Buy oat milk"}                        ← body

            │
            ▼

    HTTPRequest(
        method="PUT",
        target="/tasks/3f2a-...?verbose=1",   # exactly as sent
        path="/tasks/3f2a-...",               # target without the query
        query_string="verbose=1",             # raw, parsed later by Router
        headers={"host": ..., "content-type": ..., "content-length": "24"},
        body=b'{"title": "Buy oat milk"}',    # complete, never streamed
    )

The parser deliberately stops at bytes. Decoding the body as JSON and
splitting the query string into parameters are the Dispatcher's and the
Router's jobs, so that a malformed body never turns into a parse error:
the request still gets routed and the handler decides what to do with it.

=============================================================================
PARSING CHALLENGES
=============================================================================

1. LINE ENDINGS: HTTP uses CRLF (\\r\\n); headers end with \\r\\n\\r\\n
2. CASE: methods are case-sensitive, header names are not
3. BODY LENGTH: given by Content-Length (chunked encoding not supported)
4. SIZE: requests above max_request_size are rejected with 413

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any
import re

from .status_codes import HTTPStatus


class HTTPParseError(Exception):
    """
    Raised when HTTP request parsing fails.

    Carries the status code the server should answer with:

        400 Bad Request                - Malformed request syntax
        405 Method Not Allowed         - Unknown method
        413 Payload Too Large          - Request exceeds size limit
        501 Not Implemented            - Transfer-Encoding other than chunked
        505 HTTP Version Not Supported - Not HTTP/1.0 or HTTP/1.1
    """

    def __init__(self, message: str, status_code: int = HTTPStatus.BAD_REQUEST):
        super().__init__(message)
        self.status_code = HTTPStatus(status_code)


class _NoBody:
    """
    Marker for "this request has no usable body".

    Set by the Dispatcher when the body is empty or isn't valid JSON.
    It is falsy so handlers can write `if not request.data:`, and it is a
    distinct object so `None` (a valid JSON document: `null`) is never
    confused with a missing body.
    """

    _instance: Optional["_NoBody"] = None

    def __new__(cls) -> "_NoBody":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NO_BODY"


NO_BODY = _NoBody()


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:         GET, POST, PUT, PATCH, DELETE, ...
        target:         The request-target exactly as received
        path:           target without the query string
        query_string:   Raw text after "?" ("" when absent)
        version:        "HTTP/1.1" or "HTTP/1.0"
        headers:        Header names lowercased → values
        body:           Complete body bytes (Content-Length of them)

    Filled in by the Dispatcher:

        data:           Decoded JSON body, or NO_BODY
        path_params:    Named segments captured by the route ({"id": ...})
        query:          Parsed query string, last duplicate wins

    =========================================================================
    """

    method: str
    path: str
    target: str = ""
    query_string: str = ""
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    # Dispatcher-injected values
    data: Any = NO_BODY
    path_params: Dict[str, str] = field(default_factory=dict)
    query: Dict[str, str] = field(default_factory=dict)

    client_address: tuple[str, int] = ("", 0)

    def __post_init__(self):
        # Requests built by hand (tests, internal callers) often only give
        # a path. Keep target/query_string consistent with it.
        if not self.target:
            self.target = self.path
            if self.query_string:
                self.target += "?" + self.query_string
        elif "?" in self.path and not self.query_string:
            self.path, _, self.query_string = self.path.partition("?")

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def content_type(self) -> Optional[str]:
        """Content-Type without parameters ("application/json")."""
        ct = self.headers.get("content-type", "")
        return ct.split(";")[0].strip().lower() or None

    @property
    def content_length(self) -> int:
        """Content-Length as an integer, 0 when missing or invalid."""
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def has_body(self) -> bool:
        """True once the Dispatcher decoded a JSON body."""
        return self.data is not NO_BODY

    @property
    def is_keep_alive(self) -> bool:
        """
        Whether the connection should stay open after this request.

        HTTP/1.1 keeps alive unless "Connection: close".
        HTTP/1.0 closes unless "Connection: keep-alive".
        """
        connection = self.headers.get("connection", "").lower()

        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

        Raw Request Bytes
              │
              ▼
        1. Size check ─────────────── too large? → 413
        2. Find \\r\\n\\r\\n ─────────── missing? → 400
        3. Request line ───────────── METHOD SP TARGET SP VERSION
        4. Headers ────────────────── "Name: Value", names lowercased
        5. Body ───────────────────── exactly Content-Length bytes
              │
              ▼
        HTTPRequest
    """

    VALID_METHODS = {
        "GET",
        "POST",
        "PUT",
        "DELETE",
        "PATCH",
        "HEAD",
        "OPTIONS",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse raw HTTP request data into an HTTPRequest object.

        Args:
            data: Complete request bytes (headers and full body).
            client_address: Client's (ip, port) tuple for logging.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=HTTPStatus.PAYLOAD_TOO_LARGE,
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("utf-8", errors="replace")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, target, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        # The connection decodes chunked bodies and drops the header, so
        # any Transfer-Encoding still present is one we don't support.
        if "transfer-encoding" in headers:
            raise HTTPParseError(
                f"Unsupported Transfer-Encoding: {headers['transfer-encoding']}",
                HTTPStatus.NOT_IMPLEMENTED,
            )

        # Body length MUST match Content-Length. Anything past it belongs
        # to the next pipelined request and was already split off by the
        # connection.
        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError(
                f"Invalid Content-Length: {headers['content-length']}"
            )
        if content_length < 0:
            raise HTTPParseError(f"Invalid Content-Length: {content_length}")
        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )
        body = body[:content_length]

        path, _, query_string = target.partition("?")

        return HTTPRequest(
            method=method,
            path=path or "/",
            target=target,
            query_string=query_string,
            version=version,
            headers=headers,
            body=body,
            client_address=client_address,
        )

    def _parse_request_line(self, line: str) -> tuple[str, str, str]:
        """
        Parse "METHOD SP REQUEST-TARGET SP HTTP-VERSION".

        Returns:
            Tuple of (method, target, version)
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line}")

        method, target, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(
                f"Invalid method: {method}",
                status_code=HTTPStatus.METHOD_NOT_ALLOWED,
            )

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=HTTPStatus.HTTP_VERSION_NOT_SUPPORTED,
            )

        # Absolute-form targets ("http://host/tasks") are proxy requests.
        if not target.startswith("/"):
            raise HTTPParseError(f"Invalid request target: {target}")

        return method, target, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse header lines into a dict with lowercase names.

        Repeated headers are joined with ", " (RFC 7230 section 3.2.2).
        Lines starting with whitespace continue the previous header.
        Malformed lines are skipped.
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    max_size: int = 1024 * 1024
) -> HTTPRequest:
    """Parse one request with a throwaway RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
