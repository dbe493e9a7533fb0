"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket and turns its byte stream into complete
HTTP requests.

TCP preserves order, not message boundaries. A single recv() may return
half a request line, or one request and the start of the next. So the
connection buffers until it has seen the header terminator, reads
Content-Length from the raw headers, and keeps reading until the whole
body is in hand. Only then is the request handed to the parser, which is
why handlers always see complete bodies.

    buffer: b"POST /tasks HTTP/1.1\\r\\n...Content-Length: 41\\r\\n\\r\\n{\\"ti"
                                                                 │
        header terminator found ─► need 41 body bytes, have 4 ───┘
        recv() again ...
        41 bytes present ─► slice off one request, keep the rest

Leftover bytes stay in the buffer for the next request on a keep-alive
connection.

A body sent with Transfer-Encoding: chunked is decoded while reading and
forwarded with a Content-Length header in place of the chunked one.

=============================================================================
CONNECTION STATES
=============================================================================

    NEW ──► READING ──► PROCESSING ──► WRITING ──► KEEP_ALIVE ──┐
                ▲                                                │
                └────────────────────────────────────────────────┘
     any state ──► CLOSING ──► CLOSED

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Tuple
import uuid


logger = logging.getLogger(__name__)


CRLF = b"\r\n"
HEADER_TERMINATOR = CRLF + CRLF


class RequestTooLarge(ValueError):
    """The client sent more than max_request_size bytes for one request."""


class MalformedChunkedBody(ValueError):
    """A Transfer-Encoding: chunked body with broken framing."""


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket: The accepted client socket.
        address: Client's (ip, port) tuple.
        id: Short identifier used in log lines.
        requests_handled: Requests read so far on this connection.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.NEW
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request.

        The first request uses `timeout`; later requests on the same
        connection use the shorter `keep_alive_timeout`.

        A chunked body is decoded here and handed on with a plain
        Content-Length header, so the parser and handlers only ever see
        fixed-length requests.

        Returns:
            The request bytes (headers and full body), or None when the
            client closed the connection or went idle on keep-alive.

        Raises:
            TimeoutError: The first request didn't arrive in time.
            RequestTooLarge: The request exceeds max_request_size.
            MalformedChunkedBody: Bad chunk framing.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while HEADER_TERMINATOR not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None
                self._buffer += chunk
                self._check_size(len(self._buffer))

            header_end = self._buffer.find(HEADER_TERMINATOR)
            body_start = header_end + len(HEADER_TERMINATOR)
            header_block = self._buffer[:header_end]

            if _is_chunked(header_block):
                body, request_end = self._read_chunked(body_start)
                request_data = _with_content_length(header_block, body)
            else:
                content_length = self._parse_content_length(header_block)
                self._check_size(body_start + content_length)

                while len(self._buffer) - body_start < content_length:
                    chunk = self._recv()
                    if not chunk:
                        # Client gave up mid-body. Hand over what we have;
                        # the parser reports the short body as a 400.
                        break
                    self._buffer += chunk

                request_end = body_start + content_length
                request_data = self._buffer[:request_end]

            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            self.last_activity = time.time()
            return request_data

        except socket.timeout:
            if self.requests_handled > 0:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            self.socket.settimeout(self.timeout)

    def _read_chunked(self, start: int) -> Tuple[bytes, int]:
        """
        Decode a chunked body that begins at self._buffer[start].

            1a;ext\\r\\n  <26 bytes>\\r\\n  ...  0\\r\\n  [trailers]\\r\\n

        Returns:
            (decoded body, buffer offset just past the final CRLF)
        """
        body = b""
        pos = start

        while True:
            line_end = self._fill_until(CRLF, pos)
            size_text = self._buffer[pos:line_end].split(b";", 1)[0].strip()
            try:
                size = int(size_text, 16)
            except ValueError:
                raise MalformedChunkedBody(f"Invalid chunk size: {size_text[:20]!r}")
            if size < 0:
                raise MalformedChunkedBody(f"Invalid chunk size: {size}")
            pos = line_end + len(CRLF)

            if size == 0:
                break

            self._check_size(pos + size)
            self._fill_to(pos + size + len(CRLF))
            if self._buffer[pos + size:pos + size + len(CRLF)] != CRLF:
                raise MalformedChunkedBody("Chunk data not followed by CRLF")
            body += self._buffer[pos:pos + size]
            pos += size + len(CRLF)

        # Trailer fields are read and dropped.
        while True:
            line_end = self._fill_until(CRLF, pos)
            empty = line_end == pos
            pos = line_end + len(CRLF)
            if empty:
                return body, pos

    def _fill_until(self, marker: bytes, pos: int) -> int:
        """recv() until marker appears at or after pos; return its offset."""
        while True:
            index = self._buffer.find(marker, pos)
            if index != -1:
                return index
            self._more()

    def _fill_to(self, size: int) -> None:
        while len(self._buffer) < size:
            self._more()

    def _more(self) -> None:
        chunk = self._recv()
        if not chunk:
            raise MalformedChunkedBody("Connection closed inside chunked body")
        self._buffer += chunk
        self._check_size(len(self._buffer))

    def _check_size(self, size: int) -> None:
        if size > self.max_request_size:
            raise RequestTooLarge(f"Request too large: {size} bytes")

    def _recv(self) -> bytes:
        """recv() that maps a reset connection to end-of-stream."""
        try:
            data = self.socket.recv(self.buffer_size)
            self.last_activity = time.time()
            return data
        except (ConnectionResetError, BrokenPipeError):
            return b""

    def _parse_content_length(self, headers: bytes) -> int:
        """
        Pull Content-Length out of raw header bytes.

        Malformed or negative values count as 0 here; the parser sees the
        original header and rejects the request properly.
        """
        value = _header_value(headers, b"content-length")
        if value is None:
            return 0
        try:
            return max(0, int(value))
        except ValueError:
            return 0

    def send_response(self, data: bytes) -> bool:
        """
        sendall() the response.

        Returns:
            False if the client went away before the bytes were written.
        """
        self.state = ConnectionState.WRITING
        self.last_activity = time.time()

        try:
            self.socket.sendall(data)
            self.last_activity = time.time()
            return True
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    def set_keep_alive(self):
        self.state = ConnectionState.KEEP_ALIVE

    def close(self):
        """
        Close gracefully: send FIN, drain what the client still sends,
        then release the descriptor. Draining avoids an RST that could
        destroy a response the client hasn't read yet.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def _header_value(headers: bytes, name: bytes) -> Optional[str]:
    """Value of the first `name:` header in a raw header block."""
    for line in headers.split(CRLF)[1:]:
        key, sep, value = line.partition(b":")
        if sep and key.strip().lower() == name:
            return value.strip().decode("latin-1")
    return None


def _is_chunked(headers: bytes) -> bool:
    value = _header_value(headers, b"transfer-encoding")
    if value is None:
        return False
    codings = [c.strip().lower() for c in value.split(",")]
    return codings == ["chunked"]


def _with_content_length(headers: bytes, body: bytes) -> bytes:
    """Rebuild a decoded chunked request as a Content-Length one."""
    lines = [
        line for line in headers.split(CRLF)
        if line.partition(b":")[0].strip().lower()
        not in (b"transfer-encoding", b"content-length")
    ]
    lines.append(b"Content-Length: " + str(len(body)).encode())
    return CRLF.join(lines) + HEADER_TERMINATOR + body
