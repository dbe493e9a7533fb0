"""
pytest configuration and fixtures.
"""

import json
from typing import Generator
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tasktracker import ServerConfig, Database, create_app
from tasktracker.server import HTTPServer


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request with a search query."""
    return (
        b"GET /tasks?search=milk&verbose HTTP/1.1\r\n"
        b"Host: localhost:3333\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with JSON body."""
    body = json.dumps({"title": "Buy milk", "description": "Semi-skimmed"}).encode()
    return (
        b"POST /tasks HTTP/1.1\r\n"
        b"Host: localhost:3333\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
    ) + body


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Snapshot location inside the test's temp dir."""
    return tmp_path / "db.json"


@pytest.fixture
def database(db_path: Path) -> Generator[Database, None, None]:
    """Fresh, empty database; closed after the test."""
    db = Database(db_path)
    yield db
    db.close()


@pytest.fixture
def config(db_path: Path) -> ServerConfig:
    """Test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        keep_alive_timeout=1.0,
        database_path=str(db_path),
        log_level="WARNING",
    )


class RunningServer:
    """A create_app() server serving from a background thread."""

    def __init__(self, server: HTTPServer):
        self.server = server
        self.host = ""
        self.port = 0

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def database(self) -> Database:
        return self.server.database

    def start(self) -> "RunningServer":
        self.host, self.port = self.server.start_background()
        return self

    def stop(self):
        self.server.stop()


@pytest.fixture
def running_server(config: ServerConfig) -> Generator[RunningServer, None, None]:
    """The full task tracker on a free port."""
    srv = RunningServer(create_app(config)).start()
    yield srv
    srv.stop()
