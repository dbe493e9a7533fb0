"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the task tracker service.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m tasktracker --port 4000 --db ./data/db.json      │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── TASKS_PORT=4000 TASKS_DB_PATH=/var/lib/tasks.json          │
    │                                                                      │
    │   3. Default values (in this dataclass)                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Configuration is validated eagerly at startup. A typo in a port number
should stop the process before it binds anything, not after an hour of
serving requests.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


LOG_FORMATS = ("text", "json")


@dataclass
class ServerConfig:
    """
    Configuration for the task tracker server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK SETTINGS
    - host, port, backlog, buffer_size, timeout

    HTTP SETTINGS
    - keep_alive, keep_alive_timeout, max_request_size

    THREADING SETTINGS
    - min_workers, max_workers, queue_size

    STORAGE
    - database_path, sync_writes

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """
    The IP address to bind to.
    - "127.0.0.1" - Localhost only (development)
    - "0.0.0.0" - All network interfaces (containers)
    """

    port: int = 3333
    """
    The port number to listen on. 0 asks the OS for a free port.
    """

    backlog: int = 128
    """Maximum number of connections queued by the kernel before accept()."""

    buffer_size: int = 8192
    """Size of each recv() call in bytes."""

    timeout: Optional[float] = 30.0
    """
    Socket timeout in seconds for the first request on a connection.
    None = blocking (a stalled client holds a worker forever).
    """

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    """Allow several requests on one TCP connection."""

    keep_alive_timeout: float = 5.0
    """Idle seconds before a keep-alive connection is closed."""

    max_request_size: int = 1024 * 1024  # 1 MB
    """
    Maximum request size in bytes (headers + body).
    Task payloads are tiny; anything bigger is almost certainly a mistake.
    """

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    """Worker threads created at startup."""

    max_workers: int = 16
    """Upper bound on worker threads under load."""

    queue_size: int = 100
    """Connections waiting for a worker before new ones get 503."""

    # ─────────────────────────────────────────────────────────────────────
    # STORAGE
    # ─────────────────────────────────────────────────────────────────────

    database_path: str = "db.json"
    """
    Location of the JSON snapshot holding every table.
    Relative paths resolve against the working directory of the process.
    """

    sync_writes: bool = False
    """
    Write the snapshot before a mutating request returns.
    False (default) queues the write and answers immediately.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR)."""

    log_format: str = "text"
    """Access log format: 'text' (Apache style) or 'json'."""

    # ─────────────────────────────────────────────────────────────────────
    # SERVER IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "TaskTracker/1.0"
    """Value of the Server response header."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        TASKS_HOST        Server host (default: 127.0.0.1)
        TASKS_PORT        Server port (default: 3333)
        TASKS_DB_PATH     Snapshot file (default: db.json)
        TASKS_WORKERS     Max worker threads (default: 16)
        TASKS_TIMEOUT     Request timeout in seconds (default: 30)
        TASKS_LOG_LEVEL   Logging level (default: INFO)
        TASKS_LOG_FORMAT  Access log format (default: text)

        =====================================================================
        """
        max_workers = int(os.getenv("TASKS_WORKERS", "16"))
        return cls(
            host=os.getenv("TASKS_HOST", "127.0.0.1"),
            port=int(os.getenv("TASKS_PORT", "3333")),
            database_path=os.getenv("TASKS_DB_PATH", "db.json"),
            min_workers=min(4, max_workers),
            max_workers=max_workers,
            timeout=float(os.getenv("TASKS_TIMEOUT", "30")),
            log_level=os.getenv("TASKS_LOG_LEVEL", "INFO"),
            log_format=os.getenv("TASKS_LOG_FORMAT", "text"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: On the first invalid setting found.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.queue_size < 1:
            raise ValueError("queue_size must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if not self.database_path:
            raise ValueError("database_path must not be empty")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(
                f"Invalid log_format: {self.log_format}. "
                f"Expected one of {', '.join(LOG_FORMATS)}."
            )
