"""
=============================================================================
TASK TRACKER SERVER
=============================================================================

Composes the pieces into a running service.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   SocketServer ── accept ──► ThreadPool.submit(_process_connection)  │
    │                                   │   (queue full → 503)             │
    │                                   ▼                                  │
    │                             Connection.read_request()                │
    │                                   │                                  │
    │                                   ▼                                  │
    │                             RequestParser.parse()  ── error → 4xx    │
    │                                   │                                  │
    │                                   ▼                                  │
    │                    LoggingMiddleware ──► Dispatcher ──► TaskHandler  │
    │                                                             │        │
    │                                                          Database    │
    │                                                             │        │
    │                                                      SnapshotWriter  │
    │                                   │                                  │
    │                                   ▼                                  │
    │                             Connection.send_response()               │
    │                             keep-alive? loop : close                 │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Nothing a single request does can stop the server: parse errors answer
with their status code, handler exceptions answer 500, and connection
errors close only that connection.

Shutdown order: stop accepting, let the pool finish queued connections,
then close the database so every queued snapshot reaches the disk.

=============================================================================
"""

import logging
import threading
from typing import Optional, Callable, Tuple

from .config import ServerConfig
from .core import SocketServer, Connection, ThreadPool, RequestTooLarge, MalformedChunkedBody
from .core.connection import ConnectionState
from .http import (
    HTTPRequest, RequestParser, HTTPParseError,
    HTTPResponse, HTTPStatus, Router, Dispatcher,
    error_response, internal_error,
)
from .middleware import MiddlewarePipeline, Middleware, LoggingMiddleware
from .store import Database
from .handlers import TaskHandler


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    HTTP/1.1 server around a Router.

        server = HTTPServer(ServerConfig(port=3333), database=db)
        TaskHandler(db).register(server.router)
        server.use(LoggingMiddleware())
        server.run()                    # blocks until SIGINT/SIGTERM

    Tests run it on a background thread instead:

        host, port = server.start_background()
        ...
        server.stop()

    Args:
        config: Settings; validated immediately.
        database: Store closed on shutdown, if given.
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        database: Optional[Database] = None,
    ):
        self.config = config or ServerConfig()
        self.config.validate()

        self.database = database

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            queue_size=self.config.queue_size,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._router = Router()
        self._dispatcher = Dispatcher(self._router)
        self._middleware = MiddlewarePipeline()
        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._stopped = False

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def use(self, middleware: Middleware) -> "HTTPServer":
        """Add middleware. The first one added runs outermost."""
        self._middleware.add(middleware)
        return self

    @property
    def router(self) -> Router:
        return self._router

    @property
    def address(self) -> Tuple[str, int]:
        """Bound address once listening (useful with port 0)."""
        return self._socket_server.address

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self):
        """Configure logging, bind, and serve until a signal arrives."""
        setup_logging(self.config.log_level)

        self._prepare()
        self._print_startup_banner()

        try:
            self._socket_server.serve(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def start_background(self) -> Tuple[str, int]:
        """
        Bind and serve on a daemon thread.

        Returns:
            The bound (host, port).
        """
        address = self._prepare()

        self._thread = threading.Thread(
            target=self._socket_server.serve,
            args=(self._handle_connection,),
            name="TaskTrackerServer",
            daemon=True,
        )
        self._thread.start()
        self._socket_server.wait_until_ready(timeout=5.0)
        return address

    def stop(self):
        """Stop a server started with start_background()."""
        self._socket_server.shutdown()
        if self._thread is not None:
            self._thread.join(timeout=5.0)
            self._thread = None
        self._shutdown()

    def _prepare(self) -> Tuple[str, int]:
        self._handler = self._middleware.wrap(self._dispatcher)
        address = self._socket_server.bind()
        self._thread_pool.start()
        self._running = True
        return address

    def _print_startup_banner(self):
        host, port = self.address
        print()
        print("=" * 64)
        print(f"  {self.config.server_name} running on http://{host}:{port}")
        print(f"  Database: {self.config.database_path}")
        print(f"  Workers:  {self.config.min_workers}-{self.config.max_workers} threads")
        print(f"  Routes:   {len(self._router)}")
        print("  Press Ctrl+C to stop")
        print("=" * 64)
        for line in self._router.describe():
            print(f"  {line}")
        print()

    def _shutdown(self):
        if self._stopped:
            return
        self._stopped = True

        logger.info("Shutting down server...")
        self._running = False
        logger.info(f"Thread pool stats: {self._thread_pool.stats}")
        self._thread_pool.shutdown(wait=True, timeout=30.0)

        if self.database is not None:
            self.database.close()

        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Called on the accept thread: hand the connection to a worker."""
        submitted = self._thread_pool.submit(
            self._process_connection,
            args=(conn,),
            block=False,
        )

        if not submitted:
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()

    def _process_connection(self, conn: Connection):
        """
        Keep-alive loop for one connection (runs on a worker thread).

        read → parse → middleware + dispatcher → send → repeat or close
        """
        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                    if raw_request is None:
                        break

                    try:
                        request = self._parser.parse(raw_request, conn.address)
                    except HTTPParseError as e:
                        logger.info(f"[{conn.id}] Rejected request: {e}")
                        self._send_error(conn, e.status_code, str(e))
                        break

                    conn.state = ConnectionState.PROCESSING

                    try:
                        response = self._handler(request)
                    except Exception as e:
                        logger.exception(f"[{conn.id}] Handler error: {e}")
                        response = internal_error()

                    keep_alive = request.is_keep_alive and self.config.keep_alive
                    if keep_alive:
                        response.headers.setdefault("Connection", "keep-alive")
                        response.headers.setdefault(
                            "Keep-Alive",
                            f"timeout={int(self.config.keep_alive_timeout)}"
                        )
                    else:
                        response.headers["Connection"] = "close"

                    if not conn.send_response(response.to_bytes(self.config.server_name)):
                        break

                    if not keep_alive:
                        break

                    conn.set_keep_alive()

                except RequestTooLarge as e:
                    self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE, str(e))
                    break

                except MalformedChunkedBody as e:
                    logger.info(f"[{conn.id}] Rejected request: {e}")
                    self._send_error(conn, HTTPStatus.BAD_REQUEST, str(e))
                    break

                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                    break

                except Exception as e:
                    logger.exception(f"[{conn.id}] Connection error: {e}")
                    break

    def _send_error(self, conn: Connection, status: HTTPStatus, message: str):
        """Errors raised before a handler ran. Always closes afterwards."""
        response = error_response(status, message)
        response.set_header("Connection", "close")
        conn.send_response(response.to_bytes(self.config.server_name))


def setup_logging(level: str = "INFO"):
    """Root logging setup for the command-line entry points."""
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("tasktracker").setLevel(numeric)


def create_app(
    config: Optional[ServerConfig] = None,
    database: Optional[Database] = None,
) -> HTTPServer:
    """
    Build the task tracker: store, routes and access logging.

        app = create_app(ServerConfig(port=3333, database_path="db.json"))
        app.run()

    Args:
        config: Settings (defaults if omitted).
        database: Use this store instead of opening config.database_path.
    """
    config = config or ServerConfig()
    config.validate()

    if database is None:
        database = Database(config.database_path, sync=config.sync_writes)

    server = HTTPServer(config, database=database)
    TaskHandler(database).register(server.router)
    server.use(LoggingMiddleware(log_format=config.log_format))
    return server
