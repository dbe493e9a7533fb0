"""
=============================================================================
COMMAND-LINE ENTRY POINT
=============================================================================

    python -m tasktracker                          # 127.0.0.1:3333, ./db.json
    python -m tasktracker --port 4000 --db /var/lib/tasks/db.json
    python -m tasktracker --host 0.0.0.0 --workers 8
    python -m tasktracker --log-level DEBUG --log-format json

Flags override TASKS_* environment variables, which override defaults
(see ServerConfig.from_env).

=============================================================================
"""

import argparse
from typing import Optional, Sequence

from . import __version__
from .config import ServerConfig, LOG_FORMATS
from .server import create_app


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tasktracker",
        description="Task tracking HTTP API backed by a JSON file",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m tasktracker                        # Run with defaults
  python -m tasktracker --port 4000            # Custom port
  python -m tasktracker --db ./data/db.json    # Custom snapshot file
  python -m tasktracker --host 0.0.0.0         # Listen on all interfaces
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: 127.0.0.1, use 0.0.0.0 for containers)"
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on, 0 for any free port (default: 3333)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # STORAGE AND PERFORMANCE
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--db", "-d",
        dest="database_path",
        default=None,
        help="JSON snapshot file (default: db.json)"
    )
    parser.add_argument(
        "--sync-writes",
        action="store_true",
        help="Write the snapshot before answering mutating requests"
    )
    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Maximum worker threads (default: 16)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO)"
    )
    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=None,
        help="Access log format (default: text)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"tasktracker {__version__}"
    )

    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Environment-based config with the given flags applied on top."""
    config = ServerConfig.from_env()

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.database_path is not None:
        config.database_path = args.database_path
    if args.sync_writes:
        config.sync_writes = True
    if args.workers is not None:
        config.max_workers = args.workers
        config.min_workers = min(config.min_workers, args.workers)
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.log_format is not None:
        config.log_format = args.log_format

    return config


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = config_from_args(args)
        config.validate()
    except ValueError as e:
        parser.error(str(e))

    app = create_app(config)
    app.run()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
